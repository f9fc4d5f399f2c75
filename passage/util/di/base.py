"""Provider base class."""

from typing import ClassVar, Literal

from dishka import Provider

# Infrastructure that tests can swap for in-memory fakes
Component = Literal["authority", "oauth", "persistence"]


class ProviderBase(Provider):
    """Base for all providers.

    A mockable component's base sets `__mock_component__`; its mock variant
    also sets `__is_mock__`. Concrete providers leave both at their defaults.
    """

    __mock_component__: ClassVar[Component | None] = None
    __is_mock__: ClassVar[bool] = False
