"""Dependency injection wiring.

Core providers (config, domain services, session machine) are concrete.
Infrastructure providers are mockable: each declares a `__mock_component__`
name and has one production and one mock subclass.
"""

from typing import Type

from passage.util.di.application import ProdApplicationProvider
from passage.util.di.base import Component, ProviderBase
from passage.util.di.core import ProdConfigProvider
from passage.util.di.domain import ProdDomainProvider
from passage.util.di.infrastructure import (
    AuthorityProvider,
    OAuthProvider,
    PersistenceProvider,
)

PROVIDERS: list[Type[ProviderBase]] = [
    ProdConfigProvider,
    ProdDomainProvider,
    ProdApplicationProvider,
    AuthorityProvider,
    OAuthProvider,
    PersistenceProvider,
]


def get_provider(
    base: Type[ProviderBase], use_mock: bool = False
) -> Type[ProviderBase]:
    """Resolve `base` to the provider class to instantiate.

    Raises:
        ValueError: If `base` is mockable but lacks the requested variant
    """
    variants = base.__subclasses__()
    if not variants:
        return base

    for variant in variants:
        if variant.__is_mock__ == use_mock:
            return variant

    kind = "mock" if use_mock else "production"
    raise ValueError(f"No {kind} provider for {base.__mock_component__}")


__all__ = ["Component", "ProviderBase", "PROVIDERS", "get_provider"]
