"""Mock providers for testing."""

from .authority import MockAuthorityProvider
from .oauth import MockOAuthProvider
from .persistence import MockPersistenceProvider
from .container import build_test_container

__all__ = [
    "MockAuthorityProvider",
    "MockOAuthProvider",
    "MockPersistenceProvider",
    "build_test_container",
]
