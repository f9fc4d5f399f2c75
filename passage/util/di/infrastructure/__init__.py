"""Infrastructure providers."""

# Import bases
from .authority import AuthorityProvider
from .oauth import OAuthProvider
from .persistence import PersistenceProvider

# Import implementations (needed for __subclasses__())
from .authority import ProdAuthorityProvider  # noqa: F401
from .oauth import ProdOAuthProvider  # noqa: F401
from .persistence import ProdPersistenceProvider  # noqa: F401

__all__ = [
    "AuthorityProvider",
    "OAuthProvider",
    "PersistenceProvider",
    "ProdAuthorityProvider",
    "ProdOAuthProvider",
    "ProdPersistenceProvider",
]
