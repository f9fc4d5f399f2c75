"""OAuth 2.0 + PKCE adapter."""

from .attempt import AttemptStatus, AttemptStore, AuthorizationAttempt, InMemoryAttemptStore
from .client import MockOAuthClient, OAuth2PKCEClient, parse_callback
from .providers import GOOGLE, PROFILES, TWITTER, ProviderProfile

__all__ = [
    "AttemptStatus",
    "AttemptStore",
    "AuthorizationAttempt",
    "GOOGLE",
    "InMemoryAttemptStore",
    "MockOAuthClient",
    "OAuth2PKCEClient",
    "PROFILES",
    "ProviderProfile",
    "TWITTER",
    "parse_callback",
]
