"""Domain services."""

from .auth_service import AuthService, OAuthClient
from .authority import CredentialAuthority, SessionChangeCallback, Unsubscribe
from .base import Service
from .credential_bridge import BridgeResult, CredentialBridge
from .handle_allocator import HandleAllocator
from .profile_service import ProfileService
from .reconciliation_service import IdentityReconciliationEngine
from .retry import RetryPolicy

__all__ = [
    "AuthService",
    "BridgeResult",
    "CredentialAuthority",
    "CredentialBridge",
    "HandleAllocator",
    "IdentityReconciliationEngine",
    "OAuthClient",
    "ProfileService",
    "RetryPolicy",
    "Service",
    "SessionChangeCallback",
    "Unsubscribe",
]
