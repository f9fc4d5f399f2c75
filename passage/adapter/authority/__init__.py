"""Credential authority adapters."""

from .gotrue import GoTrueCredentialAuthority
from .inmemory import InMemoryCredentialAuthority

__all__ = ["GoTrueCredentialAuthority", "InMemoryCredentialAuthority"]
