"""Builders for domain objects used across tests."""

from uuid import uuid4

from passage.domain.model.profile import Profile
from passage.domain.value import AuthProvider, Handle, ProfileId, ProviderIdentity


def make_identity(
    provider: AuthProvider = AuthProvider.TWITTER,
    provider_user_id: str = "12345",
    handle: str = "alice",
    email: str | None = "alice@example.com",
    display_name: str | None = "Alice",
) -> ProviderIdentity:
    """Helper to build a provider identity for tests."""
    return ProviderIdentity(
        provider=provider,
        provider_user_id=provider_user_id,
        handle=handle,
        display_name=display_name,
        email=email,
    )


def make_profile(
    handle: str = "alice",
    email: str = "alice@example.com",
    profile_id: ProfileId | None = None,
    **fields,
) -> Profile:
    """Helper to build a profile for tests."""
    return Profile(
        id=profile_id or ProfileId(uuid4()),
        email=email,
        handle=Handle(handle),
        display_name=fields.pop("display_name", handle.title()),
        **fields,
    )
