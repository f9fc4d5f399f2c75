"""Profile aggregate root.

A profile is the canonical user record. Its id is the credential
authority's user id, so exactly one profile exists per authority account,
whichever provider the user signed in with.
"""

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import Field

from passage.domain.model.common import DomainModel
from passage.domain.value import AuthProvider, Handle, ProfileId


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NotificationSettings(DomainModel):
    """Notification toggles."""

    push_enabled: bool = True
    location_updates: bool = True
    friend_requests: bool = True
    messages: bool = True


class ProfileSettings(DomainModel):
    """Privacy and notification settings sub-document."""

    share_location: bool = False
    allow_friend_requests: bool = True
    show_online_status: bool = True
    allow_message_from_strangers: bool = False
    ghost_mode: bool = False
    privacy_level: Literal["public", "friends", "private"] = "friends"
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)


class ProfileStats(DomainModel):
    """Counters sub-document."""

    score: int = Field(default=0, ge=0)
    shared_count: int = Field(default=0, ge=0)
    friends_count: int = Field(default=0, ge=0)
    stories_posted: int = Field(default=0, ge=0)


class LinkedAccount(DomainModel):
    """External provider identity linked to a profile."""

    id: str
    username: str
    verified: bool = False


class Profile(DomainModel):
    """Profile aggregate root - provider-agnostic."""

    id: ProfileId
    email: str
    handle: Handle
    display_name: str
    avatar: Optional[str] = None
    bio: Optional[str] = None
    is_online: bool = False
    last_active: datetime = Field(default_factory=utcnow)
    settings: ProfileSettings = Field(default_factory=ProfileSettings)
    stats: ProfileStats = Field(default_factory=ProfileStats)
    social_accounts: dict[AuthProvider, LinkedAccount] = Field(default_factory=dict)
    auth_provider: Optional[AuthProvider] = None  # Provider that created the profile
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def link_account(self, provider: AuthProvider, account: LinkedAccount) -> "Profile":
        """Return a copy with `account` recorded under `provider`."""
        accounts = {**self.social_accounts, provider: account}
        return self.model_copy(update={"social_accounts": accounts})
