"""In-memory profile repository for testing."""

import asyncio
from typing import Any, Optional

from passage.domain.error import UniqueViolationError
from passage.domain.model.profile import Profile
from passage.domain.repository.profile import ProfileRepository
from passage.domain.value import Handle, ProfileId


class InMemoryProfileRepository(ProfileRepository):
    """In-memory implementation of ProfileRepository for testing.

    Enforces the same uniqueness rules as the database (id first, then
    handle) and yields to the event loop on every call so concurrent
    reconciliations interleave.
    """

    def __init__(self) -> None:
        self._profiles: dict[ProfileId, Profile] = {}

    @property
    def profiles(self) -> list[Profile]:
        return list(self._profiles.values())

    async def find_by_id(self, profile_id: ProfileId) -> Optional[Profile]:
        """Find a profile by ID."""
        await asyncio.sleep(0)
        return self._profiles.get(profile_id)

    async def find_by_email(self, email: str) -> Optional[Profile]:
        """Find a profile by e-mail, ignoring case."""
        await asyncio.sleep(0)
        for profile in self._profiles.values():
            if profile.email.lower() == email.lower():
                return profile
        return None

    async def find_by_handle(self, handle: Handle) -> Optional[Profile]:
        """Find a profile by its handle."""
        await asyncio.sleep(0)
        for profile in self._profiles.values():
            if profile.handle == handle:
                return profile
        return None

    async def insert(self, profile: Profile) -> Profile:
        """Insert a profile, enforcing id and handle uniqueness."""
        await asyncio.sleep(0)
        if profile.id in self._profiles:
            raise UniqueViolationError("id", str(profile.id))
        if any(p.handle == profile.handle for p in self._profiles.values()):
            raise UniqueViolationError("handle", profile.handle.root)
        self._profiles[profile.id] = profile
        return profile

    async def update(
        self, profile_id: ProfileId, **changes: Any
    ) -> Optional[Profile]:
        """Apply a partial update."""
        await asyncio.sleep(0)
        profile = self._profiles.get(profile_id)
        if profile is None:
            return None

        updated = Profile.model_validate({**dict(profile), **changes})
        if updated.handle != profile.handle and any(
            p.handle == updated.handle for p in self._profiles.values()
        ):
            raise UniqueViolationError("handle", updated.handle.root)
        self._profiles[profile_id] = updated
        return updated
