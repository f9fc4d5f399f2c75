"""Profile directory interface."""

from abc import ABC, abstractmethod
from typing import Any, Optional

from passage.domain.model.profile import Profile
from passage.domain.value import Handle, ProfileId


class ProfileRepository(ABC):
    """Profile directory.

    Keyed lookups by id, email and handle; insert guarded by uniqueness
    constraints on id and handle; partial update by id.
    Implementations live in the persistence layer.
    """

    @abstractmethod
    async def find_by_id(self, profile_id: ProfileId) -> Optional[Profile]:
        """Find a profile by its authority user id.

        Args:
            profile_id: The profile's unique identifier

        Returns:
            The profile if found, None otherwise
        """
        pass

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[Profile]:
        """Find a profile by e-mail (case-insensitive).

        Args:
            email: The e-mail address

        Returns:
            The profile if found, None otherwise
        """
        pass

    @abstractmethod
    async def find_by_handle(self, handle: Handle) -> Optional[Profile]:
        """Find a profile by its handle.

        Args:
            handle: The handle

        Returns:
            The profile if found, None otherwise
        """
        pass

    async def handle_exists(self, handle: Handle) -> bool:
        """Check whether a handle is taken."""
        return await self.find_by_handle(handle) is not None

    @abstractmethod
    async def insert(self, profile: Profile) -> Profile:
        """Insert a new profile.

        Args:
            profile: The profile to insert

        Returns:
            The inserted profile

        Raises:
            UniqueViolationError: If the id or the handle is already taken.
                The id constraint is reported first when both collide.
        """
        pass

    @abstractmethod
    async def update(
        self, profile_id: ProfileId, **changes: Any
    ) -> Optional[Profile]:
        """Apply a partial update.

        Args:
            profile_id: The profile to update
            **changes: Profile fields to overwrite

        Returns:
            The updated profile, or None if no profile has that id

        Raises:
            UniqueViolationError: If a changed handle is already taken
        """
        pass
