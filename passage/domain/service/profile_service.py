"""Profile domain service."""

from typing import Any

import logfire
from pydantic import ValidationError as PydanticValidationError

from passage.domain.error import NotFoundError, ValidationError
from passage.domain.model.profile import (
    LinkedAccount,
    Profile,
    ProfileSettings,
    utcnow,
)
from passage.domain.repository import ProfileRepository
from passage.domain.value import AuthProvider, Handle, ProfileId

# Fields an owner may change through a profile edit
EDITABLE_FIELDS = frozenset(
    {"display_name", "avatar", "bio", "handle", "settings"}
)


class ProfileService:
    """Domain service for profile operations."""

    def __init__(self, profile_repository: ProfileRepository) -> None:
        """Initialize profile service.

        Args:
            profile_repository: Profile directory
        """
        self.profile_repository = profile_repository

    async def get_by_id(self, profile_id: ProfileId) -> Profile:
        """Get profile by ID.

        Raises:
            NotFoundError: If profile not found
        """
        with logfire.span("profile_service.get_by_id", profile_id=str(profile_id)):
            profile = await self.profile_repository.find_by_id(profile_id)
            if not profile:
                logfire.warn("Profile not found", profile_id=str(profile_id))
                raise NotFoundError("Profile", str(profile_id))
            return profile

    async def find_by_id(self, profile_id: ProfileId) -> Profile | None:
        """Get profile by ID, or None."""
        return await self.profile_repository.find_by_id(profile_id)

    async def find_by_email(self, email: str) -> Profile | None:
        """Get profile by e-mail, or None."""
        with logfire.span("profile_service.find_by_email", email=email):
            profile = await self.profile_repository.find_by_email(email)
            if profile:
                logfire.info("Profile found", email=email, profile_id=str(profile.id))
            return profile

    async def handle_taken(self, handle: Handle) -> bool:
        """Check whether `handle` belongs to any profile."""
        return await self.profile_repository.handle_exists(handle)

    async def mark_online(self, profile: Profile) -> Profile:
        """Record a sign-in: online flag and last-active timestamp.

        Returns the input profile unchanged if it vanished from the directory.
        """
        now = utcnow()
        updated = await self.profile_repository.update(
            profile.id, is_online=True, last_active=now, updated_at=now
        )
        return updated or profile

    async def mark_offline(self, profile_id: ProfileId) -> None:
        """Record a sign-out."""
        now = utcnow()
        await self.profile_repository.update(
            profile_id, is_online=False, last_active=now, updated_at=now
        )
        logfire.info("Profile marked offline", profile_id=str(profile_id))

    async def link_account(
        self, profile: Profile, provider: AuthProvider, account: LinkedAccount
    ) -> Profile:
        """Record `account` in the profile's social accounts and mark it online."""
        with logfire.span(
            "profile_service.link_account",
            profile_id=str(profile.id),
            provider=provider.value,
        ):
            linked = profile.link_account(provider, account)
            now = utcnow()
            updated = await self.profile_repository.update(
                profile.id,
                social_accounts=linked.social_accounts,
                is_online=True,
                last_active=now,
                updated_at=now,
            )
            if updated is None:
                raise NotFoundError("Profile", str(profile.id))
            logfire.info(
                "Provider account linked",
                profile_id=str(profile.id),
                provider=provider.value,
                linked=sorted(p.value for p in updated.social_accounts),
            )
            return updated

    async def update_profile(
        self, profile_id: ProfileId, changes: dict[str, Any]
    ) -> Profile:
        """Apply an owner edit.

        Raises:
            ValidationError: If a non-editable field is present
            NotFoundError: If profile not found
            UniqueViolationError: If the new handle is taken
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields not editable: {', '.join(sorted(unknown))}")
        changes = self._coerce(changes)

        with logfire.span("profile_service.update_profile", profile_id=str(profile_id)):
            updated = await self.profile_repository.update(
                profile_id, **changes, updated_at=utcnow()
            )
            if updated is None:
                raise NotFoundError("Profile", str(profile_id))
            logfire.info(
                "Profile updated", profile_id=str(profile_id), fields=sorted(changes)
            )
            return updated

    @staticmethod
    def _coerce(changes: dict[str, Any]) -> dict[str, Any]:
        """Validate edited values into their domain types.

        Raises:
            ValidationError: If a value is malformed
        """
        coerced = dict(changes)
        try:
            if "handle" in coerced:
                coerced["handle"] = Handle(str(coerced["handle"]).strip().lower())
            if "settings" in coerced:
                coerced["settings"] = ProfileSettings.model_validate(coerced["settings"])
        except PydanticValidationError as e:
            raise ValidationError(str(e)) from e
        if "display_name" in coerced and not str(coerced["display_name"]).strip():
            raise ValidationError("Display name cannot be empty")
        return coerced
