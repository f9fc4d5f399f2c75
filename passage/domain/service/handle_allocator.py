"""Handle allocation domain service."""

import re
import time

import logfire

from passage.config import HandleSettings
from passage.domain.repository import ProfileRepository
from passage.domain.service.base import Service
from passage.domain.service.retry import RetryPolicy
from passage.domain.value import Handle, ProviderIdentity

_INVALID_CHARS = re.compile(r"[^a-z0-9_]+")


class HandleAllocator(Service):
    """Produces unique handles for new profiles.

    Uniqueness checks here are advisory: two allocators racing on the same
    base can both pick it. The profile directory's unique constraint is the
    real guarantee, and callers treat a late insert conflict as a reason to
    call `timestamped` rather than as a failure.
    """

    def __init__(
        self, profile_repository: ProfileRepository, settings: HandleSettings
    ) -> None:
        """Initialize handle allocator.

        Args:
            profile_repository: Profile directory used for existence checks
            settings: Handle settings (attempt bound, max length, fallback)
        """
        self.profile_repository = profile_repository
        self.settings = settings
        self._last_timestamp = 0

    def normalize(self, base: str) -> str:
        """Reduce `base` to lowercase alphanumerics and underscore.

        Runs of other characters collapse to a single underscore; leading and
        trailing underscores are dropped. Leaves room for a timestamp suffix
        within the configured maximum length.
        """
        normalized = _INVALID_CHARS.sub("_", base.strip().lower()).strip("_")
        normalized = normalized[: self.settings.max_length].rstrip("_")
        return normalized or self.settings.fallback

    @staticmethod
    def derive_base(identity: ProviderIdentity) -> str:
        """Pick the handle base for a provider identity.

        Provider username first, then the e-mail local part, then the
        display name.
        """
        if identity.handle:
            return identity.handle.lstrip("@")
        if identity.email:
            return identity.email.split("@")[0]
        return identity.display_name or ""

    def suffix_policy(self, base: str) -> RetryPolicy[Handle]:
        """Candidates `base`, `base_1`, ... `base_<max_suffix_attempts>`."""
        return RetryPolicy(
            max_attempts=self.settings.max_suffix_attempts + 1,
            next_candidate=lambda n: Handle(base if n == 0 else f"{base}_{n}"),
        )

    def timestamped(self, base: str) -> Handle:
        """Handle with a monotonically increasing millisecond timestamp suffix.

        Treated as unique for practical purposes.
        """
        normalized = self.normalize(base)
        now = int(time.time() * 1000)
        self._last_timestamp = max(now, self._last_timestamp + 1)
        return Handle(f"{normalized}_{self._last_timestamp}")

    async def allocate(self, base: str) -> Handle:
        """Allocate a handle derived from `base`.

        Args:
            base: Raw handle base (provider username, e-mail local part, ...)

        Returns:
            A handle that was free when checked
        """
        normalized = self.normalize(base)
        with logfire.span("handle_allocator.allocate", base=normalized):
            for candidate in self.suffix_policy(normalized):
                if not await self.profile_repository.handle_exists(candidate):
                    logfire.info("Handle allocated", handle=candidate.root)
                    return candidate

            handle = self.timestamped(normalized)
            logfire.info(
                "Handle suffixes exhausted, using timestamp",
                base=normalized,
                handle=handle.root,
            )
            return handle
