"""Identity reconciliation domain service.

Turns a proof of identity (an authority password session or a federated
provider identity) into exactly one profile plus one authority session.

There are no locks here. Two requests racing to create the same account
are resolved by the profile directory's uniqueness constraints:

- id conflict on insert: the authority row was created concurrently and the
  other request already inserted its profile. Re-fetch and use it.
- handle conflict on insert: another profile took the handle between
  allocation and insert. Retry once with a timestamped handle.
- anything else: ProfileCreationFailed.
"""

from typing import Any

import logfire
from pydantic import ValidationError as PydanticValidationError

from passage.config import BridgeSettings
from passage.domain.error import (
    SECURITY_RELEVANT,
    AlreadyRegisteredError,
    AuthError,
    DomainError,
    InvalidCredentialsError,
    NetworkUnavailableError,
    NotFoundError,
    ProfileCreationFailedError,
    RepositoryError,
    UniqueViolationError,
)
from passage.domain.model.profile import LinkedAccount, Profile, utcnow
from passage.domain.model.reconciliation import ReconciliationResult
from passage.domain.repository import ProfileRepository
from passage.domain.service.authority import CredentialAuthority
from passage.domain.service.base import Service
from passage.domain.service.credential_bridge import CredentialBridge
from passage.domain.service.handle_allocator import HandleAllocator
from passage.domain.service.profile_service import ProfileService
from passage.domain.value import (
    AuthoritySession,
    AuthProvider,
    Handle,
    ProviderIdentity,
)


class IdentityReconciliationEngine(Service):
    """Finds or creates the canonical profile behind a proof of identity.

    Every public method returns a ReconciliationResult. AuthErrors raised by
    collaborators become failures of their own kind; profile directory
    failures become NetworkUnavailable. Neither escapes.
    """

    def __init__(
        self,
        authority: CredentialAuthority,
        profile_repository: ProfileRepository,
        profile_service: ProfileService,
        bridge: CredentialBridge,
        handle_allocator: HandleAllocator,
        settings: BridgeSettings,
    ) -> None:
        """Initialize reconciliation engine.

        Args:
            authority: Credential authority
            profile_repository: Profile directory
            profile_service: Profile operations (online flag, linking)
            bridge: Credential bridge for federated identities
            handle_allocator: Handle allocator for new profiles
            settings: Bridge settings (legacy fallback flag, placeholder domain)
        """
        self.authority = authority
        self.profile_repository = profile_repository
        self.profile_service = profile_service
        self.bridge = bridge
        self.handle_allocator = handle_allocator
        self.settings = settings

    # -- entry points -------------------------------------------------------

    async def sign_in_with_password(
        self, email: str, password: str
    ) -> ReconciliationResult:
        """Direct credential sign-in.

        The entered password is tried first. Only when the authority rejects
        it, and the legacy fallback is enabled, are the bridge markers tried
        in fixed provider order.
        """
        with logfire.span("reconciliation_service.sign_in_with_password", email=email):
            try:
                session = await self._password_session(email, password)
                return await self._resume(session)
            except AuthError as e:
                return self._failure(e)
            except (RepositoryError, NotFoundError) as e:
                return self._directory_failure(e)

    async def sign_in_with_identity(
        self, identity: ProviderIdentity
    ) -> ReconciliationResult:
        """Federated sign-in with an identity asserted by a provider."""
        with logfire.span(
            "reconciliation_service.sign_in_with_identity",
            provider=identity.provider.value,
            provider_user_id=identity.provider_user_id,
        ):
            try:
                profile, session = await self._reconcile_identity(identity)
            except AuthError as e:
                return self._failure(e)
            except (RepositoryError, NotFoundError) as e:
                return self._directory_failure(e)
            return ReconciliationResult.success(
                profile, session, provider=identity.provider
            )

    async def resume_session(
        self, session: AuthoritySession, provider: AuthProvider | None = None
    ) -> ReconciliationResult:
        """Load, or lazily create, the profile for an existing authority session."""
        with logfire.span(
            "reconciliation_service.resume_session", user_id=str(session.user_id)
        ):
            try:
                return await self._resume(session, provider)
            except AuthError as e:
                return self._failure(e)
            except (RepositoryError, NotFoundError) as e:
                return self._directory_failure(e)

    async def register(
        self, email: str, password: str, handle: str, display_name: str
    ) -> ReconciliationResult:
        """Password sign-up with an explicitly chosen handle."""
        with logfire.span("reconciliation_service.register", email=email, handle=handle):
            try:
                return await self._register(email, password, handle, display_name)
            except AuthError as e:
                return self._failure(e)
            except (RepositoryError, NotFoundError) as e:
                return self._directory_failure(e)

    # -- flows --------------------------------------------------------------

    async def _password_session(self, email: str, password: str) -> AuthoritySession:
        try:
            return await self.authority.sign_in(email, password)
        except InvalidCredentialsError:
            if not self.settings.legacy_password_fallback:
                raise

        found = await self.bridge.sign_in_with_markers(
            email, self.bridge.fallback_order()
        )
        if found is None:
            raise InvalidCredentialsError("Invalid email or password")

        session, provider = found
        logfire.warn(
            "Password sign-in satisfied by legacy bridge marker",
            email=email,
            provider=provider.value,
        )
        return session

    async def _resume(
        self, session: AuthoritySession, provider: AuthProvider | None = None
    ) -> ReconciliationResult:
        profile = await self.profile_repository.find_by_id(session.user_id)
        if profile is None:
            logfire.info(
                "No profile for authority user, creating one",
                user_id=str(session.user_id),
            )
            profile = await self._create_basic_profile(session)
        profile = await self.profile_service.mark_online(profile)
        return ReconciliationResult.success(profile, session, provider=provider)

    async def _reconcile_identity(
        self, identity: ProviderIdentity
    ) -> tuple[Profile, AuthoritySession]:
        provider = identity.provider
        email = identity.email or self.placeholder_email(identity)
        account = LinkedAccount(
            id=identity.provider_user_id,
            username=identity.handle,
            verified=identity.verified,
        )
        metadata = self._identity_metadata(identity)

        existing = await self.profile_repository.find_by_email(email)
        if existing:
            session = await self._bridge_existing(existing, provider, metadata)
            if session.user_id != existing.id:
                logfire.warn(
                    "Authority user does not match profile found by email",
                    profile_id=str(existing.id),
                    user_id=str(session.user_id),
                    email=email,
                )
            profile = await self.profile_service.link_account(existing, provider, account)
            logfire.info(
                "Federated sign-in reconciled to existing profile",
                profile_id=str(profile.id),
                provider=provider.value,
            )
            return profile, session

        base = self.handle_allocator.derive_base(identity)
        handle = await self.handle_allocator.allocate(base)
        result = await self.bridge.sign_in_or_register(
            email, self.bridge.derive(provider, identity.provider_user_id), metadata
        )

        # The authority account may predate this call (bridge sign-in) and
        # already have a profile under another e-mail casing or a lost race.
        profile = await self.profile_repository.find_by_id(result.session.user_id)
        if profile is None:
            now = utcnow()
            profile = await self._insert_profile(
                Profile(
                    id=result.session.user_id,
                    email=email,
                    handle=handle,
                    display_name=identity.display_name or identity.handle,
                    avatar=identity.avatar_url,
                    is_online=True,
                    last_active=now,
                    social_accounts={provider: account},
                    auth_provider=provider,
                    created_at=now,
                    updated_at=now,
                ),
                base=base,
            )
            logfire.info(
                "Profile created from federated identity",
                profile_id=str(profile.id),
                handle=profile.handle.root,
                provider=provider.value,
            )

        profile = await self.profile_service.link_account(profile, provider, account)
        return profile, result.session

    async def _bridge_existing(
        self,
        profile: Profile,
        provider: AuthProvider,
        metadata: dict[str, Any],
    ) -> AuthoritySession:
        """Obtain a session for an e-mail that already has a profile.

        Markers tried, in order: the current provider, the providers already
        linked to the profile (their markers are known to this account), then
        the legacy providers if the fallback is enabled. Registration is the
        last resort.
        """
        order: list[AuthProvider] = [provider]
        if profile.auth_provider:
            order.append(profile.auth_provider)
        order.extend(profile.social_accounts)
        if self.settings.legacy_password_fallback:
            order.extend(self.bridge.fallback_order())
        order = list(dict.fromkeys(order))

        found = await self.bridge.sign_in_with_markers(profile.email, order)
        if found is not None:
            return found[0]

        result = await self.bridge.sign_in_or_register(
            profile.email, self.bridge.derive(provider), metadata
        )
        return result.session

    async def _register(
        self, email: str, password: str, handle: str, display_name: str
    ) -> ReconciliationResult:
        try:
            requested = Handle(handle.strip().lower())
        except PydanticValidationError:
            return ReconciliationResult.failure(
                ProfileCreationFailedError.kind,
                "Username may only contain letters, digits and underscores",
            )

        if await self.profile_repository.handle_exists(requested):
            return ReconciliationResult.failure(
                ProfileCreationFailedError.kind, "Username is already taken"
            )

        try:
            session = await self.authority.register(
                email,
                password,
                {"handle": requested.root, "display_name": display_name},
            )
        except AlreadyRegisteredError:
            return ReconciliationResult.failure(
                ProfileCreationFailedError.kind,
                "An account with this email is already registered",
            )

        now = utcnow()
        profile = await self._insert_profile(
            Profile(
                id=session.user_id,
                email=email,
                handle=requested,
                display_name=display_name or requested.root,
                is_online=True,
                last_active=now,
                created_at=now,
                updated_at=now,
            ),
            base=None,
        )
        logfire.info(
            "Profile registered", profile_id=str(profile.id), handle=profile.handle.root
        )
        return ReconciliationResult.success(profile, session)

    # -- profile creation ---------------------------------------------------

    async def _create_basic_profile(self, session: AuthoritySession) -> Profile:
        metadata = session.user_metadata
        local_part = session.email.split("@")[0] if session.email else ""
        base = metadata.get("handle") or local_part
        handle = await self.handle_allocator.allocate(base)
        now = utcnow()
        provider = self._known_provider(metadata.get("provider"))
        return await self._insert_profile(
            Profile(
                id=session.user_id,
                email=session.email,
                handle=handle,
                display_name=metadata.get("display_name") or local_part or handle.root,
                avatar=metadata.get("avatar_url"),
                is_online=True,
                last_active=now,
                auth_provider=provider,
                created_at=now,
                updated_at=now,
            ),
            base=base,
        )

    async def _insert_profile(self, profile: Profile, base: str | None) -> Profile:
        """Insert `profile`, resolving the two benign uniqueness races.

        Args:
            profile: Profile to insert
            base: Handle base for the timestamped retry, or None when the
                handle was chosen by the user and must not be changed
        """
        try:
            return await self.profile_repository.insert(profile)
        except UniqueViolationError as e:
            if e.field == "id":
                return await self._existing_after_race(profile)
            if base is None:
                raise ProfileCreationFailedError("Username is already taken") from e
            logfire.info(
                "Handle taken at insert, retrying with timestamp",
                handle=profile.handle.root,
            )
        except RepositoryError as e:
            logfire.error("Profile insert failed", profile_id=str(profile.id), error=str(e))
            raise ProfileCreationFailedError("Could not create profile") from e

        retry = profile.model_copy(
            update={"handle": self.handle_allocator.timestamped(base)}
        )
        try:
            return await self.profile_repository.insert(retry)
        except UniqueViolationError as e:
            if e.field == "id":
                return await self._existing_after_race(retry)
            logfire.error(
                "Timestamped handle collided", handle=retry.handle.root
            )
            raise ProfileCreationFailedError("Could not create profile") from e
        except RepositoryError as e:
            logfire.error("Profile insert failed", profile_id=str(profile.id), error=str(e))
            raise ProfileCreationFailedError("Could not create profile") from e

    async def _existing_after_race(self, profile: Profile) -> Profile:
        existing = await self.profile_repository.find_by_id(profile.id)
        if existing is None:
            raise ProfileCreationFailedError("Could not create profile")
        logfire.info(
            "Profile created concurrently, using existing",
            profile_id=str(profile.id),
            handle=existing.handle.root,
        )
        return existing

    # -- helpers ------------------------------------------------------------

    def placeholder_email(self, identity: ProviderIdentity) -> str:
        """Synthesized e-mail for providers that withhold one."""
        return (
            f"{identity.provider.value}.{identity.provider_user_id.lower()}"
            f"@{self.settings.placeholder_email_domain}"
        )

    @staticmethod
    def _known_provider(tag: Any) -> AuthProvider | None:
        """Provider recorded in authority metadata; None for tags this service does not know."""
        try:
            return AuthProvider(tag) if tag else None
        except ValueError:
            logfire.warn("Unknown provider in authority metadata", provider=str(tag))
            return None

    @staticmethod
    def _identity_metadata(identity: ProviderIdentity) -> dict[str, Any]:
        return {
            "provider": identity.provider.value,
            "provider_user_id": identity.provider_user_id,
            "handle": identity.handle,
            "display_name": identity.display_name,
            "avatar_url": identity.avatar_url,
        }

    @staticmethod
    def _failure(error: AuthError) -> ReconciliationResult:
        if error.kind in SECURITY_RELEVANT:
            logfire.warn(
                "Reconciliation refused",
                kind=error.kind.value,
                reason=error.message,
                security=True,
            )
        else:
            logfire.info(
                "Reconciliation failed", kind=error.kind.value, reason=error.message
            )
        return ReconciliationResult.failure(error.kind, error.message)

    @classmethod
    def _directory_failure(cls, error: DomainError) -> ReconciliationResult:
        logfire.error("Profile directory failure", error=str(error))
        return cls._failure(
            NetworkUnavailableError("Profile directory is unavailable")
        )
