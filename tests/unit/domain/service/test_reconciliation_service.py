"""Unit tests for IdentityReconciliationEngine."""

import asyncio

import pytest
from dishka import AsyncContainer

from passage.adapter.authority import InMemoryCredentialAuthority
from passage.config import BridgeSettings, HandleSettings
from passage.domain.error import RepositoryError
from passage.domain.model.profile import Profile
from passage.domain.repository import ProfileRepository
from passage.domain.service import (
    CredentialAuthority,
    CredentialBridge,
    HandleAllocator,
    IdentityReconciliationEngine,
    ProfileService,
)
from passage.domain.value import AuthProvider, ErrorKind, Handle
from passage.persistence.repository.inmemory import InMemoryProfileRepository
from tests.factories import make_identity, make_profile
from tests.harness import create_env_fixture

# Unit test fixture
unit_env = create_env_fixture()


async def components(
    env: AsyncContainer,
) -> tuple[IdentityReconciliationEngine, InMemoryCredentialAuthority, InMemoryProfileRepository]:
    engine = await env.get(IdentityReconciliationEngine)
    authority = await env.get(CredentialAuthority)
    repo = await env.get(ProfileRepository)
    return engine, authority, repo


class TestFederatedSignIn:
    """Tests for IdentityReconciliationEngine.sign_in_with_identity()."""

    @pytest.mark.asyncio
    async def test_first_sign_in_creates_account_and_profile(self, unit_env):
        engine, authority, repo = await components(unit_env)

        result = await engine.sign_in_with_identity(make_identity())

        assert result.ok
        assert result.provider == AuthProvider.TWITTER
        profile = result.profile
        assert profile.id == result.session.user_id
        assert profile.handle == Handle("alice")
        assert profile.email == "alice@example.com"
        assert profile.auth_provider == AuthProvider.TWITTER
        assert profile.is_online is True
        assert profile.social_accounts[AuthProvider.TWITTER].id == "12345"
        # The authority account holds the bridge marker, not a real password
        assert authority.accounts["alice@example.com"].secret == "twitter-federated"
        assert len(repo.profiles) == 1

    @pytest.mark.asyncio
    async def test_second_provider_links_to_existing_profile(self, unit_env):
        """Same e-mail through a second provider lands on the same profile."""
        engine, authority, repo = await components(unit_env)
        first = await engine.sign_in_with_identity(make_identity())

        second = await engine.sign_in_with_identity(
            make_identity(
                provider=AuthProvider.GOOGLE,
                provider_user_id="g-777",
                handle="alice",
            )
        )

        assert second.ok
        assert second.profile.id == first.profile.id
        assert second.session.user_id == first.profile.id
        assert set(second.profile.social_accounts) == {
            AuthProvider.TWITTER,
            AuthProvider.GOOGLE,
        }
        assert len(repo.profiles) == 1
        assert len(authority.accounts) == 1
        # Current provider's marker first, then the creating provider's
        assert [s for _, s in authority.sign_in_attempts[-2:]] == [
            "google-federated",
            "twitter-federated",
        ]

    @pytest.mark.asyncio
    async def test_repeat_sign_in_is_idempotent(self, unit_env):
        engine, _, repo = await components(unit_env)

        first = await engine.sign_in_with_identity(make_identity())
        second = await engine.sign_in_with_identity(make_identity())

        assert first.profile.id == second.profile.id
        assert second.profile.handle == Handle("alice")
        assert len(repo.profiles) == 1

    @pytest.mark.asyncio
    async def test_concurrent_first_sign_ins_create_one_profile(self, unit_env):
        """Two racing sign-ins for one new identity converge on one profile."""
        engine, authority, repo = await components(unit_env)
        identity = make_identity(handle="bob", email="bob@example.com")

        first, second = await asyncio.gather(
            engine.sign_in_with_identity(identity),
            engine.sign_in_with_identity(identity),
        )

        assert first.ok and second.ok
        assert first.profile.id == second.profile.id
        assert len(authority.accounts) == 1
        assert len(repo.profiles) == 1
        assert repo.profiles[0].handle == Handle("bob")

    @pytest.mark.asyncio
    async def test_concurrent_users_wanting_same_handle_get_distinct_handles(
        self, unit_env
    ):
        engine, _, repo = await components(unit_env)

        first, second = await asyncio.gather(
            engine.sign_in_with_identity(
                make_identity(provider_user_id="1", handle="carol", email="c1@example.com")
            ),
            engine.sign_in_with_identity(
                make_identity(provider_user_id="2", handle="carol", email="c2@example.com")
            ),
        )

        assert first.ok and second.ok
        handles = {first.profile.handle.root, second.profile.handle.root}
        assert len(handles) == 2
        assert "carol" in handles
        assert len(repo.profiles) == 2

    @pytest.mark.asyncio
    async def test_taken_handle_gets_suffix(self, unit_env):
        engine, _, repo = await components(unit_env)
        await repo.insert(make_profile("alice", "someone@example.com"))

        result = await engine.sign_in_with_identity(make_identity())

        assert result.profile.handle == Handle("alice_1")

    @pytest.mark.asyncio
    async def test_identity_without_email_gets_placeholder(self, unit_env):
        engine, _, _ = await components(unit_env)

        result = await engine.sign_in_with_identity(
            make_identity(provider_user_id="ABC", email=None)
        )

        assert result.ok
        assert result.profile.email == "twitter.abc@federated.passage.invalid"

    @pytest.mark.asyncio
    async def test_email_owned_by_password_account_is_exhausted(self, unit_env):
        """A real password account is never taken over by a federated marker."""
        engine, authority, repo = await components(unit_env)
        authority.seed("dave@example.com", "dave-password")

        result = await engine.sign_in_with_identity(
            make_identity(handle="dave", email="dave@example.com")
        )

        assert not result.ok
        assert result.error_kind == ErrorKind.BRIDGE_EXHAUSTED
        assert repo.profiles == []

    @pytest.mark.asyncio
    async def test_authority_offline(self, unit_env):
        engine, authority, repo = await components(unit_env)
        authority.online = False

        result = await engine.sign_in_with_identity(make_identity())

        assert result.error_kind == ErrorKind.NETWORK_UNAVAILABLE
        assert repo.profiles == []


class TestPasswordSignIn:
    """Tests for IdentityReconciliationEngine.sign_in_with_password()."""

    @pytest.mark.asyncio
    async def test_creates_basic_profile_from_metadata(self, unit_env):
        engine, authority, _ = await components(unit_env)
        user_id = authority.seed(
            "frank@example.com", "pw", metadata={"handle": "frankie", "display_name": "Frank"}
        )

        result = await engine.sign_in_with_password("frank@example.com", "pw")

        assert result.ok
        assert result.profile.id == user_id
        assert result.profile.handle == Handle("frankie")
        assert result.profile.display_name == "Frank"
        assert result.provider is None

    @pytest.mark.asyncio
    async def test_existing_profile_marked_online(self, unit_env):
        engine, authority, repo = await components(unit_env)
        user_id = authority.seed("gina@example.com", "pw")
        await repo.insert(make_profile("gina", "gina@example.com", profile_id=user_id))

        result = await engine.sign_in_with_password("gina@example.com", "pw")

        assert result.profile.id == user_id
        assert result.profile.is_online is True

    @pytest.mark.asyncio
    async def test_wrong_password(self, unit_env):
        engine, authority, _ = await components(unit_env)
        authority.seed("gina@example.com", "pw")

        result = await engine.sign_in_with_password("gina@example.com", "bad")

        assert result.error_kind == ErrorKind.INVALID_CREDENTIALS
        assert result.message == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_legacy_marker_fallback(self, unit_env):
        """Accounts created by an old federated flow still sign in."""
        engine, authority, _ = await components(unit_env)
        user_id = authority.seed("hana@example.com", "apple-federated")

        result = await engine.sign_in_with_password("hana@example.com", "whatever")

        assert result.ok
        assert result.session.user_id == user_id
        assert [s for _, s in authority.sign_in_attempts] == [
            "whatever",
            "google-federated",
            "apple-federated",
        ]

    @pytest.mark.asyncio
    async def test_legacy_fallback_can_be_disabled(self):
        authority = InMemoryCredentialAuthority()
        authority.seed("hana@example.com", "apple-federated")
        engine = make_engine(
            authority,
            InMemoryProfileRepository(),
            BridgeSettings(legacy_password_fallback=False),
        )

        result = await engine.sign_in_with_password("hana@example.com", "whatever")

        assert result.error_kind == ErrorKind.INVALID_CREDENTIALS
        assert len(authority.sign_in_attempts) == 1


class TestRegister:
    """Tests for IdentityReconciliationEngine.register()."""

    @pytest.mark.asyncio
    async def test_registers_with_chosen_handle(self, unit_env):
        engine, authority, _ = await components(unit_env)

        result = await engine.register("ivy@example.com", "pw", "Ivy_J", "Ivy")

        assert result.ok
        assert result.profile.handle == Handle("ivy_j")
        assert authority.accounts["ivy@example.com"].metadata["handle"] == "ivy_j"

    @pytest.mark.asyncio
    async def test_handle_taken(self, unit_env):
        engine, authority, repo = await components(unit_env)
        await repo.insert(make_profile("ivy", "other@example.com"))

        result = await engine.register("ivy@example.com", "pw", "ivy", "Ivy")

        assert result.message == "Username is already taken"
        assert authority.accounts == {}

    @pytest.mark.asyncio
    async def test_invalid_handle(self, unit_env):
        engine, _, _ = await components(unit_env)

        result = await engine.register("ivy@example.com", "pw", "ivy.j!", "Ivy")

        assert result.error_kind == ErrorKind.PROFILE_CREATION_FAILED
        assert "letters, digits and underscores" in result.message

    @pytest.mark.asyncio
    async def test_email_already_registered(self, unit_env):
        engine, authority, _ = await components(unit_env)
        authority.seed("ivy@example.com", "pw")

        result = await engine.register("ivy@example.com", "pw2", "ivy", "Ivy")

        assert result.message == "An account with this email is already registered"


class FailingProfileRepository(InMemoryProfileRepository):
    async def insert(self, profile: Profile) -> Profile:
        raise RepositoryError("connection reset")


def make_engine(
    authority: InMemoryCredentialAuthority,
    repo: InMemoryProfileRepository,
    bridge_settings: BridgeSettings | None = None,
) -> IdentityReconciliationEngine:
    bridge_settings = bridge_settings or BridgeSettings()
    return IdentityReconciliationEngine(
        authority=authority,
        profile_repository=repo,
        profile_service=ProfileService(repo),
        bridge=CredentialBridge(authority, bridge_settings),
        handle_allocator=HandleAllocator(repo, HandleSettings()),
        settings=bridge_settings,
    )


class TestProfileCreationFailure:
    @pytest.mark.asyncio
    async def test_directory_failure_is_reported(self):
        engine = make_engine(InMemoryCredentialAuthority(), FailingProfileRepository())

        result = await engine.sign_in_with_identity(make_identity())

        assert result.error_kind == ErrorKind.PROFILE_CREATION_FAILED
        assert result.profile is None


class LookupFailingRepository(InMemoryProfileRepository):
    async def find_by_id(self, profile_id):
        raise RepositoryError("connection reset")

    async def find_by_email(self, email):
        raise RepositoryError("connection reset")

    async def find_by_handle(self, handle):
        raise RepositoryError("connection reset")


class TestDirectoryUnavailable:
    """Lookup failures become results instead of escaping."""

    @pytest.mark.asyncio
    async def test_federated_sign_in(self):
        engine = make_engine(InMemoryCredentialAuthority(), LookupFailingRepository())

        result = await engine.sign_in_with_identity(make_identity())

        assert not result.ok
        assert result.error_kind == ErrorKind.NETWORK_UNAVAILABLE
        assert result.message == "Profile directory is unavailable"

    @pytest.mark.asyncio
    async def test_password_sign_in(self):
        authority = InMemoryCredentialAuthority()
        authority.seed("a@example.com", "pw")
        engine = make_engine(authority, LookupFailingRepository())

        result = await engine.sign_in_with_password("a@example.com", "pw")

        assert result.error_kind == ErrorKind.NETWORK_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_resume_session(self):
        authority = InMemoryCredentialAuthority()
        authority.seed("a@example.com", "pw")
        session = await authority.sign_in("a@example.com", "pw")
        engine = make_engine(authority, LookupFailingRepository())

        result = await engine.resume_session(session)

        assert result.error_kind == ErrorKind.NETWORK_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_register(self):
        engine = make_engine(InMemoryCredentialAuthority(), LookupFailingRepository())

        result = await engine.register("ivy@example.com", "pw", "ivy", "Ivy")

        assert result.error_kind == ErrorKind.NETWORK_UNAVAILABLE


class TestAuthorityMetadata:
    @pytest.mark.asyncio
    async def test_unknown_provider_tag_is_ignored(self, unit_env):
        engine, authority, repo = await components(unit_env)
        authority.seed(
            "gh@example.com", "pw", metadata={"provider": "github", "handle": "octo"}
        )

        result = await engine.sign_in_with_password("gh@example.com", "pw")

        assert result.ok
        assert result.profile.handle == Handle("octo")
        assert result.profile.auth_provider is None
