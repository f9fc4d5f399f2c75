"""Integration tests for PostgresProfileRepository.

Assume a migrated PostgreSQL database configured through the environment.
Every test uses fresh ids and handles so runs do not collide.
"""

from uuid import uuid4

import pytest

from passage.domain.error import UniqueViolationError
from passage.domain.model.profile import LinkedAccount
from passage.domain.repository import ProfileRepository
from passage.domain.value import AuthProvider, Handle
from tests.factories import make_profile
from tests.harness import create_env_fixture

# Integration test fixture
integration_env = create_env_fixture(unmock={"persistence"})


def unique_handle() -> str:
    return f"it_{uuid4().hex[:12]}"


class TestProfileRepositoryIntegration:
    @pytest.mark.asyncio
    async def test_insert_and_find(self, integration_env):
        # Arrange
        repo = await integration_env.get(ProfileRepository)
        handle = unique_handle()
        profile = make_profile(handle, f"{handle}@Example.com")

        # Act
        await repo.insert(profile)

        # Assert
        by_id = await repo.find_by_id(profile.id)
        by_email = await repo.find_by_email(f"{handle}@example.COM")
        assert by_id.handle == Handle(handle)
        assert by_email.id == profile.id
        assert await repo.handle_exists(Handle(handle))

    @pytest.mark.asyncio
    async def test_duplicate_handle_names_constraint(self, integration_env):
        repo = await integration_env.get(ProfileRepository)
        handle = unique_handle()
        await repo.insert(make_profile(handle, f"{handle}@example.com"))

        with pytest.raises(UniqueViolationError) as exc_info:
            await repo.insert(make_profile(handle, f"other.{handle}@example.com"))

        assert exc_info.value.field == "handle"

    @pytest.mark.asyncio
    async def test_duplicate_id_names_constraint(self, integration_env):
        repo = await integration_env.get(ProfileRepository)
        profile = make_profile(unique_handle(), "x@example.com")
        await repo.insert(profile)

        with pytest.raises(UniqueViolationError) as exc_info:
            await repo.insert(
                make_profile(unique_handle(), "y@example.com", profile_id=profile.id)
            )

        assert exc_info.value.field == "id"

    @pytest.mark.asyncio
    async def test_update_round_trips_social_accounts(self, integration_env):
        repo = await integration_env.get(ProfileRepository)
        profile = make_profile(unique_handle(), "z@example.com")
        await repo.insert(profile)
        account = LinkedAccount(id="12345", username="alice", verified=True)

        updated = await repo.update(
            profile.id,
            social_accounts={AuthProvider.TWITTER: account},
            is_online=True,
        )

        assert updated.social_accounts == {AuthProvider.TWITTER: account}
        assert updated.is_online is True
        assert (await repo.find_by_id(profile.id)).social_accounts == updated.social_accounts

    @pytest.mark.asyncio
    async def test_update_missing_profile(self, integration_env):
        repo = await integration_env.get(ProfileRepository)

        assert await repo.update(uuid4(), bio="hi") is None
