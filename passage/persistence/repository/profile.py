"""PostgreSQL implementation of Profile repository."""

from typing import Any, Optional

import logfire
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from passage.domain.error import RepositoryError, UniqueViolationError
from passage.domain.model.profile import Profile
from passage.domain.repository import ProfileRepository
from passage.domain.value import Handle, ProfileId
from passage.persistence.database import get_session, transaction
from passage.persistence.mappers import (
    changes_to_values,
    profile_to_dict,
    row_to_profile,
)
from passage.persistence.tables import (
    PROFILES_HANDLE_KEY,
    PROFILES_PKEY,
    profiles_table,
)


def _violated_constraint(error: IntegrityError) -> Optional[str]:
    """Name of the constraint behind an IntegrityError, if recognisable."""
    for candidate in (error.orig, getattr(error.orig, "__cause__", None)):
        name = getattr(candidate, "constraint_name", None)
        if name:
            return name
    message = str(error.orig)
    for name in (PROFILES_PKEY, PROFILES_HANDLE_KEY):
        if name in message:
            return name
    return None


class PostgresProfileRepository(ProfileRepository):
    """PostgreSQL implementation of ProfileRepository.

    Each operation runs in its own session and commits on its own: an insert
    that loses a uniqueness race must fail immediately and visibly so the
    caller can resolve it.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Initialize repository with a session factory.

        Args:
            session_factory: SQLAlchemy async session factory
        """
        self.session_factory = session_factory

    async def _first(self, stmt: Any) -> Optional[Profile]:
        try:
            async with get_session(self.session_factory) as session:
                result = await session.execute(stmt)
                row = result.mappings().first()
        except SQLAlchemyError as e:
            raise RepositoryError(str(e)) from e
        return row_to_profile(dict(row)) if row else None

    async def find_by_id(self, profile_id: ProfileId) -> Optional[Profile]:
        """Find a profile by ID.

        Args:
            profile_id: Profile ID to look up

        Returns:
            Profile if found, None otherwise
        """
        stmt = select(profiles_table).where(profiles_table.c.id == profile_id)
        return await self._first(stmt)

    async def find_by_email(self, email: str) -> Optional[Profile]:
        """Find a profile by e-mail, ignoring case."""
        stmt = (
            select(profiles_table)
            .where(func.lower(profiles_table.c.email) == email.lower())
            .order_by(profiles_table.c.created_at)
        )
        return await self._first(stmt)

    async def find_by_handle(self, handle: Handle) -> Optional[Profile]:
        """Find a profile by its handle."""
        stmt = select(profiles_table).where(profiles_table.c.handle == handle.root)
        return await self._first(stmt)

    async def handle_exists(self, handle: Handle) -> bool:
        stmt = select(profiles_table.c.id).where(profiles_table.c.handle == handle.root)
        try:
            async with get_session(self.session_factory) as session:
                result = await session.execute(stmt)
                return result.first() is not None
        except SQLAlchemyError as e:
            raise RepositoryError(str(e)) from e

    def _translate(self, error: IntegrityError, profile_id: ProfileId, handle: Any) -> Exception:
        constraint = _violated_constraint(error)
        if constraint == PROFILES_PKEY:
            return UniqueViolationError("id", str(profile_id))
        if constraint == PROFILES_HANDLE_KEY:
            return UniqueViolationError("handle", str(handle))
        return RepositoryError(str(error.orig))

    async def insert(self, profile: Profile) -> Profile:
        """Insert a new profile.

        Raises:
            UniqueViolationError: On the primary key or handle constraint
            RepositoryError: On any other database failure
        """
        stmt = profiles_table.insert().values(**profile_to_dict(profile))
        try:
            async with transaction(self.session_factory) as session:
                await session.execute(stmt)
        except IntegrityError as e:
            raise self._translate(e, profile.id, profile.handle.root) from e
        except SQLAlchemyError as e:
            raise RepositoryError(str(e)) from e

        logfire.debug("Profile inserted", profile_id=str(profile.id))
        return profile

    async def update(
        self, profile_id: ProfileId, **changes: Any
    ) -> Optional[Profile]:
        """Apply a partial update and return the stored row.

        Raises:
            UniqueViolationError: If a changed handle is already taken
            RepositoryError: On any other database failure
        """
        if not changes:
            return await self.find_by_id(profile_id)

        values = changes_to_values(changes)
        stmt = (
            profiles_table.update()
            .where(profiles_table.c.id == profile_id)
            .values(**values)
            .returning(profiles_table)
        )
        try:
            async with transaction(self.session_factory) as session:
                result = await session.execute(stmt)
                row = result.mappings().first()
        except IntegrityError as e:
            raise self._translate(e, profile_id, values.get("handle")) from e
        except SQLAlchemyError as e:
            raise RepositoryError(str(e)) from e

        return row_to_profile(dict(row)) if row else None
