"""PostgreSQL repository implementations."""

from passage.persistence.repository.profile import PostgresProfileRepository

__all__ = ["PostgresProfileRepository"]
