"""Repository interfaces for the Passage domain.

Repository interfaces are defined in the domain layer (dependency inversion).
Implementations live in the persistence layer.
"""

from passage.domain.repository.profile import ProfileRepository

__all__ = ["ProfileRepository"]
