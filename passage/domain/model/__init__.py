"""Domain model entities for Passage."""

from passage.domain.model.profile import (
    LinkedAccount,
    NotificationSettings,
    Profile,
    ProfileSettings,
    ProfileStats,
)
from passage.domain.model.reconciliation import ReconciliationResult

__all__ = [
    "LinkedAccount",
    "NotificationSettings",
    "Profile",
    "ProfileSettings",
    "ProfileStats",
    "ReconciliationResult",
]
