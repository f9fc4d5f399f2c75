"""Mappers for converting between database rows and domain models.

Since we're using Pydantic domain models (immutable), we use manual mapping
instead of SQLAlchemy's classical imperative mapping.
"""

from typing import Any, Dict
from uuid import UUID

from passage.domain.model.profile import (
    LinkedAccount,
    Profile,
    ProfileSettings,
    ProfileStats,
)
from passage.domain.value import AuthProvider, Handle, ProfileId


def row_to_profile(row: Dict[str, Any]) -> Profile:
    """Convert database row to Profile domain model.

    Args:
        row: Database row as dict

    Returns:
        Profile domain model
    """
    return Profile(
        id=ProfileId(UUID(row["id"]) if isinstance(row["id"], str) else row["id"]),
        email=row["email"],
        handle=Handle(row["handle"]),
        display_name=row["display_name"],
        avatar=row.get("avatar"),
        bio=row.get("bio"),
        is_online=row["is_online"],
        last_active=row["last_active"],
        settings=ProfileSettings.model_validate(row.get("settings") or {}),
        stats=ProfileStats.model_validate(row.get("stats") or {}),
        social_accounts={
            AuthProvider(provider): LinkedAccount.model_validate(account)
            for provider, account in (row.get("social_accounts") or {}).items()
        },
        auth_provider=(
            AuthProvider(row["auth_provider"]) if row.get("auth_provider") else None
        ),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def profile_to_dict(profile: Profile) -> Dict[str, Any]:
    """Convert Profile domain model to database dict.

    Args:
        profile: Profile domain model

    Returns:
        Dict suitable for database insertion
    """
    return {
        "id": profile.id,
        **changes_to_values(
            {
                name: getattr(profile, name)
                for name in Profile.model_fields
                if name != "id"
            }
        ),
    }


def changes_to_values(changes: Dict[str, Any]) -> Dict[str, Any]:
    """Convert domain-typed field values to column values.

    JSONB sub-documents are dumped in JSON mode; handles and provider tags
    become plain strings.
    """
    values = dict(changes)
    if isinstance(values.get("handle"), Handle):
        values["handle"] = values["handle"].root
    if isinstance(values.get("settings"), ProfileSettings):
        values["settings"] = values["settings"].model_dump(mode="json")
    if isinstance(values.get("stats"), ProfileStats):
        values["stats"] = values["stats"].model_dump(mode="json")
    if "social_accounts" in values:
        values["social_accounts"] = {
            AuthProvider(provider).value: (
                account.model_dump(mode="json")
                if isinstance(account, LinkedAccount)
                else account
            )
            for provider, account in values["social_accounts"].items()
        }
    if isinstance(values.get("auth_provider"), AuthProvider):
        values["auth_provider"] = values["auth_provider"].value
    return values
