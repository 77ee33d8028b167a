"""Typed stores over the Supabase query builder.

Each store owns one table (or one atomic RPC) and exposes the operations the
auth layer needs. Create-if-absent steps rely on the database's unique
constraints: inserts raise ``DuplicateRecordError`` when another request got
there first, and callers re-read instead of checking beforehand.
"""

import logging
from datetime import datetime
from typing import Any

from src.fittalk.config import PreferenceDefaults
from src.fittalk.services.database.models import (
    Device,
    Platform,
    Preferences,
    Profile,
    Session,
    User,
)
from src.fittalk.services.database.utils import SupabaseQueryBuilder

logger = logging.getLogger(__name__)


def _to_user(row: dict[str, Any]) -> User:
    # The embedded relation comes back as an object or a list depending on
    # whether PostgREST detects the one-to-one constraint
    return User(
        id=row["id"],
        email=row.get("email") or "",
        phone=row.get("phone"),
        created_at=row.get("created_at"),
        has_profile=bool(row.get("profiles")),
    )


class UserStore:
    """Point lookup and atomic provisioning of users."""

    def __init__(self, db: SupabaseQueryBuilder) -> None:
        self.db = db

    async def get(self, user_id: str) -> User | None:
        """Fetch a user by subject id, including whether a profile exists."""
        row = await self.db.get_by_field("users", "id", user_id, columns="*, profiles(user_id)")
        return _to_user(row) if row else None

    async def create_with_preferences(
        self,
        user_id: str,
        email: str,
        phone: str | None,
        defaults: PreferenceDefaults,
    ) -> User:
        """
        Create a user and its default preferences in one transaction.

        Runs the ``provision_user`` function so that both rows are written
        atomically.

        Raises:
            DuplicateRecordError: If a user with this id already exists
        """
        row = await self.db.call_function(
            "provision_user",
            {
                "p_user_id": user_id,
                "p_email": email,
                "p_phone": phone,
                "p_timezone": defaults.timezone,
                "p_unit_system": defaults.unit_system,
                "p_voice_enabled": defaults.voice_enabled,
                "p_language": defaults.language,
                "p_notif_push": defaults.notif_push,
                "p_notif_email": defaults.notif_email,
                "p_notif_sms": defaults.notif_sms,
            },
        )
        if row is None:
            return User(id=user_id, email=email, phone=phone)
        return _to_user(row)


class SessionStore:
    """Server-side session records, soft-revoked by moving expiry to now."""

    def __init__(self, db: SupabaseQueryBuilder) -> None:
        self.db = db

    async def get(self, jwt_id: str) -> Session | None:
        row = await self.db.get_by_field("sessions", "jwt_id", jwt_id)
        return Session.model_validate(row) if row else None

    async def create(self, user: User, jwt_id: str, expires_at: datetime) -> Session:
        """
        Record a newly seen session for an already provisioned user.

        Raises:
            DuplicateRecordError: If the session id is already recorded
        """
        row = await self.db.insert_record(
            "sessions",
            {"user_id": user.id, "jwt_id": jwt_id, "expires_at": expires_at.isoformat()},
        )
        if row is None:
            # Insert succeeded without returning a representation
            return await self.get(jwt_id)
        return Session.model_validate(row)

    async def list_active(self, user_id: str, now: datetime) -> list[Session]:
        rows = await self.db.list_records(
            "sessions",
            filters={"user_id": user_id},
            greater_than={"expires_at": now.isoformat()},
            order_by="created_at",
            order_desc=True,
        )
        return [Session.model_validate(row) for row in rows]

    async def revoke(self, user_id: str, jwt_id: str, now: datetime) -> Session | None:
        """Expire one session owned by ``user_id``; None if no such session."""
        rows = await self.db.update_by_filter(
            "sessions",
            filters={"user_id": user_id, "jwt_id": jwt_id},
            data={"expires_at": now.isoformat()},
        )
        return Session.model_validate(rows[0]) if rows else None

    async def revoke_all_except(
        self, user_id: str, keep_jwt_id: str | None, now: datetime
    ) -> int:
        """Expire every active session of the user except ``keep_jwt_id``."""
        rows = await self.db.update_by_filter(
            "sessions",
            filters={"user_id": user_id},
            data={"expires_at": now.isoformat()},
            exclude={"jwt_id": keep_jwt_id} if keep_jwt_id else None,
            greater_than={"expires_at": now.isoformat()},
        )
        return len(rows)


class ProfileStore:
    """One-to-one user profiles with partial updates."""

    def __init__(self, db: SupabaseQueryBuilder) -> None:
        self.db = db

    async def get(self, user_id: str) -> Profile | None:
        row = await self.db.get_by_field("profiles", "user_id", user_id)
        return Profile.model_validate(row) if row else None

    async def create(self, user_id: str, fields: dict[str, Any]) -> Profile:
        """
        Insert a profile row.

        Raises:
            DuplicateRecordError: If the user already has a profile
        """
        row = await self.db.insert_record("profiles", {**fields, "user_id": user_id})
        if row is None:
            return await self.get(user_id)
        return Profile.model_validate(row)

    async def update(self, user_id: str, fields: dict[str, Any]) -> Profile | None:
        """Update only ``fields``; None if the user has no profile."""
        rows = await self.db.update_by_filter("profiles", {"user_id": user_id}, fields)
        return Profile.model_validate(rows[0]) if rows else None


class PreferencesStore:
    def __init__(self, db: SupabaseQueryBuilder) -> None:
        self.db = db

    async def get(self, user_id: str) -> Preferences | None:
        row = await self.db.get_by_field("preferences", "user_id", user_id)
        return Preferences.model_validate(row) if row else None

    async def update(self, user_id: str, fields: dict[str, Any]) -> Preferences | None:
        rows = await self.db.update_by_filter("preferences", {"user_id": user_id}, fields)
        return Preferences.model_validate(rows[0]) if rows else None


class DeviceStore:
    """Push endpoints, upserted by globally unique device id."""

    def __init__(self, db: SupabaseQueryBuilder) -> None:
        self.db = db

    async def register(
        self,
        user_id: str,
        platform: Platform,
        device_id: str,
        push_token: str | None,
        now: datetime,
    ) -> Device:
        """
        Insert the device or refresh the existing row with the same device id.

        The ``register_device`` function performs ``INSERT ... ON CONFLICT
        (device_id) DO UPDATE``: an existing row keeps its owner and platform,
        gets the new push token (when one is given) and last-seen time, and has
        its revocation cleared.
        """
        row = await self.db.call_function(
            "register_device",
            {
                "p_user_id": user_id,
                "p_platform": platform.value,
                "p_device_id": device_id,
                "p_push_token": push_token,
                "p_seen_at": now.isoformat(),
            },
        )
        return Device.model_validate(row)

    async def list_active(self, user_id: str) -> list[Device]:
        rows = await self.db.list_records(
            "devices",
            filters={"user_id": user_id},
            null_fields=["revoked_at"],
            order_by="last_seen_at",
        )
        return [Device.model_validate(row) for row in rows]
