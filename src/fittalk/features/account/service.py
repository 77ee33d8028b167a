"""Business logic for account, session, profile and device operations."""

import logging
from datetime import UTC, datetime
from typing import Any

from src.fittalk.services.database.exceptions import (
    DuplicateRecordError,
    RecordNotFound,
    UserNotFound,
)
from src.fittalk.services.database.models import (
    Device,
    Platform,
    Preferences,
    Profile,
    Session,
    UserDetail,
)
from src.fittalk.services.database.stores import (
    DeviceStore,
    PreferencesStore,
    ProfileStore,
    SessionStore,
    UserStore,
)
from src.fittalk.services.database.utils import SupabaseQueryBuilder

logger = logging.getLogger(__name__)

REQUIRED_PROFILE_FIELDS = ("firstname", "lastname")


class ProfileValidationError(ValueError):
    """Raised when a profile would be created without its required fields."""

    pass


class AccountService:
    """Operations an authenticated user can perform on their own account."""

    def __init__(
        self,
        users: UserStore,
        sessions: SessionStore,
        profiles: ProfileStore,
        preferences: PreferencesStore,
        devices: DeviceStore,
    ):
        self.users = users
        self.sessions = sessions
        self.profiles = profiles
        self.preferences = preferences
        self.devices = devices

    @classmethod
    def from_query_builder(cls, db: SupabaseQueryBuilder) -> "AccountService":
        return cls(
            users=UserStore(db),
            sessions=SessionStore(db),
            profiles=ProfileStore(db),
            preferences=PreferencesStore(db),
            devices=DeviceStore(db),
        )

    async def get_current_user(self, user_id: str) -> UserDetail:
        """
        Get the user with profile, preferences and non-revoked devices.

        Raises:
            UserNotFound: If the user row does not exist
        """
        user = await self.users.get(user_id)
        if user is None:
            raise UserNotFound(f"User {user_id} not found")

        return UserDetail(
            user=user,
            profile=await self.profiles.get(user_id),
            preferences=await self.preferences.get(user_id),
            devices=await self.devices.list_active(user_id),
        )

    async def list_active_sessions(
        self, user_id: str, now: datetime | None = None
    ) -> list[Session]:
        """Sessions with expiry after ``now``, newest first."""
        return await self.sessions.list_active(user_id, now or datetime.now(UTC))

    async def revoke_session(
        self, user_id: str, session_id: str, now: datetime | None = None
    ) -> Session:
        """
        Revoke one of the user's sessions by moving its expiry to now.

        Raises:
            RecordNotFound: If the user has no session with this id. Sessions of
                other users are reported the same way.
        """
        session = await self.sessions.revoke(user_id, session_id, now or datetime.now(UTC))
        if session is None:
            raise RecordNotFound("Session not found")

        logger.info("Session revoked", extra={"user_id": user_id, "session_id": session_id})
        return session

    async def revoke_other_sessions(
        self, user_id: str, current_session_id: str | None, now: datetime | None = None
    ) -> int:
        """
        Revoke every session of the user except the current one.

        Without a current session id, all of the user's sessions are revoked.

        Returns:
            Number of sessions revoked
        """
        revoked = await self.sessions.revoke_all_except(
            user_id, current_session_id, now or datetime.now(UTC)
        )
        logger.info(
            f"Revoked {revoked} other sessions",
            extra={"user_id": user_id, "kept_session_id": current_session_id},
        )
        return revoked

    async def upsert_profile(self, user_id: str, fields: dict[str, Any]) -> Profile:
        """
        Create the profile or update only the supplied fields.

        Update is tried first as a single statement. When no profile exists the
        profile is created, which needs ``firstname`` and ``lastname``. If a
        concurrent request creates the profile first, the update is re-applied
        on top of it.

        Args:
            user_id: Owner of the profile
            fields: Fields explicitly supplied by the caller

        Raises:
            ProfileValidationError: If creating without both name fields
        """
        if fields:
            profile = await self.profiles.update(user_id, fields)
            if profile is not None:
                return profile
        else:
            profile = await self.profiles.get(user_id)
            if profile is not None:
                return profile

        missing = [name for name in REQUIRED_PROFILE_FIELDS if not fields.get(name)]
        if missing:
            raise ProfileValidationError(
                f"Missing required fields to create a profile: {', '.join(missing)}"
            )

        try:
            profile = await self.profiles.create(user_id, fields)
        except DuplicateRecordError:
            logger.info(
                "Profile created by a concurrent request, applying update",
                extra={"user_id": user_id},
            )
            profile = await self.profiles.update(user_id, fields)
            if profile is None:
                raise RecordNotFound("Profile not found")
            return profile

        logger.info("Profile created", extra={"user_id": user_id})
        return profile

    async def update_preferences(self, user_id: str, fields: dict[str, Any]) -> Preferences:
        """
        Update only the supplied preference fields.

        Raises:
            RecordNotFound: If the user has no preferences row
        """
        if fields:
            preferences = await self.preferences.update(user_id, fields)
        else:
            preferences = await self.preferences.get(user_id)

        if preferences is None:
            raise RecordNotFound("Preferences not found")
        return preferences

    async def register_device(
        self,
        user_id: str,
        platform: Platform,
        device_id: str,
        push_token: str | None = None,
        now: datetime | None = None,
    ) -> Device:
        """Register a device or refresh the existing record with the same device id."""
        device = await self.devices.register(
            user_id, platform, device_id, push_token, now or datetime.now(UTC)
        )
        logger.info(
            "Device registered",
            extra={"user_id": user_id, "device_id": device_id, "platform": platform.value},
        )
        return device
