"""Tests for account service business logic."""

import asyncio
from datetime import timedelta

import pytest

from src.fittalk.features.account.service import ProfileValidationError
from src.fittalk.services.database.exceptions import RecordNotFound, UserNotFound
from src.fittalk.services.database.models import Platform, Preferences, Profile, User


@pytest.fixture
def seeded_user(memory_db):
    """A provisioned user u1 with default preferences."""
    memory_db.users["u1"] = User(id="u1", email="u1@example.com")
    memory_db.preferences["u1"] = Preferences(user_id="u1", timezone="America/New_York")
    return memory_db.users["u1"]


@pytest.mark.asyncio
class TestGetCurrentUser:
    async def test_returns_user_with_relations(self, account_service, seeded_user, memory_db, now):
        memory_db.profiles["u1"] = Profile(user_id="u1", firstname="Jane", lastname="Doe")
        await account_service.register_device("u1", Platform.IOS, "dev-1", "tok", now=now)

        detail = await account_service.get_current_user("u1")

        assert detail.user.id == "u1"
        assert detail.user.has_profile is True
        assert detail.profile.firstname == "Jane"
        assert detail.preferences.timezone == "America/New_York"
        assert [device.device_id for device in detail.devices] == ["dev-1"]

    async def test_missing_user_raises(self, account_service):
        with pytest.raises(UserNotFound):
            await account_service.get_current_user("ghost")


@pytest.mark.asyncio
class TestSessions:
    async def _create_sessions(self, session_store, user, now, *jwt_ids):
        for jwt_id in jwt_ids:
            await session_store.create(user, jwt_id, now + timedelta(hours=1))

    async def test_list_active_newest_first(self, account_service, session_store, seeded_user, now):
        await self._create_sessions(session_store, seeded_user, now, "s1", "s2", "s3")

        sessions = await account_service.list_active_sessions("u1", now=now)

        assert [session.jwt_id for session in sessions] == ["s3", "s2", "s1"]

    async def test_revoke_other_sessions_leaves_current(
        self, account_service, session_store, seeded_user, now
    ):
        """Test that after revoking others exactly the current session stays active."""
        await self._create_sessions(session_store, seeded_user, now, "s1", "s2", "s3")

        revoked = await account_service.revoke_other_sessions("u1", "s1", now=now)
        active = await account_service.list_active_sessions("u1", now=now)

        assert revoked == 2
        assert [session.jwt_id for session in active] == ["s1"]

    async def test_revoke_other_sessions_does_not_touch_other_users(
        self, account_service, session_store, seeded_user, now
    ):
        await self._create_sessions(session_store, seeded_user, now, "s1", "s2")
        await self._create_sessions(session_store, User(id="u2"), now, "s9")

        await account_service.revoke_other_sessions("u1", "s1", now=now)

        assert len(await account_service.list_active_sessions("u2", now=now)) == 1

    async def test_revoke_other_sessions_skips_already_expired(
        self, account_service, session_store, seeded_user, now
    ):
        await self._create_sessions(session_store, seeded_user, now, "s1", "s2")
        await session_store.revoke("u1", "s2", now - timedelta(minutes=5))

        revoked = await account_service.revoke_other_sessions("u1", "s1", now=now)

        assert revoked == 0

    async def test_revoke_session(self, account_service, session_store, seeded_user, now):
        await self._create_sessions(session_store, seeded_user, now, "s1", "s2")

        await account_service.revoke_session("u1", "s2", now=now)

        active = await account_service.list_active_sessions("u1", now=now)
        assert [session.jwt_id for session in active] == ["s1"]

    async def test_revoke_unknown_session_raises(self, account_service, seeded_user, now):
        with pytest.raises(RecordNotFound, match="Session not found"):
            await account_service.revoke_session("u1", "nope", now=now)

    async def test_revoke_other_users_session_raises(
        self, account_service, session_store, seeded_user, now
    ):
        await self._create_sessions(session_store, User(id="u2"), now, "s9")

        with pytest.raises(RecordNotFound):
            await account_service.revoke_session("u1", "s9", now=now)


@pytest.mark.asyncio
class TestUpsertProfile:
    async def test_create_profile(self, account_service, seeded_user, memory_db):
        profile = await account_service.upsert_profile(
            "u1", {"firstname": "Jane", "lastname": "Doe", "height_cm": 170.0}
        )

        assert profile.firstname == "Jane"
        assert profile.height_cm == 170.0
        assert "u1" in memory_db.profiles

    async def test_create_without_names_raises(self, account_service, seeded_user, memory_db):
        with pytest.raises(ProfileValidationError, match="firstname, lastname"):
            await account_service.upsert_profile("u1", {"height_cm": 170.0})

        assert memory_db.profiles == {}

    async def test_partial_update_preserves_other_fields(self, account_service, seeded_user):
        """Test that updating only weight leaves names and other fields untouched."""
        await account_service.upsert_profile(
            "u1", {"firstname": "Jane", "lastname": "Doe", "sex": "female", "height_cm": 170.0}
        )

        profile = await account_service.upsert_profile("u1", {"weight_kg": 61.5})

        assert profile.firstname == "Jane"
        assert profile.lastname == "Doe"
        assert profile.sex.value == "female"
        assert profile.height_cm == 170.0
        assert profile.weight_kg == 61.5

    async def test_empty_update_returns_existing(self, account_service, seeded_user):
        created = await account_service.upsert_profile("u1", {"firstname": "Jane", "lastname": "Doe"})

        profile = await account_service.upsert_profile("u1", {})

        assert profile == created

    async def test_concurrent_creates_yield_one_profile(self, account_service, seeded_user, memory_db):
        results = await asyncio.gather(
            account_service.upsert_profile("u1", {"firstname": "Jane", "lastname": "Doe"}),
            account_service.upsert_profile("u1", {"firstname": "Janet", "lastname": "Doe"}),
        )

        assert len(memory_db.profiles) == 1
        assert {result.user_id for result in results} == {"u1"}


@pytest.mark.asyncio
class TestUpdatePreferences:
    async def test_update_only_supplied_fields(self, account_service, seeded_user):
        preferences = await account_service.update_preferences("u1", {"unit_system": "imperial"})

        assert preferences.unit_system.value == "imperial"
        assert preferences.timezone == "America/New_York"
        assert preferences.voice_enabled is True

    async def test_missing_preferences_raises(self, account_service):
        with pytest.raises(RecordNotFound):
            await account_service.update_preferences("ghost", {"language": "fr"})


@pytest.mark.asyncio
class TestRegisterDevice:
    async def test_register_twice_keeps_one_record(self, account_service, seeded_user, memory_db, now):
        first = await account_service.register_device("u1", Platform.IOS, "dev-1", "tok-1", now=now)
        second = await account_service.register_device(
            "u1", Platform.IOS, "dev-1", "tok-2", now=now + timedelta(minutes=1)
        )

        assert len(memory_db.devices) == 1
        assert second.id == first.id
        assert second.push_token == "tok-2"
        assert second.last_seen_at == now + timedelta(minutes=1)

    async def test_register_without_token_keeps_previous_token(
        self, account_service, seeded_user, now
    ):
        await account_service.register_device("u1", Platform.ANDROID, "dev-1", "tok-1", now=now)

        device = await account_service.register_device("u1", Platform.ANDROID, "dev-1", None, now=now)

        assert device.push_token == "tok-1"

    async def test_reregister_clears_revocation(self, account_service, seeded_user, memory_db, now):
        device = await account_service.register_device("u1", Platform.WEB, "dev-1", "tok", now=now)
        memory_db.devices["dev-1"] = device.model_copy(update={"revoked_at": now})

        device = await account_service.register_device("u1", Platform.WEB, "dev-1", None, now=now)

        assert device.revoked_at is None
