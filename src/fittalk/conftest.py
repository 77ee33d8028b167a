"""Pytest configuration and shared fixtures."""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from src.fittalk.config import AuthConfig, PreferenceDefaults
from src.fittalk.features.account.service import AccountService
from src.fittalk.main import app
from src.fittalk.services.auth.access_gate import AccessGate
from src.fittalk.services.auth.jwt_validator import JWTValidator, SharedSecretKeySource
from src.fittalk.services.auth.reconciler import IdentityReconciler
from src.fittalk.services.database.exceptions import DuplicateRecordError
from src.fittalk.services.database.models import (
    Device,
    Platform,
    Preferences,
    Profile,
    Session,
    User,
)

TEST_JWT_SECRET = "test-jwt-secret-with-at-least-32-characters"
TEST_ISSUER = "https://test.supabase.co/auth/v1"


class InMemoryDatabase:
    """Tables keyed by their unique column, shared by the in-memory stores."""

    def __init__(self) -> None:
        self.users: dict[str, User] = {}
        self.preferences: dict[str, Preferences] = {}
        self.sessions: dict[str, Session] = {}
        self.profiles: dict[str, Profile] = {}
        self.devices: dict[str, Device] = {}


# The stores below yield to the event loop before touching state so that
# concurrent callers interleave the way they would against a real database.


class InMemoryUserStore:
    def __init__(self, db: InMemoryDatabase) -> None:
        self.db = db
        self.create_calls = 0

    async def get(self, user_id: str) -> User | None:
        await asyncio.sleep(0)
        user = self.db.users.get(user_id)
        if user is None:
            return None
        return user.model_copy(update={"has_profile": user_id in self.db.profiles})

    async def create_with_preferences(
        self, user_id: str, email: str, phone: str | None, defaults: PreferenceDefaults
    ) -> User:
        await asyncio.sleep(0)
        self.create_calls += 1
        if user_id in self.db.users:
            raise DuplicateRecordError(f"duplicate key value violates users_pkey ({user_id})")

        user = User(id=user_id, email=email, phone=phone, created_at=datetime.now(UTC))
        self.db.users[user_id] = user
        self.db.preferences[user_id] = Preferences(user_id=user_id, **defaults.model_dump())
        return user


class InMemorySessionStore:
    def __init__(self, db: InMemoryDatabase) -> None:
        self.db = db

    async def get(self, jwt_id: str) -> Session | None:
        await asyncio.sleep(0)
        return self.db.sessions.get(jwt_id)

    async def create(self, user: User, jwt_id: str, expires_at: datetime) -> Session:
        await asyncio.sleep(0)
        if jwt_id in self.db.sessions:
            raise DuplicateRecordError(f"duplicate key value violates sessions_jwt_id_key ({jwt_id})")

        session = Session(
            id=uuid4(),
            user_id=user.id,
            jwt_id=jwt_id,
            expires_at=expires_at,
            created_at=datetime.now(UTC),
        )
        self.db.sessions[jwt_id] = session
        return session

    async def list_active(self, user_id: str, now: datetime) -> list[Session]:
        # Insertion order stands in for created_at, newest first
        return [
            session
            for session in reversed(self.db.sessions.values())
            if session.user_id == user_id and session.is_active(now)
        ]

    async def revoke(self, user_id: str, jwt_id: str, now: datetime) -> Session | None:
        session = self.db.sessions.get(jwt_id)
        if session is None or session.user_id != user_id:
            return None
        revoked = session.model_copy(update={"expires_at": now})
        self.db.sessions[jwt_id] = revoked
        return revoked

    async def revoke_all_except(self, user_id: str, keep_jwt_id: str | None, now: datetime) -> int:
        count = 0
        for jwt_id, session in list(self.db.sessions.items()):
            if session.user_id != user_id or jwt_id == keep_jwt_id or not session.is_active(now):
                continue
            self.db.sessions[jwt_id] = session.model_copy(update={"expires_at": now})
            count += 1
        return count


class InMemoryProfileStore:
    def __init__(self, db: InMemoryDatabase) -> None:
        self.db = db

    async def get(self, user_id: str) -> Profile | None:
        await asyncio.sleep(0)
        return self.db.profiles.get(user_id)

    async def create(self, user_id: str, fields: dict[str, Any]) -> Profile:
        await asyncio.sleep(0)
        if user_id in self.db.profiles:
            raise DuplicateRecordError(f"duplicate key value violates profiles_user_id_key ({user_id})")

        now = datetime.now(UTC)
        profile = Profile.model_validate(
            {**fields, "user_id": user_id, "created_at": now, "updated_at": now}
        )
        self.db.profiles[user_id] = profile
        return profile

    async def update(self, user_id: str, fields: dict[str, Any]) -> Profile | None:
        existing = self.db.profiles.get(user_id)
        if existing is None:
            return None
        profile = Profile.model_validate(
            {**existing.model_dump(), **fields, "updated_at": datetime.now(UTC)}
        )
        self.db.profiles[user_id] = profile
        return profile


class InMemoryPreferencesStore:
    def __init__(self, db: InMemoryDatabase) -> None:
        self.db = db

    async def get(self, user_id: str) -> Preferences | None:
        return self.db.preferences.get(user_id)

    async def update(self, user_id: str, fields: dict[str, Any]) -> Preferences | None:
        existing = self.db.preferences.get(user_id)
        if existing is None:
            return None
        preferences = Preferences.model_validate({**existing.model_dump(), **fields})
        self.db.preferences[user_id] = preferences
        return preferences


class InMemoryDeviceStore:
    def __init__(self, db: InMemoryDatabase) -> None:
        self.db = db

    async def register(
        self,
        user_id: str,
        platform: Platform,
        device_id: str,
        push_token: str | None,
        now: datetime,
    ) -> Device:
        existing = self.db.devices.get(device_id)
        if existing is not None:
            device = existing.model_copy(
                update={
                    "push_token": push_token if push_token is not None else existing.push_token,
                    "last_seen_at": now,
                    "revoked_at": None,
                }
            )
        else:
            device = Device(
                id=uuid4(),
                user_id=user_id,
                platform=platform,
                device_id=device_id,
                push_token=push_token,
                last_seen_at=now,
                created_at=now,
            )
        self.db.devices[device_id] = device
        return device

    async def list_active(self, user_id: str) -> list[Device]:
        devices = [
            device
            for device in self.db.devices.values()
            if device.user_id == user_id and device.revoked_at is None
        ]
        return sorted(devices, key=lambda device: device.last_seen_at, reverse=True)


@pytest.fixture
def now() -> datetime:
    """Current time truncated to whole seconds, matching JWT timestamp precision."""
    return datetime.now(UTC).replace(microsecond=0)


@pytest.fixture
def auth_config() -> AuthConfig:
    """Shared-secret auth configuration with session tracking enabled."""
    return AuthConfig(issuer=TEST_ISSUER, jwt_secret=TEST_JWT_SECRET)


@pytest.fixture
def make_claims(now: datetime) -> Callable[..., dict[str, Any]]:
    """
    Build a Supabase-shaped claim set.

    Keyword overrides replace claims; passing None removes the claim.

    Example:
        >>> claims = make_claims(sub="u2", session_id=None)
    """

    def _make(**overrides: Any) -> dict[str, Any]:
        issued_at = int(now.timestamp())
        claims = {
            "sub": "u1",
            "email": "u1@example.com",
            "role": "authenticated",
            "aud": "authenticated",
            "iss": TEST_ISSUER,
            "iat": issued_at,
            "exp": issued_at + 3600,
            "session_id": "s1",
            "aal": "aal1",
            "user_metadata": {"full_name": "Test User"},
            "app_metadata": {"provider": "email"},
        }
        claims.update(overrides)
        return {name: value for name, value in claims.items() if value is not None}

    return _make


@pytest.fixture
def make_token(make_claims: Callable[..., dict[str, Any]]) -> Callable[..., str]:
    """Sign a claim set with the shared test secret (HS256 unless overridden)."""

    def _make(
        key: Any = TEST_JWT_SECRET,
        algorithm: str = "HS256",
        headers: dict[str, Any] | None = None,
        **overrides: Any,
    ) -> str:
        return jwt.encode(make_claims(**overrides), key, algorithm=algorithm, headers=headers)

    return _make


@pytest.fixture
def memory_db() -> InMemoryDatabase:
    return InMemoryDatabase()


@pytest.fixture
def user_store(memory_db: InMemoryDatabase) -> InMemoryUserStore:
    return InMemoryUserStore(memory_db)


@pytest.fixture
def session_store(memory_db: InMemoryDatabase) -> InMemorySessionStore:
    return InMemorySessionStore(memory_db)


@pytest.fixture
def profile_store(memory_db: InMemoryDatabase) -> InMemoryProfileStore:
    return InMemoryProfileStore(memory_db)


@pytest.fixture
def preferences_store(memory_db: InMemoryDatabase) -> InMemoryPreferencesStore:
    return InMemoryPreferencesStore(memory_db)


@pytest.fixture
def device_store(memory_db: InMemoryDatabase) -> InMemoryDeviceStore:
    return InMemoryDeviceStore(memory_db)


@pytest.fixture
def validator(auth_config: AuthConfig) -> JWTValidator:
    return JWTValidator.from_config(auth_config, SharedSecretKeySource(TEST_JWT_SECRET))


@pytest.fixture
def reconciler(
    auth_config: AuthConfig,
    user_store: InMemoryUserStore,
    session_store: InMemorySessionStore,
) -> IdentityReconciler:
    return IdentityReconciler(user_store, session_store, auth_config)


@pytest.fixture
def access_gate(
    validator: JWTValidator,
    reconciler: IdentityReconciler,
    profile_store: InMemoryProfileStore,
) -> AccessGate:
    return AccessGate(validator, reconciler, profile_store)


@pytest.fixture
def account_service(
    user_store: InMemoryUserStore,
    session_store: InMemorySessionStore,
    profile_store: InMemoryProfileStore,
    preferences_store: InMemoryPreferencesStore,
    device_store: InMemoryDeviceStore,
) -> AccountService:
    return AccountService(
        users=user_store,
        sessions=session_store,
        profiles=profile_store,
        preferences=preferences_store,
        devices=device_store,
    )


@pytest.fixture
def client() -> TestClient:
    """
    Provide FastAPI test client for API testing.

    The lifespan does not run, so no Supabase connection is made.

    Returns:
        TestClient instance for making API requests

    Example:
        >>> def test_health(client):
        >>>     response = client.get("/health")
        >>>     assert response.status_code == 200
    """
    return TestClient(app)
