"""Pydantic models for database entities."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class Platform(str, Enum):
    """Push notification platforms a device can register from."""

    IOS = "ios"
    ANDROID = "android"
    WEB = "web"


class Sex(str, Enum):
    """Self-reported sex on the user profile."""

    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class ExperienceLevel(str, Enum):
    """Training experience level."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class GoalType(str, Enum):
    """Primary training goal."""

    LOSE_WEIGHT = "lose_weight"
    BUILD_MUSCLE = "build_muscle"
    IMPROVE_ENDURANCE = "improve_endurance"
    MAINTAIN_HEALTH = "maintain_health"


class UnitSystem(str, Enum):
    """Measurement units used for display."""

    METRIC = "metric"
    IMPERIAL = "imperial"


class User(BaseModel):
    """Local user record keyed by the identity provider's subject."""

    id: str
    email: str = ""
    phone: str | None = None
    created_at: datetime | None = None
    has_profile: bool = False


class Session(BaseModel):
    """Server-side validity window of one provider-issued session."""

    id: UUID
    user_id: str
    jwt_id: str
    expires_at: datetime
    created_at: datetime | None = None

    def is_active(self, now: datetime) -> bool:
        """A session is active iff its expiry is strictly after ``now``."""
        return self.expires_at > now


class Profile(BaseModel):
    """User profile; names are required, everything else optional."""

    user_id: str
    firstname: str
    lastname: str
    sex: Sex | None = None
    height_cm: float | None = None
    weight_kg: float | None = None
    experience_level: ExperienceLevel | None = None
    health_notes: str | None = None
    goal_type: GoalType | None = None
    unit_system: UnitSystem | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Preferences(BaseModel):
    """Per-user preferences, created alongside the user."""

    user_id: str
    timezone: str
    unit_system: UnitSystem = UnitSystem.METRIC
    voice_enabled: bool = True
    tts_voice: str | None = None
    language: str = "en"
    notif_push: bool = True
    notif_email: bool = False
    notif_sms: bool = False


class Device(BaseModel):
    """Push notification endpoint, unique by ``device_id`` across all users."""

    id: UUID
    user_id: str
    platform: Platform
    device_id: str
    push_token: str | None = None
    last_seen_at: datetime | None = None
    revoked_at: datetime | None = None
    created_at: datetime | None = None


class UserDetail(BaseModel):
    """User with its profile, preferences and non-revoked devices."""

    user: User
    profile: Profile | None = None
    preferences: Preferences | None = None
    devices: list[Device] = Field(default_factory=list)
