"""Pydantic models for account endpoints.

Bodies use camelCase on the wire (``firstname``, ``heightCm``, ``deviceId``);
snake_case field names are accepted too.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from src.fittalk.services.database.models import (
    ExperienceLevel,
    GoalType,
    Platform,
    Sex,
    UnitSystem,
)


class CamelModel(BaseModel):
    """Base model with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProfileUpdateRequest(CamelModel):
    """Request model for partial profile updates; only supplied fields change."""

    firstname: str | None = Field(None, min_length=1, max_length=100)
    lastname: str | None = Field(None, min_length=1, max_length=100)
    sex: Sex | None = None
    height_cm: float | None = Field(None, ge=100, le=250)
    weight_kg: float | None = Field(None, ge=30, le=300)
    experience_level: ExperienceLevel | None = None
    health_notes: str | None = Field(None, max_length=2000)
    goal_type: GoalType | None = None
    unit_system: UnitSystem | None = None

    @field_validator("firstname", "lastname")
    @classmethod
    def _names_not_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class ProfileCreateRequest(ProfileUpdateRequest):
    """Request model for creating a profile; names are required."""

    firstname: str = Field(min_length=1, max_length=100)
    lastname: str = Field(min_length=1, max_length=100)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "firstname": "Jane",
                "lastname": "Doe",
                "heightCm": 170,
                "experienceLevel": "beginner",
            }
        }
    )


class PreferencesUpdateRequest(CamelModel):
    """Request model for partial preference updates."""

    timezone: str | None = Field(None, max_length=64)
    unit_system: UnitSystem | None = None
    voice_enabled: bool | None = None
    tts_voice: str | None = Field(None, max_length=64)
    language: str | None = Field(None, max_length=16)
    notif_push: bool | None = None
    notif_email: bool | None = None
    notif_sms: bool | None = None

    @field_validator(
        "timezone",
        "unit_system",
        "voice_enabled",
        "language",
        "notif_push",
        "notif_email",
        "notif_sms",
    )
    @classmethod
    def _stored_fields_not_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("may be omitted but not null")
        return value


class DeviceRegisterRequest(CamelModel):
    """Request model for registering a push notification device."""

    platform: Platform
    device_id: str = Field(min_length=1, max_length=255)
    push_token: str | None = Field(None, max_length=4096)


class ProfileResponse(CamelModel):
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


class PreferencesResponse(CamelModel):
    user_id: str
    timezone: str
    unit_system: UnitSystem
    voice_enabled: bool
    tts_voice: str | None = None
    language: str
    notif_push: bool
    notif_email: bool
    notif_sms: bool


class DeviceResponse(CamelModel):
    platform: Platform
    device_id: str
    push_token: str | None = None
    last_seen_at: datetime | None = None
    revoked_at: datetime | None = None
    created_at: datetime | None = None


class SessionResponse(CamelModel):
    """Active session as shown to its owner."""

    session_id: str
    expires_at: datetime
    created_at: datetime | None = None
    is_current: bool = False


class UserResponse(CamelModel):
    """Response model for the current user with relations."""

    id: str
    email: str
    phone: str | None = None
    created_at: datetime | None = None
    profile: ProfileResponse | None = None
    preferences: PreferencesResponse | None = None
    devices: list[DeviceResponse] = Field(default_factory=list)


class RevokeSessionsResponse(CamelModel):
    message: str = "All other sessions revoked successfully"
    revoked: int


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime


class AuthStatusResponse(CamelModel):
    """Whether the caller is authenticated, for endpoints with optional auth."""

    authenticated: bool
    user_id: str | None = None
    has_profile: bool | None = None
