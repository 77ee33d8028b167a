"""Application configuration using Pydantic Settings."""

from typing import Literal

from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # System Configuration
    api_v1_prefix: str = "/api/v1"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # Supabase Configuration
    supabase_url: str = "https://test.supabase.co"
    supabase_service_role_key: str = "test-service-role-key"
    supabase_jwt_secret: str = ""

    # JWT Verification Configuration
    jwt_verification_mode: Literal["shared_secret", "jwks"] = "shared_secret"
    jwt_algorithm: str = "HS256"  # shared_secret mode only
    jwks_algorithms: list[str] = ["RS256", "ES256"]
    jwks_cache_ttl_seconds: int = 3600  # 1 hour
    jwks_min_refresh_interval_seconds: int = 60
    jwks_fetch_timeout_seconds: float = 5.0
    jwt_audience: str = "authenticated"
    jwt_leeway_seconds: int = 0

    # Session Tracking
    track_sessions: bool = True
    require_existing_session: bool = False

    # Defaults applied to new users' preferences
    default_timezone: str = "America/New_York"
    default_unit_system: str = "metric"
    default_voice_enabled: bool = True
    default_language: str = "en"
    default_notif_push: bool = True
    default_notif_email: bool = False
    default_notif_sms: bool = False

    # PostHog Configuration
    posthog_api_key: str | None = None
    posthog_host: str = "https://app.posthog.com"

    @property
    def jwt_issuer(self) -> str:
        """Supabase JWT issuer is the auth endpoint URL."""
        return f"{self.supabase_url.rstrip('/')}/auth/v1"

    @property
    def jwks_url(self) -> str:
        """Supabase JWKS endpoint is at /auth/v1/.well-known/jwks.json."""
        return f"{self.jwt_issuer}/.well-known/jwks.json"


class PreferenceDefaults(BaseModel):
    """Preference values written alongside every newly provisioned user."""

    model_config = ConfigDict(frozen=True)

    timezone: str = "America/New_York"
    unit_system: str = "metric"
    voice_enabled: bool = True
    language: str = "en"
    notif_push: bool = True
    notif_email: bool = False
    notif_sms: bool = False


class AuthConfig(BaseModel):
    """
    Immutable authentication configuration.

    Built once at startup and handed to the validator, reconciler and access
    gate at construction time. Nothing in the auth path reads ``settings``
    directly.
    """

    model_config = ConfigDict(frozen=True)

    issuer: str
    audience: str = "authenticated"
    verification_mode: Literal["shared_secret", "jwks"] = "shared_secret"
    jwt_secret: str | None = None
    jwt_algorithm: str = "HS256"
    jwks_url: str | None = None
    jwks_algorithms: tuple[str, ...] = ("RS256", "ES256")
    jwks_cache_ttl: int = 3600
    jwks_min_refresh_interval: int = 60
    jwks_fetch_timeout: float = 5.0
    leeway: int = 0
    track_sessions: bool = True
    require_existing_session: bool = False
    preference_defaults: PreferenceDefaults = PreferenceDefaults()

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthConfig":
        """
        Build the auth configuration from environment settings.

        Raises:
            ValueError: If shared-secret verification is selected without a secret
        """
        if settings.jwt_verification_mode == "shared_secret" and not settings.supabase_jwt_secret:
            raise ValueError(
                "SUPABASE_JWT_SECRET is required when JWT_VERIFICATION_MODE=shared_secret"
            )

        return cls(
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            verification_mode=settings.jwt_verification_mode,
            jwt_secret=settings.supabase_jwt_secret or None,
            jwt_algorithm=settings.jwt_algorithm,
            jwks_url=settings.jwks_url,
            jwks_algorithms=tuple(settings.jwks_algorithms),
            jwks_cache_ttl=settings.jwks_cache_ttl_seconds,
            jwks_min_refresh_interval=settings.jwks_min_refresh_interval_seconds,
            jwks_fetch_timeout=settings.jwks_fetch_timeout_seconds,
            leeway=settings.jwt_leeway_seconds,
            track_sessions=settings.track_sessions,
            require_existing_session=settings.require_existing_session,
            preference_defaults=PreferenceDefaults(
                timezone=settings.default_timezone,
                unit_system=settings.default_unit_system,
                voice_enabled=settings.default_voice_enabled,
                language=settings.default_language,
                notif_push=settings.default_notif_push,
                notif_email=settings.default_notif_email,
                notif_sms=settings.default_notif_sms,
            ),
        )


settings = Settings()
