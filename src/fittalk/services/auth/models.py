"""Data models for authentication."""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Principal(BaseModel):
    """
    Verified claim set decoded from a Supabase JWT.

    Only signature, algorithm, issuer, audience and time claims have been
    checked at this point; nothing here has touched local storage.

    Attributes:
        sub: Provider-assigned subject, reused as the local user id
        session_id: Provider session id, tracked server-side when enabled
        user_metadata: Free-form metadata the user can edit at the provider
        app_metadata: Provider-controlled metadata (provider, providers, ...)
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    sub: str = Field(min_length=1)
    email: str | None = None
    phone: str | None = None
    role: str | None = None
    session_id: str | None = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)
    app_metadata: dict[str, Any] = Field(default_factory=dict)
    aal: str | None = None
    iat: float | None = None
    exp: float | None = None
    iss: str | None = None
    aud: str | list[str] | None = None

    @field_validator("user_metadata", "app_metadata", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def expires_at(self) -> datetime | None:
        """Expiry claim as an aware datetime."""
        if self.exp is None:
            return None
        return datetime.fromtimestamp(self.exp, tz=UTC)


class AuthenticatedPrincipal(BaseModel):
    """
    Authenticated user attached to the request after reconciliation.

    This is the only contract downstream handlers depend on.

    Example:
        >>> user = AuthenticatedPrincipal(
        ...     id="123e4567-e89b-12d3-a456-426614174000",
        ...     email="user@example.com",
        ...     session_id="s1",
        ...     metadata={"full_name": "John Doe", "hasProfile": False},
        ... )
    """

    id: str
    email: str = ""
    phone: str | None = None
    role: str | None = None
    session_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def has_profile(self) -> bool:
        return bool(self.metadata.get("hasProfile"))
