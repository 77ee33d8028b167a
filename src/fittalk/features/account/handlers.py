"""API handlers for account, session, profile and device endpoints."""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, HTTPException, Response, status

from src.fittalk.features.account.models import (
    AuthStatusResponse,
    DeviceRegisterRequest,
    DeviceResponse,
    HealthResponse,
    PreferencesResponse,
    PreferencesUpdateRequest,
    ProfileCreateRequest,
    ProfileResponse,
    ProfileUpdateRequest,
    RevokeSessionsResponse,
    SessionResponse,
    UserResponse,
)
from src.fittalk.features.account.service import AccountService, ProfileValidationError
from src.fittalk.services.auth.dependencies import (
    get_current_user,
    get_optional_user,
    public,
    require_profile,
)
from src.fittalk.services.auth.models import AuthenticatedPrincipal
from src.fittalk.services.database import get_query_builder
from src.fittalk.services.database.exceptions import RecordNotFound, StorageUnavailable
from src.fittalk.services.database.models import Profile

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"], dependencies=[Depends(get_current_user)])


async def get_account_service() -> AccountService:
    """Provide an AccountService backed by the admin Supabase client."""
    db = await get_query_builder()
    return AccountService.from_query_builder(db)


def _storage_unavailable(e: StorageUnavailable) -> HTTPException:
    logger.error(f"Storage unavailable: {e}")
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Service temporarily unavailable. Please try again.",
    )


@router.get("/health", response_model=HealthResponse)
@public
async def health_check() -> HealthResponse:
    """Health check endpoint (public)."""
    return HealthResponse(status="ok", timestamp=datetime.now(UTC))


@router.get("/status", response_model=AuthStatusResponse)
@public
async def auth_status(
    current_user: AuthenticatedPrincipal | None = Depends(get_optional_user),
) -> AuthStatusResponse:
    """
    Report whether the caller is authenticated.

    Uses optional authentication: an invalid or missing token is not an
    error, the response simply says the caller is anonymous.
    """
    if current_user is None:
        return AuthStatusResponse(authenticated=False)
    return AuthStatusResponse(
        authenticated=True, user_id=current_user.id, has_profile=current_user.has_profile
    )


@router.get("/me", response_model=UserResponse)
async def get_me(
    current_user: AuthenticatedPrincipal = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
) -> UserResponse:
    """
    Get the current user with profile, preferences and active devices.

    Raises:
        HTTPException: 404 if the user row no longer exists
        HTTPException: 503 if storage is unavailable
    """
    try:
        detail = await service.get_current_user(current_user.id)
    except RecordNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    except StorageUnavailable as e:
        raise _storage_unavailable(e) from e

    return UserResponse(
        id=detail.user.id,
        email=detail.user.email,
        phone=detail.user.phone,
        created_at=detail.user.created_at,
        profile=ProfileResponse(**detail.profile.model_dump()) if detail.profile else None,
        preferences=(
            PreferencesResponse(**detail.preferences.model_dump()) if detail.preferences else None
        ),
        devices=[DeviceResponse(**device.model_dump()) for device in detail.devices],
    )


async def _upsert_profile(
    user: AuthenticatedPrincipal,
    body: ProfileUpdateRequest,
    service: AccountService,
) -> ProfileResponse:
    fields = body.model_dump(mode="json", exclude_unset=True)
    try:
        profile = await service.upsert_profile(user.id, fields)
    except ProfileValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
    except RecordNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Profile not found")
    except StorageUnavailable as e:
        raise _storage_unavailable(e) from e

    return ProfileResponse(**profile.model_dump())


@router.post("/profile", response_model=ProfileResponse)
async def create_profile(
    body: ProfileCreateRequest,
    current_user: AuthenticatedPrincipal = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
) -> ProfileResponse:
    """Create the profile, or update it with the supplied fields if it exists."""
    return await _upsert_profile(current_user, body, service)


@router.put("/profile", response_model=ProfileResponse)
async def update_profile(
    body: ProfileUpdateRequest,
    current_user: AuthenticatedPrincipal = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
) -> ProfileResponse:
    """Update only the supplied profile fields (creates it when names are given)."""
    return await _upsert_profile(current_user, body, service)


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(profile: Profile = Depends(require_profile)) -> ProfileResponse:
    """Get the current user's profile; 403 until the profile is completed."""
    return ProfileResponse(**profile.model_dump())


@router.patch("/preferences", response_model=PreferencesResponse)
async def update_preferences(
    body: PreferencesUpdateRequest,
    current_user: AuthenticatedPrincipal = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
) -> PreferencesResponse:
    """Update only the supplied preference fields."""
    try:
        preferences = await service.update_preferences(
            current_user.id, body.model_dump(mode="json", exclude_unset=True)
        )
    except RecordNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Preferences not found")
    except StorageUnavailable as e:
        raise _storage_unavailable(e) from e

    return PreferencesResponse(**preferences.model_dump())


@router.get("/sessions", response_model=list[SessionResponse])
async def list_sessions(
    current_user: AuthenticatedPrincipal = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
) -> list[SessionResponse]:
    """List the current user's active sessions, newest first."""
    try:
        sessions = await service.list_active_sessions(current_user.id)
    except StorageUnavailable as e:
        raise _storage_unavailable(e) from e

    return [
        SessionResponse(
            session_id=session.jwt_id,
            expires_at=session.expires_at,
            created_at=session.created_at,
            is_current=session.jwt_id == current_user.session_id,
        )
        for session in sessions
    ]


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_session(
    session_id: str,
    current_user: AuthenticatedPrincipal = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
) -> Response:
    """
    Revoke one of the current user's sessions.

    Raises:
        HTTPException: 404 if the user has no such session
    """
    try:
        await service.revoke_session(current_user.id, session_id)
    except RecordNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    except StorageUnavailable as e:
        raise _storage_unavailable(e) from e

    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/sessions/revoke-others", response_model=RevokeSessionsResponse)
async def revoke_other_sessions(
    current_user: AuthenticatedPrincipal = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
) -> RevokeSessionsResponse:
    """Revoke every session except the one used for this request."""
    try:
        revoked = await service.revoke_other_sessions(current_user.id, current_user.session_id)
    except StorageUnavailable as e:
        raise _storage_unavailable(e) from e

    return RevokeSessionsResponse(revoked=revoked)


@router.post("/devices", response_model=DeviceResponse)
async def register_device(
    body: DeviceRegisterRequest,
    current_user: AuthenticatedPrincipal = Depends(get_current_user),
    service: AccountService = Depends(get_account_service),
) -> DeviceResponse:
    """Register a device for push notifications (upsert by device id)."""
    try:
        device = await service.register_device(
            current_user.id, body.platform, body.device_id, body.push_token
        )
    except StorageUnavailable as e:
        raise _storage_unavailable(e) from e

    return DeviceResponse(**device.model_dump())
