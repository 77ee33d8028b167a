"""FastAPI dependencies for JWT authentication using Supabase."""

import logging
from collections.abc import Callable
from typing import TypeVar

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.fittalk.services import get_analytics
from src.fittalk.services.auth.access_gate import AccessGate
from src.fittalk.services.auth.exceptions import AuthenticationError, ProfileRequired
from src.fittalk.services.auth.models import AuthenticatedPrincipal
from src.fittalk.services.database.exceptions import StorageUnavailable, UserNotFound
from src.fittalk.services.database.models import Profile

# auto_error=False so public routes and optional auth see a missing header as None
security = HTTPBearer(auto_error=False)
logger = logging.getLogger(__name__)

# Global access gate instance (initialized in main.py startup)
_access_gate: AccessGate | None = None

PUBLIC_ATTR = "__auth_public__"

F = TypeVar("F", bound=Callable)


def set_access_gate(gate: AccessGate | None) -> None:
    """
    Set the global access gate instance.

    Called during application startup to initialize authentication.

    Args:
        gate: AccessGate instance
    """
    global _access_gate
    _access_gate = gate


def get_access_gate() -> AccessGate:
    """
    Get the global access gate instance.

    Returns:
        AccessGate instance

    Raises:
        RuntimeError: If access gate not initialized
    """
    if _access_gate is None:
        raise RuntimeError(
            "Access gate not initialized. "
            "Ensure application startup event calls set_access_gate()."
        )
    return _access_gate


def public(endpoint: F) -> F:
    """
    Mark an endpoint as public.

    ``get_current_user`` skips authentication for public endpoints even when
    it is attached at router level and a token is present.

    Example:
        @router.get("/health")
        @public
        async def health(): ...
    """
    setattr(endpoint, PUBLIC_ATTR, True)
    return endpoint


def is_public_endpoint(request: Request) -> bool:
    endpoint = request.scope.get("endpoint")
    return bool(getattr(endpoint, PUBLIC_ATTR, False))


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> AuthenticatedPrincipal | None:
    """
    Authenticate the request (required mode).

    Verifies the bearer token locally, reconciles the user and session with
    storage and attaches the result to ``request.state.user``. Returns None
    without looking at the token on endpoints marked ``@public``.

    Args:
        request: Incoming request
        credentials: Bearer token from Authorization header

    Returns:
        AuthenticatedPrincipal, or None on public endpoints

    Raises:
        HTTPException: 401 if token missing/invalid or session unusable
        HTTPException: 503 if storage is unavailable

    Example:
        @router.get("/me")
        async def me(current_user: AuthenticatedPrincipal = Depends(get_current_user)):
            return {"user_id": current_user.id}
    """
    if is_public_endpoint(request):
        return None

    token = credentials.credentials if credentials else None

    try:
        user = await get_access_gate().authenticate(token)

    except AuthenticationError as e:
        logger.warning(
            f"Authentication failed: {e}",
            extra={"error_type": "authentication_failed", "reason": e.reason.value},
        )
        get_analytics().capture(
            distinct_id="anonymous",
            event="authentication_failed",
            properties={"error": e.reason.value},
        )
        raise _unauthorized(str(e) or "Invalid authentication credentials")

    except UserNotFound as e:
        logger.warning(f"Authentication failed: {e}", extra={"error_type": "user_not_found"})
        raise _unauthorized("Invalid authentication credentials")

    except StorageUnavailable as e:
        logger.error(f"Authentication aborted, storage unavailable: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authentication temporarily unavailable. Please try again.",
        ) from e

    logger.debug("User authenticated", extra={"user_id": user.id, "session_id": user.session_id})
    request.state.user = user
    return user


async def get_optional_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> AuthenticatedPrincipal | None:
    """
    Authenticate the request if possible (optional mode).

    Never raises: a missing or unusable token yields None.
    """
    token = credentials.credentials if credentials else None
    user = await get_access_gate().authenticate_optional(token)
    request.state.user = user
    return user


async def require_profile(
    request: Request,
    current_user: AuthenticatedPrincipal | None = Depends(get_current_user),
) -> Profile:
    """
    Require a completed profile for the authenticated user.

    Attaches the profile to ``request.state.profile``.

    Raises:
        HTTPException: 403 if the user has no profile
        HTTPException: 503 if storage is unavailable
    """
    try:
        profile = await get_access_gate().require_profile(current_user)
    except ProfileRequired as e:
        logger.info(
            f"Profile gate rejected request: {e}",
            extra={"user_id": current_user.id if current_user else None},
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except StorageUnavailable as e:
        logger.error(f"Profile gate aborted, storage unavailable: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Profile check temporarily unavailable. Please try again.",
        ) from e

    request.state.profile = profile
    return profile
