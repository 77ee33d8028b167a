"""Per-request authentication decision composing verification and reconciliation."""

import logging
from datetime import datetime

from src.fittalk.services.auth.exceptions import (
    AuthenticationError,
    InvalidCredential,
    ProfileRequired,
    RejectionReason,
)
from src.fittalk.services.auth.jwt_validator import JWTValidator
from src.fittalk.services.auth.models import AuthenticatedPrincipal
from src.fittalk.services.auth.reconciler import IdentityReconciler
from src.fittalk.services.database.models import Profile
from src.fittalk.services.database.stores import ProfileStore

logger = logging.getLogger(__name__)


class AccessGate:
    """
    Decides whether a request carries a usable identity.

    Modes:
        - ``authenticate``: required; raises on a missing or invalid token and on
          any reconciliation failure
        - ``authenticate_optional``: returns the principal or None, never raises
        - ``require_profile``: secondary gate for an already authenticated
          principal; fails closed when the user has no profile

    Example:
        >>> gate = AccessGate(validator, reconciler, ProfileStore(db))
        >>> user = await gate.authenticate(token)
        >>> profile = await gate.require_profile(user)
    """

    def __init__(
        self,
        validator: JWTValidator,
        reconciler: IdentityReconciler,
        profiles: ProfileStore,
    ):
        self.validator = validator
        self.reconciler = reconciler
        self.profiles = profiles

    async def authenticate(
        self, token: str | None, now: datetime | None = None
    ) -> AuthenticatedPrincipal:
        """
        Verify the token and reconcile its principal with local state.

        Raises:
            AuthenticationError: If the token is missing, invalid or its session is unusable
            StorageUnavailable: If storage fails during reconciliation
        """
        if not token:
            raise InvalidCredential("Missing bearer token", RejectionReason.MISSING_CREDENTIAL)

        principal = await self.validator.verify_token(token, now=now)
        return await self.reconciler.reconcile(principal, now=now)

    async def authenticate_optional(
        self, token: str | None, now: datetime | None = None
    ) -> AuthenticatedPrincipal | None:
        """Like ``authenticate`` but returns None instead of raising."""
        if not token:
            return None

        try:
            return await self.authenticate(token, now=now)
        except AuthenticationError as e:
            logger.info(
                "Optional authentication rejected, continuing anonymously",
                extra={"reason": e.reason.value},
            )
        except Exception as e:
            logger.warning(
                f"Optional authentication failed, continuing anonymously: {e}",
                exc_info=True,
                extra={"error_type": "optional_auth_error"},
            )
        return None

    async def require_profile(self, user: AuthenticatedPrincipal | None) -> Profile:
        """
        Return the user's profile or fail closed.

        Raises:
            ProfileRequired: If there is no authenticated user or no profile
        """
        if user is None:
            raise ProfileRequired("User not authenticated")

        profile = await self.profiles.get(user.id)
        if profile is None:
            raise ProfileRequired("Profile completion required")

        return profile
