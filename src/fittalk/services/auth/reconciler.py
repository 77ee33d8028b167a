"""Reconciliation of verified token claims with local user and session state."""

import logging
from datetime import UTC, datetime

from src.fittalk.config import AuthConfig
from src.fittalk.services import get_analytics
from src.fittalk.services.auth.exceptions import (
    InvalidCredential,
    RejectionReason,
    SessionExpired,
    SessionNotFound,
)
from src.fittalk.services.auth.models import AuthenticatedPrincipal, Principal
from src.fittalk.services.database.exceptions import DuplicateRecordError, UserNotFound
from src.fittalk.services.database.models import User
from src.fittalk.services.database.stores import SessionStore, UserStore

logger = logging.getLogger(__name__)


class IdentityReconciler:
    """
    Aligns local state with an incoming verified principal.

    Runs on every authenticated request, in two phases:

    1. Resolve the user: look it up by subject and, if absent, provision it
       with default preferences in one atomic call.
    2. Resolve the session (only with session tracking enabled and a
       ``session_id`` claim present): record unseen sessions, reject revoked or
       lapsed ones.

    The user is always resolved first because a session row references its
    owner. Both create-if-absent steps insert first and treat a uniqueness
    violation as "someone else created it", re-reading the winner's row, so
    concurrent requests for the same subject or session never fail or
    duplicate.

    Storage errors propagate as ``StorageUnavailable``.

    Example:
        >>> reconciler = IdentityReconciler(UserStore(db), SessionStore(db), config)
        >>> user = await reconciler.reconcile(principal)
        >>> user.metadata["hasProfile"]
    """

    def __init__(self, users: UserStore, sessions: SessionStore, config: AuthConfig):
        self.users = users
        self.sessions = sessions
        self.config = config

    async def reconcile(
        self, principal: Principal, now: datetime | None = None
    ) -> AuthenticatedPrincipal:
        """
        Resolve the local user and session for a verified principal.

        Args:
            principal: Verified claim set
            now: Reference time (defaults to the current UTC time)

        Returns:
            Authenticated principal for the request context

        Raises:
            InvalidCredential: If a session-bearing token has no expiry
            SessionExpired: If the referenced session is no longer active
            SessionNotFound: In strict mode, or when the session belongs to another user
            UserNotFound: If the user disappeared between a lost create race and the re-read
            StorageUnavailable: If storage fails
        """
        now = now or datetime.now(UTC)

        user = await self._resolve_user(principal)

        if self.config.track_sessions and principal.session_id:
            await self._resolve_session(user, principal, now)

        return AuthenticatedPrincipal(
            id=user.id,
            email=user.email or principal.email or "",
            phone=user.phone or principal.phone or None,
            role=principal.role,
            session_id=principal.session_id,
            metadata={**principal.user_metadata, "hasProfile": user.has_profile},
        )

    async def _resolve_user(self, principal: Principal) -> User:
        user = await self.users.get(principal.sub)
        if user is not None:
            return user

        try:
            user = await self.users.create_with_preferences(
                user_id=principal.sub,
                email=principal.email or "",
                phone=principal.phone or None,
                defaults=self.config.preference_defaults,
            )
        except DuplicateRecordError:
            logger.info(
                "User created by a concurrent request, re-reading",
                extra={"user_id": principal.sub},
            )
            user = await self.users.get(principal.sub)
            if user is None:
                raise UserNotFound(f"User {principal.sub} not found after concurrent create")
            return user

        logger.info(f"Provisioned new user {principal.sub}", extra={"user_id": principal.sub})
        get_analytics().capture(
            distinct_id=principal.sub,
            event="user_provisioned",
            properties={"has_email": bool(principal.email), "has_phone": bool(principal.phone)},
        )
        return user

    async def _resolve_session(self, user: User, principal: Principal, now: datetime) -> None:
        session_id = principal.session_id
        expires_at = principal.expires_at
        if expires_at is None:
            raise InvalidCredential(
                "Session-bearing token has no expiry", RejectionReason.MISSING_EXPIRY
            )

        session = await self.sessions.get(session_id)

        if session is None:
            if self.config.require_existing_session:
                logger.warning(
                    "Unknown session in strict mode",
                    extra={"user_id": user.id, "session_id": session_id},
                )
                raise SessionNotFound("Session not found")

            try:
                await self.sessions.create(user, session_id, expires_at)
                logger.info(
                    "Recorded new session",
                    extra={"user_id": user.id, "session_id": session_id},
                )
                return
            except DuplicateRecordError:
                logger.info(
                    "Session created by a concurrent request, re-reading",
                    extra={"session_id": session_id},
                )
                session = await self.sessions.get(session_id)
                if session is None:
                    raise SessionNotFound("Session not found")

        if session.user_id != user.id:
            logger.warning(
                "Session belongs to a different user",
                extra={"user_id": user.id, "session_id": session_id},
            )
            raise SessionNotFound("Session not found")

        if not session.is_active(now):
            logger.info(
                "Rejected revoked or lapsed session",
                extra={"user_id": user.id, "session_id": session_id},
            )
            raise SessionExpired("Session expired")
