"""Custom exceptions for authentication and authorization."""

from enum import Enum


class RejectionReason(str, Enum):
    """Why a credential or session was rejected."""

    MISSING_CREDENTIAL = "missing_credential"
    MALFORMED = "malformed"
    UNEXPECTED_ALGORITHM = "unexpected_algorithm"
    UNKNOWN_KEY = "unknown_key"
    KEY_UNAVAILABLE = "key_unavailable"
    BAD_SIGNATURE = "bad_signature"
    ISSUER_MISMATCH = "issuer_mismatch"
    AUDIENCE_MISMATCH = "audience_mismatch"
    EXPIRED = "expired"
    NOT_YET_VALID = "not_yet_valid"
    MISSING_SUBJECT = "missing_subject"
    MISSING_EXPIRY = "missing_expiry"
    SESSION_EXPIRED = "session_expired"
    SESSION_NOT_FOUND = "session_not_found"


class AuthenticationError(Exception):
    """Raised when authentication fails (invalid credentials, expired tokens, etc.)."""

    reason: RejectionReason = RejectionReason.MALFORMED

    def __init__(self, message: str, reason: RejectionReason | None = None) -> None:
        super().__init__(message)
        if reason is not None:
            self.reason = reason


class InvalidCredential(AuthenticationError):
    """Raised when a bearer token is malformed, untrusted or mismatched."""

    pass


class CredentialExpired(InvalidCredential):
    """Raised when a bearer token's expiry is not in the future."""

    reason = RejectionReason.EXPIRED


class SessionExpired(AuthenticationError):
    """Raised when the token references a session that was revoked or has lapsed."""

    reason = RejectionReason.SESSION_EXPIRED


class SessionNotFound(AuthenticationError):
    """Raised in strict mode when the token's session is not recorded locally."""

    reason = RejectionReason.SESSION_NOT_FOUND


class AuthorizationError(Exception):
    """Raised when an authenticated user lacks permission to access a resource."""

    pass


class ProfileRequired(AuthorizationError):
    """Raised when an endpoint needs a completed profile and the user has none."""

    pass
