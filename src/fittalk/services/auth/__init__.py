"""Authentication module for JWT-based authentication."""

from src.fittalk.services.auth.access_gate import AccessGate
from src.fittalk.services.auth.dependencies import (
    get_access_gate,
    get_current_user,
    get_optional_user,
    public,
    require_profile,
    set_access_gate,
)
from src.fittalk.services.auth.exceptions import (
    AuthenticationError,
    AuthorizationError,
    CredentialExpired,
    InvalidCredential,
    ProfileRequired,
    RejectionReason,
    SessionExpired,
    SessionNotFound,
)
from src.fittalk.services.auth.jwks import JWKSCache
from src.fittalk.services.auth.jwt_validator import (
    JWKSKeySource,
    JWTValidator,
    SharedSecretKeySource,
    build_key_source,
)
from src.fittalk.services.auth.models import AuthenticatedPrincipal, Principal
from src.fittalk.services.auth.reconciler import IdentityReconciler

__all__ = [
    "AccessGate",
    "get_access_gate",
    "get_current_user",
    "get_optional_user",
    "public",
    "require_profile",
    "set_access_gate",
    "AuthenticationError",
    "AuthorizationError",
    "CredentialExpired",
    "InvalidCredential",
    "ProfileRequired",
    "RejectionReason",
    "SessionExpired",
    "SessionNotFound",
    "JWKSCache",
    "JWKSKeySource",
    "JWTValidator",
    "SharedSecretKeySource",
    "build_key_source",
    "AuthenticatedPrincipal",
    "Principal",
    "IdentityReconciler",
]
