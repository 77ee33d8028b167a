"""Local JWT verification against a shared secret or a JWKS."""

import logging
from datetime import UTC, datetime
from typing import Any, Protocol

import httpx
from jose import JWTError, jwt
from pydantic import ValidationError

from src.fittalk.config import AuthConfig
from src.fittalk.services.auth.exceptions import (
    CredentialExpired,
    InvalidCredential,
    RejectionReason,
)
from src.fittalk.services.auth.jwks import JWKSCache
from src.fittalk.services.auth.models import Principal

logger = logging.getLogger(__name__)

# Claim checks are done here, in a fixed order, against the caller's clock
_DECODE_OPTIONS = {
    "verify_signature": True,
    "verify_aud": False,
    "verify_iss": False,
    "verify_exp": False,
    "verify_nbf": False,
    "verify_iat": False,
    "verify_sub": False,
    "verify_jti": False,
    "verify_at_hash": False,
}


def _is_timestamp(value: Any) -> bool:
    """True if value is a number that converts to a datetime."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        datetime.fromtimestamp(value, tz=UTC)
    except (OverflowError, ValueError, OSError):
        return False
    return True


class KeySource(Protocol):
    """Trust material a token's signature is checked against."""

    algorithms: tuple[str, ...]

    async def get_key(self, header: dict[str, Any]) -> Any: ...


class SharedSecretKeySource:
    """
    HMAC shared secret with a single fixed algorithm.

    This is how Supabase projects using the legacy JWT secret sign tokens.
    """

    def __init__(self, secret: str, algorithm: str = "HS256"):
        self.secret = secret
        self.algorithms = (algorithm,)

    async def get_key(self, header: dict[str, Any]) -> str:
        return self.secret


class JWKSKeySource:
    """Rotating public keys published at a JWKS endpoint, selected by ``kid``."""

    def __init__(self, jwks_cache: JWKSCache, algorithms: tuple[str, ...] = ("RS256", "ES256")):
        self.jwks_cache = jwks_cache
        self.algorithms = tuple(algorithms)

    async def get_key(self, header: dict[str, Any]) -> Any:
        kid = header.get("kid")
        if not kid:
            raise InvalidCredential("JWT header missing 'kid' (key ID)", RejectionReason.MALFORMED)

        try:
            return await self.jwks_cache.get_signing_key(kid)
        except ValueError as e:
            raise InvalidCredential(str(e), RejectionReason.UNKNOWN_KEY) from e
        except httpx.HTTPError as e:
            raise InvalidCredential(
                "Signing keys are currently unavailable", RejectionReason.KEY_UNAVAILABLE
            ) from e


def build_key_source(config: AuthConfig, jwks_cache: JWKSCache | None = None) -> KeySource:
    """
    Select the trust material from configuration, never from the token.

    Args:
        config: Immutable auth configuration
        jwks_cache: Cache to use in ``jwks`` mode (created from config if None)
    """
    if config.verification_mode == "jwks":
        if jwks_cache is None:
            jwks_cache = JWKSCache(
                jwks_url=config.jwks_url,
                cache_ttl=config.jwks_cache_ttl,
                min_refresh_interval=config.jwks_min_refresh_interval,
                timeout=config.jwks_fetch_timeout,
            )
        return JWKSKeySource(jwks_cache, config.jwks_algorithms)

    return SharedSecretKeySource(config.jwt_secret, config.jwt_algorithm)


class JWTValidator:
    """
    Verifies JWT tokens locally without touching storage.

    Checks are applied in this order, each with its own rejection reason:
    header shape, algorithm, signing key, signature, issuer, audience, expiry,
    not-before, subject.

    Attributes:
        key_source: Shared secret or JWKS trust material
        issuer: Expected issuer (iss claim) - Supabase auth URL
        audience: Expected audience (aud claim) - typically "authenticated"
        leeway: Clock skew tolerance in seconds

    Example:
        >>> validator = JWTValidator(SharedSecretKeySource(secret), "https://x.supabase.co/auth/v1")
        >>> principal = await validator.verify_token(jwt_token)
        >>> principal.sub
    """

    def __init__(
        self,
        key_source: KeySource,
        issuer: str,
        audience: str = "authenticated",
        leeway: int = 0,
    ):
        self.key_source = key_source
        self.issuer = issuer
        self.audience = audience
        self.leeway = leeway

    @classmethod
    def from_config(cls, config: AuthConfig, key_source: KeySource) -> "JWTValidator":
        return cls(
            key_source=key_source,
            issuer=config.issuer,
            audience=config.audience,
            leeway=config.leeway,
        )

    async def verify_token(self, token: str, now: datetime | None = None) -> Principal:
        """
        Verify JWT token and return its principal.

        Args:
            token: JWT token string (without "Bearer " prefix)
            now: Reference time (defaults to the current UTC time)

        Returns:
            Verified claim set

        Raises:
            CredentialExpired: If the exp claim is not after ``now``
            InvalidCredential: For every other rejection
        """
        now = now or datetime.now(UTC)

        try:
            header = jwt.get_unverified_header(token)
        except JWTError as e:
            raise self._reject("Malformed token header", RejectionReason.MALFORMED) from e

        algorithm = header.get("alg")
        if algorithm not in self.key_source.algorithms:
            raise self._reject(
                f"Token algorithm '{algorithm}' is not accepted",
                RejectionReason.UNEXPECTED_ALGORITHM,
            )

        key = await self.key_source.get_key(header)

        try:
            claims = jwt.decode(
                token,
                key,
                algorithms=list(self.key_source.algorithms),
                options=_DECODE_OPTIONS,
            )
        except JWTError as e:
            raise self._reject(
                f"Signature verification failed: {e}", RejectionReason.BAD_SIGNATURE
            ) from e

        self._check_claims(claims, now)

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            raise self._reject("Token is missing a subject", RejectionReason.MISSING_SUBJECT)

        try:
            principal = Principal.model_validate(claims)
        except ValidationError as e:
            raise self._reject(f"Token claims are invalid: {e}", RejectionReason.MALFORMED) from e

        logger.debug(
            "JWT verified successfully",
            extra={"user_id": principal.sub, "exp": principal.exp, "alg": algorithm},
        )
        return principal

    def _check_claims(self, claims: dict[str, Any], now: datetime) -> None:
        if claims.get("iss") != self.issuer:
            raise self._reject("Invalid issuer", RejectionReason.ISSUER_MISMATCH)

        audience = claims.get("aud")
        if isinstance(audience, list):
            audience_ok = self.audience in audience
        else:
            audience_ok = audience == self.audience
        if not audience_ok:
            raise self._reject("Invalid audience", RejectionReason.AUDIENCE_MISMATCH)

        timestamp = now.timestamp()

        exp = claims.get("exp")
        if exp is not None:
            if not _is_timestamp(exp):
                raise self._reject(
                    "Expiration claim is not a valid timestamp", RejectionReason.MALFORMED
                )
            if exp + self.leeway <= timestamp:
                logger.info("Rejected expired token", extra={"user_id": claims.get("sub")})
                raise CredentialExpired("Token expired")

        nbf = claims.get("nbf")
        if nbf is not None:
            if not _is_timestamp(nbf):
                raise self._reject(
                    "Not-before claim is not a valid timestamp", RejectionReason.MALFORMED
                )
            if nbf - self.leeway > timestamp:
                raise self._reject("Token not yet valid", RejectionReason.NOT_YET_VALID)

    def _reject(self, message: str, reason: RejectionReason) -> InvalidCredential:
        logger.warning(
            f"JWT verification failed: {message}",
            extra={"error_type": "jwt_verification_failed", "reason": reason.value},
        )
        return InvalidCredential(message, reason)
