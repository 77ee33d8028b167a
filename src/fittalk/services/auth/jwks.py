"""JWKS (JSON Web Key Set) fetching and caching for JWT verification."""

import asyncio
import logging
import time

import httpx
from jose import jwk
from jose.backends.base import Key

logger = logging.getLogger(__name__)


class JWKSCache:
    """
    Manages JWKS fetching and caching with bounded refresh.

    Caches keys in-memory with a TTL and refreshes when the cache expires or
    when an unknown key ID is encountered. Refetches are rate-limited by
    ``min_refresh_interval`` so a flood of tokens with unknown ``kid`` values,
    or a down key endpoint, cannot turn every request into a network call.
    Concurrent refreshes collapse into one fetch. A failed refresh keeps
    serving previously cached keys.

    Attributes:
        jwks_url: URL to fetch JWKS from (typically /.well-known/jwks.json)
        cache_ttl: Cache time-to-live in seconds (default: 3600 = 1 hour)
        min_refresh_interval: Minimum seconds between two fetch attempts
        _keys: Cached JWKS keys dictionary (kid -> key) - supports RSA and EC keys
        _last_refresh: Monotonic time of last successful JWKS fetch
        _last_attempt: Monotonic time of last fetch attempt, successful or not
        _http_client: HTTP client for fetching JWKS

    Example:
        >>> cache = JWKSCache("https://project.supabase.co/auth/v1/.well-known/jwks.json")
        >>> await cache.refresh_keys()
        >>> signing_key = await cache.get_signing_key("key-id-123")
    """

    def __init__(
        self,
        jwks_url: str,
        cache_ttl: int = 3600,
        min_refresh_interval: int = 60,
        timeout: float = 5.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize JWKS cache.

        Args:
            jwks_url: URL to fetch JWKS from
            cache_ttl: Cache TTL in seconds (default: 1 hour)
            min_refresh_interval: Minimum seconds between fetch attempts
            timeout: Upper bound in seconds for a single JWKS fetch
            http_client: Optional HTTP client (created if None)
        """
        self.jwks_url = jwks_url
        self.cache_ttl = cache_ttl
        self.min_refresh_interval = min_refresh_interval
        self._keys: dict[str, Key] = {}
        self._last_refresh: float | None = None
        self._last_attempt: float | None = None
        self._refresh_lock = asyncio.Lock()
        self._http_client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def get_signing_key(self, kid: str) -> Key:
        """
        Get signing key by key ID (kid).

        Refreshes JWKS (subject to the refresh rate limit) if:
        1. Cache has expired (TTL exceeded)
        2. Key ID not found in cache (new key rotation)

        Args:
            kid: Key ID from JWT header

        Returns:
            Public key for signature verification (RSA or EC)

        Raises:
            ValueError: If key ID not found after refresh
            httpx.HTTPError: If JWKS fetch fails and nothing is cached
        """
        if self._needs_refresh():
            await self._refresh_if_allowed()

        key = self._keys.get(kid)

        # Unknown kid: try refreshing once (key rotation case)
        if key is None:
            logger.warning(
                f"Key ID '{kid}' not found in cache, refreshing JWKS",
                extra={"kid": kid, "cached_kids": list(self._keys.keys())},
            )
            await self._refresh_if_allowed()
            key = self._keys.get(kid)

        if key is None:
            raise ValueError(
                f"Key ID '{kid}' not found in JWKS. Available keys: {list(self._keys.keys())}"
            )

        return key

    async def _refresh_if_allowed(self) -> None:
        """Refresh unless another attempt happened within the minimum interval."""
        async with self._refresh_lock:
            if self._attempted_recently():
                logger.debug(
                    "Skipping JWKS refresh, last attempt was too recent",
                    extra={"min_refresh_interval": self.min_refresh_interval},
                )
                return

            try:
                await self.refresh_keys()
            except (httpx.HTTPError, ValueError):
                if not self._keys:
                    raise
                logger.warning(
                    "JWKS refresh failed, serving previously cached keys",
                    extra={"cached_kids": list(self._keys.keys())},
                )

    async def refresh_keys(self) -> None:
        """
        Fetch JWKS from Supabase and update cache.

        Makes HTTP request to JWKS endpoint and parses public keys.
        The key dictionary is swapped in one assignment, so readers never see
        a half-built cache.

        Raises:
            httpx.HTTPError: If HTTP request fails or times out
            ValueError: If JWKS response is invalid
        """
        self._last_attempt = time.monotonic()
        try:
            logger.info(f"Fetching JWKS from {self.jwks_url}")
            response = await self._http_client.get(self.jwks_url)
            response.raise_for_status()

            jwks_data = response.json()
            keys_list = jwks_data.get("keys", [])

            if not keys_list:
                logger.warning(
                    "JWKS response contains no keys - token verification will fail "
                    "until the provider publishes signing keys.",
                    extra={"jwks_url": self.jwks_url},
                )
                self._keys = {}
                self._last_refresh = time.monotonic()
                return

            new_keys: dict[str, Key] = {}
            for key_data in keys_list:
                kid = key_data.get("kid")
                if not kid:
                    logger.warning("JWKS key missing 'kid', skipping")
                    continue

                kty = key_data.get("kty")
                if kty == "EC":
                    algorithm = "ES256"
                elif kty == "RSA":
                    algorithm = "RS256"
                else:
                    algorithm = key_data.get("alg", "RS256")

                new_keys[kid] = jwk.construct(key_data, algorithm=algorithm)

                logger.debug(
                    f"Loaded key {kid} (type: {kty}, algorithm: {algorithm})",
                    extra={"kid": kid, "kty": kty, "alg": algorithm},
                )

            self._keys = new_keys
            self._last_refresh = time.monotonic()

            logger.info(
                "JWKS cache refreshed successfully",
                extra={
                    "key_count": len(new_keys),
                    "key_ids": list(new_keys.keys()),
                    "ttl_seconds": self.cache_ttl,
                },
            )

        except httpx.HTTPError as e:
            logger.error(
                f"Failed to fetch JWKS from {self.jwks_url}: {e}",
                extra={"error_type": "jwks_fetch_failed"},
            )
            raise

        except Exception as e:
            logger.error(
                f"Failed to parse JWKS: {e}",
                exc_info=True,
                extra={"error_type": "jwks_parse_failed"},
            )
            raise ValueError(f"Invalid JWKS response: {e}") from e

    def _needs_refresh(self) -> bool:
        """
        Check if cache needs refresh based on TTL.

        Returns:
            True if cache is stale or never initialized
        """
        if self._last_refresh is None:
            return True

        return time.monotonic() - self._last_refresh >= self.cache_ttl

    def _attempted_recently(self) -> bool:
        if self._last_attempt is None:
            return False

        return time.monotonic() - self._last_attempt < self.min_refresh_interval

    async def close(self) -> None:
        """
        Close HTTP client and cleanup resources.

        Should be called during application shutdown.
        """
        await self._http_client.aclose()
        logger.info("JWKS cache closed")
