"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from pydantic import BaseModel

from src.fittalk.config import AuthConfig, settings
from src.fittalk.features.account.handlers import router as account_router
from src.fittalk.services.analytics import PostHogService, set_analytics
from src.fittalk.services.auth import (
    AccessGate,
    IdentityReconciler,
    JWKSKeySource,
    JWTValidator,
    build_key_source,
    set_access_gate,
)
from src.fittalk.services.database import (
    ProfileStore,
    SessionStore,
    UserStore,
    get_query_builder,
)

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle (startup and shutdown)."""
    # Startup
    key_source = None
    analytics = PostHogService.from_settings(settings)
    set_analytics(analytics)
    try:
        config = AuthConfig.from_settings(settings)
        logger.info(
            "Initializing access gate",
            extra={
                "verification_mode": config.verification_mode,
                "issuer": config.issuer,
                "track_sessions": config.track_sessions,
            },
        )

        key_source = build_key_source(config)
        if isinstance(key_source, JWKSKeySource):
            # Fetch JWKS immediately on startup
            await key_source.jwks_cache.refresh_keys()

        db = await get_query_builder()
        gate = AccessGate(
            validator=JWTValidator.from_config(config, key_source),
            reconciler=IdentityReconciler(UserStore(db), SessionStore(db), config),
            profiles=ProfileStore(db),
        )
        set_access_gate(gate)

        logger.info("Access gate initialized successfully")

    except Exception as e:
        logger.error(
            f"Failed to initialize access gate: {e}",
            exc_info=True,
            extra={"error_type": "access_gate_init_failed"},
        )
        set_analytics(None)
        analytics.shutdown()
        raise

    yield

    # Shutdown
    set_access_gate(None)
    set_analytics(None)
    analytics.shutdown()
    if isinstance(key_source, JWKSKeySource):
        try:
            await key_source.jwks_cache.close()
            logger.info("JWKS cache cleanup completed")
        except Exception as e:
            logger.error(f"Error during JWKS cache cleanup: {e}", exc_info=True)


app = FastAPI(
    title="FitTalk API",
    description="Authentication and account API for the FitTalk coaching app",
    version="0.1.0",
    debug=settings.debug,
    lifespan=lifespan,
)

app.include_router(account_router, prefix=settings.api_v1_prefix)


class HealthCheckResponse(BaseModel):
    """Health check response."""

    status: str


@app.get("/health", response_model=HealthCheckResponse)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint."""
    return HealthCheckResponse(status="healthy")
