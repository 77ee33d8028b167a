"""Product analytics integrations."""

from src.fittalk.services.analytics.posthog import (
    PostHogService,
    get_analytics,
    set_analytics,
)

__all__ = ["PostHogService", "get_analytics", "set_analytics"]
