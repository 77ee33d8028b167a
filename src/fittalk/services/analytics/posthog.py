"""Product analytics for auth events, sent to PostHog."""

import logging

from posthog import Posthog

from src.fittalk.config import Settings

logger = logging.getLogger(__name__)


class PostHogService:
    """
    Wraps one PostHog client for the process.

    Without an API key no client is created and every capture is dropped, which
    is how tests and local runs work.
    """

    def __init__(self, client: Posthog | None = None) -> None:
        self.client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "PostHogService":
        if not settings.posthog_api_key:
            logger.info("PostHog API key not set, analytics disabled")
            return cls()
        return cls(Posthog(settings.posthog_api_key, host=settings.posthog_host))

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def capture(self, distinct_id: str, event: str, properties: dict | None = None) -> None:
        """
        Queue an event; the PostHog client sends it from a background thread.

        Example:
            >>> get_analytics().capture("u1", "user_provisioned", {"has_email": True})
        """
        if self.client is None:
            return
        self.client.capture(distinct_id=distinct_id, event=event, properties=properties or {})

    def shutdown(self) -> None:
        """Flush queued events and stop the client's consumer thread."""
        if self.client is not None:
            self.client.shutdown()


# Set at startup in main.py; disabled until then
_analytics = PostHogService()


def set_analytics(service: PostHogService | None) -> None:
    global _analytics
    _analytics = service or PostHogService()


def get_analytics() -> PostHogService:
    return _analytics
