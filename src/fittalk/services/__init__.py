"""Shared services module for external integrations."""

from src.fittalk.services.analytics import PostHogService, get_analytics, set_analytics

__all__ = [
    "PostHogService",
    "get_analytics",
    "set_analytics",
]
