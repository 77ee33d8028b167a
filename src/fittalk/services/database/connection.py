"""Supabase database connection management."""

import logging

from supabase import AsyncClient, acreate_client

from src.fittalk.config import settings

logger = logging.getLogger(__name__)

# Created lazily on first use and reused for the process lifetime
_supabase_admin_client: AsyncClient | None = None


async def get_supabase_admin_client() -> AsyncClient:
    """
    Get Supabase admin client with service role key (singleton pattern).

    This client bypasses Row-Level Security (RLS) policies and is used by the
    auth layer, which does its own authentication/authorization.

    Returns:
        Configured async Supabase client with service role key (bypasses RLS)

    Example:
        >>> client = await get_supabase_admin_client()
        >>> response = await client.table("users").select("*").execute()
    """
    global _supabase_admin_client
    if _supabase_admin_client is None:
        _supabase_admin_client = await acreate_client(
            settings.supabase_url, settings.supabase_service_role_key
        )
        logger.info("Supabase admin client created", extra={"supabase_url": settings.supabase_url})
    return _supabase_admin_client
