"""Generic database utility functions for Supabase interactions."""

import logging
from typing import Any

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient

from src.fittalk.services.database.connection import get_supabase_admin_client
from src.fittalk.services.database.exceptions import DuplicateRecordError, StorageUnavailable

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"


class SupabaseQueryBuilder:
    """
    Helper class for building and executing async Supabase queries.

    Every statement goes through ``_execute``, which translates PostgREST and
    transport failures into storage exceptions: unique-constraint violations
    become ``DuplicateRecordError`` and everything else ``StorageUnavailable``.
    """

    def __init__(self, client: AsyncClient) -> None:
        """
        Initialize query builder.

        Args:
            client: Async Supabase client instance
        """
        self.client = client

    async def _execute(self, query: Any, description: str) -> Any:
        """Run a prepared query and map backend errors to storage exceptions."""
        try:
            return await query.execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                logger.info(
                    f"Unique constraint violated during {description}",
                    extra={"error_type": "unique_violation", "details": e.message},
                )
                raise DuplicateRecordError(e.message or description) from e
            logger.error(
                f"Database error during {description}: {e.message}",
                extra={"error_type": "postgrest_error", "code": e.code},
            )
            raise StorageUnavailable(f"Database error during {description}") from e
        except httpx.HTTPError as e:
            logger.error(
                f"Database unreachable during {description}: {e}",
                exc_info=True,
                extra={"error_type": "database_unreachable"},
            )
            raise StorageUnavailable(f"Database unreachable during {description}") from e

    async def get_by_field(
        self, table: str, field: str, value: Any, columns: str = "*"
    ) -> dict[str, Any] | None:
        """
        Fetch a single record by field value.

        Args:
            table: Table name
            field: Field name to filter by
            value: Field value
            columns: Columns to select (default: "*"), may embed related tables

        Returns:
            First matching record or None

        Example:
            >>> user = await builder.get_by_field("users", "id", "user-123")
        """
        query = self.client.table(table).select(columns).eq(field, value).limit(1)
        response = await self._execute(query, f"select from {table}")
        return response.data[0] if response.data else None

    async def list_records(
        self,
        table: str,
        columns: str = "*",
        filters: dict[str, Any] | None = None,
        greater_than: dict[str, Any] | None = None,
        null_fields: list[str] | None = None,
        order_by: str | None = None,
        order_desc: bool = True,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """
        List records with optional filtering, ordering, and pagination.

        Args:
            table: Table name
            columns: Columns to select (default: "*")
            filters: Dictionary of field:value pairs for equality filtering
            greater_than: Dictionary of field:value pairs for strict lower bounds
            null_fields: Fields that must be NULL
            order_by: Column to order by
            order_desc: Order descending (default: True)
            limit: Maximum records to return
            offset: Number of records to skip

        Returns:
            List of record dictionaries

        Example:
            >>> sessions = await builder.list_records(
            ...     "sessions",
            ...     filters={"user_id": user_id},
            ...     greater_than={"expires_at": now.isoformat()},
            ...     order_by="created_at",
            ... )
        """
        query = self.client.table(table).select(columns)

        for field, value in (filters or {}).items():
            query = query.eq(field, value)

        for field, value in (greater_than or {}).items():
            query = query.gt(field, value)

        for field in null_fields or []:
            query = query.is_(field, "null")

        if order_by:
            query = query.order(order_by, desc=order_desc)

        if limit is not None:
            query = query.range(offset, offset + limit - 1)

        response = await self._execute(query, f"list {table}")
        return response.data

    async def insert_record(self, table: str, data: dict[str, Any]) -> dict[str, Any] | None:
        """
        Insert a single record.

        Args:
            table: Table name
            data: Record data dictionary

        Returns:
            Inserted record dictionary or None if nothing was returned

        Raises:
            DuplicateRecordError: If the insert violates a unique constraint
            StorageUnavailable: If the insert fails for any other reason
        """
        query = self.client.table(table).insert(data)
        response = await self._execute(query, f"insert into {table}")
        return response.data[0] if response.data else None

    async def update_by_filter(
        self,
        table: str,
        filters: dict[str, Any],
        data: dict[str, Any],
        exclude: dict[str, Any] | None = None,
        greater_than: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Update records matching filters in a single statement.

        Args:
            table: Table name
            filters: Dictionary of field:value pairs that must match
            data: Fields to update
            exclude: Dictionary of field:value pairs that must NOT match
            greater_than: Dictionary of field:value pairs for strict lower bounds

        Returns:
            List of updated record dictionaries

        Example:
            >>> updated = await builder.update_by_filter(
            ...     "sessions",
            ...     {"user_id": user_id},
            ...     {"expires_at": now.isoformat()},
            ...     exclude={"jwt_id": current_session_id},
            ... )
        """
        query = self.client.table(table).update(data)

        for field, value in filters.items():
            query = query.eq(field, value)

        for field, value in (exclude or {}).items():
            query = query.neq(field, value)

        for field, value in (greater_than or {}).items():
            query = query.gt(field, value)

        response = await self._execute(query, f"update {table}")
        return response.data

    async def call_function(self, function: str, params: dict[str, Any]) -> dict[str, Any] | None:
        """
        Call a PostgreSQL function through Supabase RPC.

        Used for multi-statement operations that must be atomic, such as
        provisioning a user together with its preferences.

        Args:
            function: Name of the PostgreSQL function
            params: Named function arguments

        Returns:
            First returned row, or None if the function returned nothing
        """
        query = self.client.rpc(function, params)
        response = await self._execute(query, f"rpc {function}")

        data = response.data
        if isinstance(data, list):
            return data[0] if data else None
        return data


async def get_query_builder(client: AsyncClient | None = None) -> SupabaseQueryBuilder:
    """
    Get instance of SupabaseQueryBuilder.

    Args:
        client: Optional async Supabase client (uses the admin client if None)

    Returns:
        SupabaseQueryBuilder instance
    """
    if client is None:
        client = await get_supabase_admin_client()
    return SupabaseQueryBuilder(client)
