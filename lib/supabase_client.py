# =============================================================================
# lib/supabase_client.py - Supabase Client Wrapper
# =============================================================================
# This module provides a thin typed wrapper for Supabase table operations.
# It implements the singleton pattern to reuse a single client connection
# and exposes a handful of generic query helpers that every service uses:
# - select_one / select_many for reads
# - insert / update / upsert / delete for writes
# - count for dashboard totals
#
# Filters are plain dicts. Values map to PostgREST operators:
#   "abc"        -> eq
#   [a, b, c]    -> in
#   None         -> is null
#
# Usage:
#   from lib.supabase_client import SupabaseClient
#   balance = SupabaseClient.select_one("coin_balances", {"user_id": user_id})
# =============================================================================

from __future__ import annotations

import logging
from typing import Any

from supabase import create_client, Client

from app.config import settings

# Set up logging for this module
logger = logging.getLogger(__name__)


class SupabaseClientError(Exception):
    """
    Error during Supabase operations.

    Carries a code and a suggestion so callers can surface actionable messages.
    """

    def __init__(
        self,
        message: str,
        code: str = "SUPABASE_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f" Suggestion: {self.suggestion}"
        return result


class SupabaseClient:
    """
    Typed wrapper for Supabase database operations.

    Implements singleton pattern - one client instance is shared across
    the application. All methods are class methods for easy access without
    instantiation.

    Example:
        row = SupabaseClient.select_one("user_stats", {"user_id": "user_2abc"})

        rows = SupabaseClient.select_many(
            "daily_streaks",
            {"user_id": "user_2abc"},
            gte={"date": "2025-01-01"},
            order_by="date",
            desc=True,
        )
    """

    _instance: Client | None = None

    @classmethod
    def get_client(cls) -> Client:
        """
        Get or create the singleton Supabase client.

        Uses service_role key which bypasses Row Level Security (RLS).
        Ownership checks are therefore done by the service layer.

        Raises:
            SupabaseClientError: If client creation fails
        """
        if cls._instance is None:
            try:
                cls._instance = create_client(
                    settings.SUPABASE_URL,
                    settings.SUPABASE_SERVICE_KEY
                )
                logger.info("Supabase client initialized successfully")
            except Exception as e:
                raise SupabaseClientError(
                    message=f"Failed to create Supabase client: {e}",
                    code="CLIENT_INIT_FAILED",
                    suggestion="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in your .env file"
                )
        return cls._instance

    @staticmethod
    def _require_filters(table: str, filters: dict[str, Any], action: str) -> None:
        """
        Guard writes against filters that would match more than intended.

        Empty filters would hit the whole table, and a None value would
        become IS NULL. Writes that need IS NULL must say so in a select.
        """
        if not filters:
            raise SupabaseClientError(
                message=f"Refusing to {action} {table} without filters",
                code=f"UNSAFE_{action.upper()}",
                details={"table": table}
            )
        missing = sorted(column for column, value in filters.items() if value is None)
        if missing:
            raise SupabaseClientError(
                message=f"Refusing to {action} {table} with None filter values: {', '.join(missing)}",
                code=f"UNSAFE_{action.upper()}",
                details={"table": table, "columns": missing}
            )

    @staticmethod
    def _apply_filters(query, filters: dict[str, Any] | None):
        for column, value in (filters or {}).items():
            if value is None:
                query = query.is_(column, "null")
            elif isinstance(value, (list, tuple, set)):
                query = query.in_(column, list(value))
            else:
                query = query.eq(column, value)
        return query

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    @classmethod
    def select_many(
        cls,
        table: str,
        filters: dict[str, Any] | None = None,
        columns: str = "*",
        gte: dict[str, Any] | None = None,
        lte: dict[str, Any] | None = None,
        lt: dict[str, Any] | None = None,
        order_by: str | None = None,
        desc: bool = False,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Fetch rows matching the given filters.

        Args:
            table: Table name
            filters: Equality / IN / IS NULL filters
            columns: PostgREST select expression
            gte: Inclusive lower bounds, e.g. {"date": "2025-01-01"}
            lte: Inclusive upper bounds
            lt: Exclusive upper bounds
            order_by: Column to sort by
            desc: Sort descending
            limit: Maximum number of rows
            offset: Rows to skip (used with limit for pagination)

        Returns:
            List of row dicts (empty if nothing matches)

        Raises:
            SupabaseClientError: If the query fails
        """
        client = cls.get_client()

        try:
            query = client.table(table).select(columns)
            query = cls._apply_filters(query, filters)

            for column, value in (gte or {}).items():
                query = query.gte(column, value)
            for column, value in (lte or {}).items():
                query = query.lte(column, value)
            for column, value in (lt or {}).items():
                query = query.lt(column, value)

            if order_by:
                query = query.order(order_by, desc=desc)
            if limit is not None and offset is not None:
                query = query.range(offset, offset + limit - 1)
            elif limit is not None:
                query = query.limit(limit)

            response = query.execute()
            rows = response.data or []
            logger.debug(f"Fetched {len(rows)} rows from {table}")
            return rows

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to query {table}: {e}",
                code="SELECT_FAILED",
                suggestion=f"Check that the {table} table exists and is accessible",
                details={"table": table, "filters": filters}
            )

    @classmethod
    def select_one(
        cls,
        table: str,
        filters: dict[str, Any] | None = None,
        columns: str = "*",
        order_by: str | None = None,
        desc: bool = False,
    ) -> dict[str, Any] | None:
        """
        Fetch the first row matching the filters.

        Returns:
            Row dict or None if nothing matches
        """
        rows = cls.select_many(
            table,
            filters,
            columns=columns,
            order_by=order_by,
            desc=desc,
            limit=1,
        )
        return rows[0] if rows else None

    @classmethod
    def count(cls, table: str, filters: dict[str, Any] | None = None) -> int:
        """Count rows matching the filters without fetching them."""
        client = cls.get_client()

        try:
            query = client.table(table).select("id", count="exact")
            query = cls._apply_filters(query, filters)
            response = query.execute()
            return response.count or 0

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to count {table}: {e}",
                code="COUNT_FAILED",
                details={"table": table, "filters": filters}
            )

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @classmethod
    def insert(cls, table: str, data: dict[str, Any]) -> dict[str, Any]:
        """
        Insert a row and return it as stored.

        Raises:
            SupabaseClientError: If the insert fails or returns nothing
        """
        client = cls.get_client()

        try:
            response = client.table(table).insert(data).execute()
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to insert into {table}: {e}",
                code="INSERT_FAILED",
                suggestion="Check required columns and unique constraints",
                details={"table": table}
            )

        if not response.data:
            raise SupabaseClientError(
                message=f"Insert into {table} returned no data",
                code="INSERT_FAILED",
                details={"table": table}
            )

        logger.debug(f"Inserted row into {table}")
        return response.data[0]

    @classmethod
    def update(
        cls,
        table: str,
        values: dict[str, Any],
        filters: dict[str, Any],
    ) -> list[dict[str, Any]]:
        """
        Update rows matching the filters.

        Filters are mandatory and may not contain None values.

        Returns:
            The updated rows (empty if nothing matched)
        """
        cls._require_filters(table, filters, "update")

        client = cls.get_client()

        try:
            query = client.table(table).update(values)
            query = cls._apply_filters(query, filters)
            response = query.execute()
            return response.data or []

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to update {table}: {e}",
                code="UPDATE_FAILED",
                details={"table": table, "filters": filters}
            )

    @classmethod
    def upsert(
        cls,
        table: str,
        data: dict[str, Any],
        on_conflict: str,
    ) -> dict[str, Any]:
        """
        Insert or update a row keyed on a unique constraint.

        Args:
            table: Table name
            data: Full row to write
            on_conflict: Comma-separated unique columns, e.g. "user_id,date"
        """
        client = cls.get_client()

        try:
            response = client.table(table).upsert(data, on_conflict=on_conflict).execute()
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to upsert into {table}: {e}",
                code="UPSERT_FAILED",
                suggestion=f"Check that a unique constraint exists on ({on_conflict})",
                details={"table": table, "on_conflict": on_conflict}
            )

        return response.data[0] if response.data else data

    @classmethod
    def delete(cls, table: str, filters: dict[str, Any]) -> int:
        """
        Delete rows matching the filters.

        Returns:
            Number of rows deleted
        """
        cls._require_filters(table, filters, "delete")

        client = cls.get_client()

        try:
            query = client.table(table).delete()
            query = cls._apply_filters(query, filters)
            response = query.execute()
            return len(response.data or [])

        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to delete from {table}: {e}",
                code="DELETE_FAILED",
                details={"table": table, "filters": filters}
            )
