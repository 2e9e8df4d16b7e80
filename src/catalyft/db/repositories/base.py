"""Base repository over a Supabase client.

Repositories own the table and column names. Services only see plain
dictionaries and never build queries themselves.
"""

import logging
from typing import Any, Dict, List, Optional

from supabase import Client

from ...exceptions import DatabaseError


logger = logging.getLogger(__name__)

Row = Dict[str, Any]


class SupabaseRepository:
    """Shared query execution and error mapping for Supabase tables."""

    def __init__(self, client: Client):
        self.client = client

    def _table(self, name: str):
        return self.client.table(name)

    def _execute(self, query, operation: str) -> List[Row]:
        """
        Run a query builder and return its rows.

        Raises:
            DatabaseError: If the request to Supabase fails
        """
        try:
            response = query.execute()
        except Exception as e:
            logger.error(f"Supabase operation '{operation}' failed: {e}")
            raise DatabaseError(
                message=f"Failed to {operation}",
                operation=operation,
                details={"reason": str(e)},
            ) from e

        data = getattr(response, "data", None)
        if data is None:
            return []
        if isinstance(data, dict):
            return [data]
        return list(data)

    def _first(self, query, operation: str) -> Optional[Row]:
        """Run a query limited to one row and return it, or None."""
        rows = self._execute(query.limit(1), operation)
        return rows[0] if rows else None
