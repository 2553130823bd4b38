"""Table access over Supabase PostgREST.

All row reads and writes go through TableGateway. The Supabase
implementation translates Filter tuples into PostgREST query builder calls
and converts every client exception into BackendError carrying the
backend's own message, so callers see one error type.

Row-level security is applied by Supabase according to the JWT the
underlying client carries (see supabase_client.create_user_client).
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence

from postgrest.types import ReturnMethod
from supabase import Client

from qresolve_api.errors import BackendError, backend_message

logger = logging.getLogger(__name__)

Row = dict[str, Any]


@dataclass(frozen=True)
class Filter:
    """Single column predicate (column <op> value)."""

    column: str
    op: str
    value: Any


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def neq(column: str, value: Any) -> Filter:
    return Filter(column, "neq", value)


def in_(column: str, values: Sequence[Any]) -> Filter:
    return Filter(column, "in", list(values))


def gte(column: str, value: Any) -> Filter:
    return Filter(column, "gte", value)


def ilike(column: str, pattern: str) -> Filter:
    return Filter(column, "ilike", pattern)


# Filter op -> PostgREST builder method
_BUILDER_METHODS = {
    "eq": "eq",
    "neq": "neq",
    "in": "in_",
    "gte": "gte",
    "ilike": "ilike",
}


class TableGateway(Protocol):
    """Row-scoped CRUD by table name and filter predicates."""

    def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Row]: ...

    def count(self, table: str, *, filters: Sequence[Filter] = ()) -> int: ...

    def insert(
        self, table: str, row: Row, *, returning: ReturnMethod = ReturnMethod.representation
    ) -> Row: ...

    def update(self, table: str, values: Row, *, filters: Sequence[Filter]) -> list[Row]: ...

    def delete(self, table: str, *, filters: Sequence[Filter]) -> list[Row]: ...


def _apply_filters(query: Any, filters: Sequence[Filter]) -> Any:
    for f in filters:
        method = _BUILDER_METHODS.get(f.op)
        if method is None:
            raise ValueError(f"Unsupported filter operator: {f.op}")
        query = getattr(query, method)(f.column, f.value)
    return query


class SupabaseTableGateway:
    """TableGateway backed by a supabase-py Client."""

    def __init__(self, client: Client):
        self._client = client

    def _execute(self, table: str, action: str, query: Any) -> Any:
        try:
            return query.execute()
        except Exception as e:
            message = backend_message(e)
            logger.warning(
                "Supabase table call failed",
                extra={
                    "event": "backend.table.error",
                    "table": table,
                    "action": action,
                    "error": message,
                    "error_type": type(e).__name__,
                },
            )
            raise BackendError(message, code=getattr(e, "code", None)) from e

    def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[Row]:
        query = _apply_filters(self._client.table(table).select(columns), filters)
        if order_by:
            query = query.order(order_by, desc=descending)
        if limit is not None:
            query = query.limit(limit)
        response = self._execute(table, "select", query)
        return list(response.data or [])

    def count(self, table: str, *, filters: Sequence[Filter] = ()) -> int:
        query = _apply_filters(
            self._client.table(table).select("id", count="exact", head=True), filters
        )
        response = self._execute(table, "count", query)
        return response.count or 0

    def insert(
        self, table: str, row: Row, *, returning: ReturnMethod = ReturnMethod.representation
    ) -> Row:
        """Insert one row.

        With ReturnMethod.minimal nothing is read back (callers without SELECT
        rights on the table) and the row as sent is returned.
        """
        query = self._client.table(table).insert(row, returning=returning)
        response = self._execute(table, "insert", query)
        if returning is ReturnMethod.minimal:
            return dict(row)
        if not response.data:
            # RLS can accept the write but hide the returned representation
            raise BackendError(f"Insert into {table} returned no row")
        return response.data[0]

    def update(self, table: str, values: Row, *, filters: Sequence[Filter]) -> list[Row]:
        if not filters:
            raise ValueError("update requires at least one filter")
        query = _apply_filters(self._client.table(table).update(values), filters)
        response = self._execute(table, "update", query)
        return list(response.data or [])

    def delete(self, table: str, *, filters: Sequence[Filter]) -> list[Row]:
        if not filters:
            raise ValueError("delete requires at least one filter")
        query = _apply_filters(self._client.table(table).delete(), filters)
        response = self._execute(table, "delete", query)
        return list(response.data or [])
