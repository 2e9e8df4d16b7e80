"""Shared fixtures: an in-memory stand-in for the Supabase query builder."""

from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest


class FakeQuery:
    """Records one PostgREST-style query and runs it against FakeSupabase tables."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.action = "select"
        self.payload: Any = None
        self.on_conflict: Optional[str] = None
        self.filters: List = []
        self.orders: List = []
        self.row_limit: Optional[int] = None
        self.negate_next = False

    # --- actions ---
    def select(self, columns: str = "*"):
        self.action = "select"
        return self

    def insert(self, rows):
        self.action, self.payload = "insert", rows
        return self

    def upsert(self, rows, on_conflict: Optional[str] = None):
        self.action, self.payload, self.on_conflict = "upsert", rows, on_conflict
        return self

    def update(self, values):
        self.action, self.payload = "update", values
        return self

    def delete(self):
        self.action = "delete"
        return self

    # --- filters ---
    @property
    def not_(self):
        self.negate_next = True
        return self

    def _filter(self, predicate):
        if self.negate_next:
            self.negate_next = False
            self.filters.append(lambda row, p=predicate: not p(row))
        else:
            self.filters.append(predicate)
        return self

    def eq(self, column, value):
        return self._filter(lambda row: row.get(column) == value)

    def neq(self, column, value):
        return self._filter(lambda row: row.get(column) != value)

    def gt(self, column, value):
        return self._filter(lambda row: row.get(column) is not None and row[column] > value)

    def gte(self, column, value):
        return self._filter(lambda row: row.get(column) is not None and row[column] >= value)

    def lt(self, column, value):
        return self._filter(lambda row: row.get(column) is not None and row[column] < value)

    def lte(self, column, value):
        return self._filter(lambda row: row.get(column) is not None and row[column] <= value)

    def in_(self, column, values):
        return self._filter(lambda row: row.get(column) in values)

    def is_(self, column, value):
        assert value == "null"
        return self._filter(lambda row: row.get(column) is None)

    def overlaps(self, column, values):
        return self._filter(lambda row: bool(set(row.get(column) or []) & set(values)))

    def order(self, column, desc: bool = False):
        self.orders.append((column, desc))
        return self

    def limit(self, count: int):
        self.row_limit = count
        return self

    # --- execution ---
    def _matches(self, row: Dict[str, Any]) -> bool:
        return all(predicate(row) for predicate in self.filters)

    def execute(self):
        if self.table in self.db.failing_tables:
            raise RuntimeError(f"{self.table} is unavailable")

        rows = self.db.tables.setdefault(self.table, [])
        if self.action == "select":
            data = [dict(row) for row in rows if self._matches(row)]
            for column, desc in reversed(self.orders):
                data.sort(key=lambda row: (row.get(column) is None, row.get(column)), reverse=desc)
            if self.row_limit is not None:
                data = data[: self.row_limit]
            return SimpleNamespace(data=data)

        if self.action == "insert":
            new_rows = self.payload if isinstance(self.payload, list) else [self.payload]
            created = [self.db.add(self.table, row) for row in new_rows]
            return SimpleNamespace(data=created)

        if self.action == "upsert":
            new_rows = self.payload if isinstance(self.payload, list) else [self.payload]
            keys = [key.strip() for key in (self.on_conflict or "id").split(",")]
            saved = []
            for row in new_rows:
                existing = next(
                    (r for r in rows if all(r.get(k) == row.get(k) for k in keys)),
                    None,
                )
                if existing is not None:
                    existing.update(row)
                    saved.append(dict(existing))
                else:
                    saved.append(self.db.add(self.table, row))
            return SimpleNamespace(data=saved)

        if self.action == "delete":
            removed = [dict(row) for row in rows if self._matches(row)]
            rows[:] = [row for row in rows if not self._matches(row)]
            return SimpleNamespace(data=removed)

        updated = []
        for row in rows:
            if self._matches(row):
                row.update(self.payload)
                updated.append(dict(row))
        return SimpleNamespace(data=updated)


class FakeAuth:
    def __init__(self, users: Dict[str, Dict[str, str]]):
        self.users = users

    def get_user(self, jwt: str):
        user = self.users.get(jwt)
        if user is None:
            raise ValueError("invalid JWT")
        return SimpleNamespace(user=SimpleNamespace(**user))


class FakeSupabase:
    """Tables are plain lists of dicts keyed by table name."""

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.tables: Dict[str, List[Dict[str, Any]]] = {
            name: [dict(row) for row in rows] for name, rows in (tables or {}).items()
        }
        self.failing_tables: set = set()
        self.auth = FakeAuth({})
        self._next_id = 1

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def add(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        stored = dict(row)
        if stored.get("id") is None:
            stored["id"] = f"{table}-{self._next_id}"
            self._next_id += 1
        self.tables.setdefault(table, []).append(stored)
        return dict(stored)

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.get(table, [])


@pytest.fixture
def supabase():
    """An empty in-memory Supabase."""
    return FakeSupabase()


@pytest.fixture
def make_supabase():
    """Factory for an in-memory Supabase seeded with ``{table: rows}``."""
    return FakeSupabase
