"""Shared test fixtures for VelvetCore."""

import tempfile
import uuid
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio

from velvetcore.config import StoreConfig
from velvetcore.identity import StaticIdentity
from velvetcore.persistence import PersistenceService
from velvetcore.store.client import StoreError
from velvetcore.store.database import Database

# child table -> [(column, parent table)], all ON DELETE CASCADE
FOREIGN_KEYS = {
    "chat_sessions": [("character_id", "characters")],
    "messages": [("session_id", "chat_sessions")],
    "lorebooks": [("character_id", "characters")],
    "lorebook_entries": [("lorebook_id", "lorebooks")],
}
UNIQUE_COLUMNS = {"app_settings": ["user_id"]}
TABLES = [
    "characters",
    "chat_sessions",
    "messages",
    "lorebooks",
    "lorebook_entries",
    "app_settings",
]


class FakeStore:
    """
    In-memory StoreClient with the relational behaviour the real store
    provides: equality filters, ordering, upsert by primary key or
    on_conflict column, foreign keys with cascading deletes, a unique
    user_id on app_settings, and PGRST116 for single-row misses.
    """

    def __init__(self):
        self.tables: dict[str, dict[str, dict[str, Any]]] = {t: {} for t in TABLES}
        self.requests: list[tuple[str, str]] = []
        self.rpc_calls: list[tuple[str, dict[str, Any]]] = []
        self.failing_tables: set[str] = set()
        self.fail_rpc = False
        self.closed = False
        self._seq = 0

    async def select(self, table, filters=None, *, columns="*", order_by=None, descending=False):
        self.requests.append(("select", table))
        rows = [r for r in self.tables[table].values() if _matches(r, filters)]
        if order_by:
            rows.sort(key=lambda r: r.get(order_by), reverse=descending)
        return [_project(r, columns) for r in rows]

    async def select_single(self, table, filters=None, *, columns="*"):
        self.requests.append(("select_single", table))
        rows = [r for r in self.tables[table].values() if _matches(r, filters)]
        if len(rows) != 1:
            raise StoreError(
                "JSON object requested, multiple (or no) rows returned",
                code="PGRST116",
                details=f"The result contains {len(rows)} rows",
                status_code=406,
            )
        return _project(rows[0], columns)

    async def upsert(self, table, rows, *, on_conflict=None):
        self.requests.append(("upsert", table))
        if table in self.failing_tables:
            raise StoreError("permission denied for table " + table, code="42501", status_code=403)
        key = on_conflict or "id"
        for row in rows:
            self._check_foreign_keys(table, row)
        for row in rows:
            existing = next(
                (r for r in self.tables[table].values() if key in row and r.get(key) == row[key]),
                None,
            )
            if existing is not None:
                existing.update(row)
                continue
            self._check_unique(table, row)
            new_row = {"created_at": self._next_created_at(), **row}
            new_row.setdefault("id", str(uuid.uuid4()))
            self.tables[table][new_row["id"]] = new_row

    async def delete(self, table, filters):
        self.requests.append(("delete", table))
        doomed = [rid for rid, r in self.tables[table].items() if _matches(r, filters)]
        for rid in doomed:
            self._delete_cascade(table, rid)

    async def rpc(self, function, params):
        self.rpc_calls.append((function, params))
        if self.fail_rpc:
            raise StoreError(f"Could not find the function public.{function}", code="PGRST202", status_code=404)
        return None

    async def aclose(self):
        self.closed = True

    def count(self, table: str) -> int:
        return len(self.tables[table])

    def _delete_cascade(self, table: str, row_id: str) -> None:
        self.tables[table].pop(row_id, None)
        for child, refs in FOREIGN_KEYS.items():
            for column, parent in refs:
                if parent != table:
                    continue
                for cid in [cid for cid, r in self.tables[child].items() if r.get(column) == row_id]:
                    self._delete_cascade(child, cid)

    def _check_foreign_keys(self, table: str, row: dict[str, Any]) -> None:
        for column, parent in FOREIGN_KEYS.get(table, []):
            value = row.get(column)
            if value is not None and value not in self.tables[parent]:
                raise StoreError(
                    f'insert or update on table "{table}" violates foreign key constraint',
                    code="23503",
                    status_code=409,
                )

    def _check_unique(self, table: str, row: dict[str, Any]) -> None:
        for column in UNIQUE_COLUMNS.get(table, []):
            if any(r.get(column) == row.get(column) for r in self.tables[table].values()):
                raise StoreError(
                    "duplicate key value violates unique constraint",
                    code="23505",
                    status_code=409,
                )

    def _next_created_at(self) -> str:
        self._seq += 1
        return (datetime(2026, 1, 1, tzinfo=UTC) + timedelta(seconds=self._seq)).isoformat()


def _matches(row: dict[str, Any], filters: dict[str, Any] | None) -> bool:
    return all(row.get(k) == v for k, v in (filters or {}).items())


def _project(row: dict[str, Any], columns: str) -> dict[str, Any]:
    if columns == "*":
        return dict(row)
    return {c.strip(): row.get(c.strip()) for c in columns.split(",")}


@pytest.fixture
def tmp_dir():
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as d:
        yield Path(d)


@pytest.fixture
def identity_path(tmp_dir):
    """Provide a temporary identity storage file."""
    return tmp_dir / "identity.json"


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def store_config():
    return StoreConfig(url="https://demo.supabase.co/", anon_key="test-anon-key")


def make_service(store: FakeStore, config: StoreConfig, owner: str) -> PersistenceService:
    db = Database(config, StaticIdentity(owner), client_factory=lambda _: store)
    return PersistenceService(db)


@pytest_asyncio.fixture
async def service(store, store_config):
    """An initialized service for owner-a."""
    svc = make_service(store, store_config, "owner-a")
    assert await svc.initialize()
    yield svc
    await svc.close()


@pytest_asyncio.fixture
async def other_service(store, store_config):
    """An initialized service for owner-b sharing the same store."""
    svc = make_service(store, store_config, "owner-b")
    assert await svc.initialize()
    yield svc
    await svc.close()
