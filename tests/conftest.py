from __future__ import annotations

import asyncio
import copy
from datetime import timedelta
from typing import Any, Mapping

import pytest

from src.fieldsync.errors import TransientNetworkError
from src.fieldsync.models.domain import Distribution, Session, utc_now
from src.fieldsync.persistence.kv import MemoryKeyValueStore
from src.fieldsync.persistence.replica import LocalReplica


class FakeGateway:
    """In-memory stand-in for the remote table store, NocoDB-style ``Id`` keys."""

    def __init__(self, tables: dict[str, list[dict[str, Any]]] | None = None) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_list: set[str] = set()
        self.fail_ids: set[str] = set()
        self.held: dict[tuple[str, str], asyncio.Event] = {}
        self._next_id = 1
        for table, rows in (tables or {}).items():
            for row in rows:
                self.seed(table, row)

    def seed(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        stored = dict(row)
        stored.setdefault("Id", self._next_id)
        self._next_id = max(self._next_id, int(stored["Id"])) + 1
        self.tables.setdefault(table, []).append(stored)
        return stored

    def rows(self, table: str) -> list[dict[str, Any]]:
        return self.tables.get(table, [])

    def mutations(self) -> list[tuple[str, str]]:
        return [call for call in self.calls if call[0] != "list"]

    def hold(self, action: str, table: str) -> asyncio.Event:
        """Make ``action`` on ``table`` wait until the returned event is set."""
        return self.held.setdefault((action, table), asyncio.Event())

    async def _wait(self, action: str, table: str) -> None:
        event = self.held.get((action, table))
        if event is not None:
            await event.wait()

    def _find(self, table: str, record_id: str) -> dict[str, Any] | None:
        return next((row for row in self.rows(table) if str(row["Id"]) == str(record_id)), None)

    async def list(self, table: str, filters: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        self.calls.append(("list", table))
        if table in self.fail_list:
            raise TransientNetworkError(table, "LIST", "503 - unavailable", status_code=503)
        rows = self.rows(table)
        if filters:
            rows = [row for row in rows if all(row.get(k) == v for k, v in filters.items())]
        return copy.deepcopy(rows)

    async def get(self, table: str, record_id: str) -> dict[str, Any]:
        row = self._find(table, record_id)
        if row is None:
            raise TransientNetworkError(table, "GET", "404 - not found", status_code=404)
        return copy.deepcopy(row)

    async def create(self, table: str, body: Mapping[str, Any]) -> dict[str, Any]:
        self.calls.append(("create", table))
        await self._wait("create", table)
        if body.get("localId") in self.fail_ids:
            raise TransientNetworkError(table, "CREATE", "500 - boom", status_code=500)
        return copy.deepcopy(self.seed(table, body))

    async def update(self, table: str, record_id: str, body: Mapping[str, Any]) -> dict[str, Any]:
        self.calls.append(("update", table))
        if str(record_id) in self.fail_ids:
            raise TransientNetworkError(table, "UPDATE", "500 - boom", status_code=500)
        row = self._find(table, record_id)
        if row is None:
            raise TransientNetworkError(table, "UPDATE", "404 - not found", status_code=404)
        row.update(body)
        return copy.deepcopy(row)

    async def delete(self, table: str, record_id: str) -> None:
        self.calls.append(("delete", table))
        if str(record_id) in self.fail_ids:
            raise TransientNetworkError(table, "DELETE", "500 - boom", status_code=500)
        self.tables[table] = [row for row in self.rows(table) if str(row["Id"]) != str(record_id)]

    async def close(self) -> None:
        return None


def make_distribution(local_id: str, address: str, **overrides: Any) -> Distribution:
    values: dict[str, Any] = {
        "id": local_id,
        "address": address,
        "lat": 48.85,
        "lng": 2.35,
        "owner_id": "alice",
        "created_at": "2024-03-01T10:00:00Z",
        "updated_at": "2024-03-01T10:00:00Z",
    }
    values.update(overrides)
    return Distribution(**values)


def make_session(user_id: str = "alice", *, is_admin: bool = False, assigned_zone: str | None = None) -> Session:
    return Session(
        user_id=user_id,
        display_name=f"Binome {user_id}",
        assigned_zone=assigned_zone,
        is_admin=is_admin,
        expiry=utc_now() + timedelta(minutes=30),
    )


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def replica(store: MemoryKeyValueStore) -> LocalReplica:
    return LocalReplica(store)
