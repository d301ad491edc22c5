"""Contract shared by every remote table backend."""

from __future__ import annotations

from typing import Any, Mapping, Protocol

Row = dict[str, Any]


class TableGateway(Protocol):
    """Generic CRUD over one logical table per entity type.

    Implementations raise ``TransientNetworkError`` when a request fails.
    """

    async def list(self, table: str, filters: Mapping[str, Any] | None = None) -> list[Row]: ...

    async def get(self, table: str, record_id: str) -> Row: ...

    async def create(self, table: str, body: Mapping[str, Any]) -> Row: ...

    async def update(self, table: str, record_id: str, body: Mapping[str, Any]) -> Row: ...

    async def delete(self, table: str, record_id: str) -> None: ...

    async def close(self) -> None: ...


def remote_id(row: Mapping[str, Any]) -> str | None:
    """Server-assigned id of a row (``Id`` on NocoDB, ``id`` elsewhere)."""
    value = row.get("Id")
    if value is None:
        value = row.get("id")
    return str(value) if value is not None else None
