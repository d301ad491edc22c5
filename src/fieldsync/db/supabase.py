"""Supabase client and a table gateway built on it."""

import asyncio
import logging
from functools import lru_cache
from typing import Any, Callable, Mapping

from supabase import create_client, Client

from ..config import settings
from ..errors import RemoteTableError, TransientNetworkError
from .gateway import Row

logger = logging.getLogger(__name__)


@lru_cache()
def get_supabase_client() -> Client | None:
    """Get cached Supabase client instance.

    Returns:
        Supabase Client instance if configured, None otherwise.
        Note: This does not test the connection - actual queries may fail with network errors.
    """
    if not settings.supabase_url or not settings.supabase_key:
        logger.warning("Supabase credentials not configured (missing URL or key)")
        return None

    try:
        return create_client(settings.supabase_url, settings.supabase_key)
    except Exception as e:
        logger.error(f"Failed to create Supabase client: {e}")
        return None


class SupabaseTableGateway:
    """Table gateway over the blocking Supabase client.

    Each call runs in a worker thread so a slow request never stalls the event
    loop that serves local mutations.
    """

    def __init__(self, client: Client | None = None, id_column: str = "id", page_size: int | None = None) -> None:
        self._client = client or get_supabase_client()
        if self._client is None:
            raise ValueError("Supabase is not configured. Set FIELDSYNC_SUPABASE_URL and FIELDSYNC_SUPABASE_KEY.")
        self.id_column = id_column
        self.page_size = page_size or settings.remote_page_size

    async def _run(self, table: str, operation: str, call: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(call)
        except RemoteTableError:
            raise
        except Exception as exc:
            raise TransientNetworkError(table, operation, str(exc) or type(exc).__name__) from exc

    async def list(self, table: str, filters: Mapping[str, Any] | None = None) -> list[Row]:
        rows: list[Row] = []
        offset = 0
        while True:
            def fetch_page(start: int = offset) -> list[Row]:
                query = self._client.table(table).select("*")
                for column, value in (filters or {}).items():
                    query = query.eq(column, value)
                query = query.order(self.id_column)
                return query.range(start, start + self.page_size - 1).execute().data or []

            page = await self._run(table, "LIST", fetch_page)
            rows.extend(page)
            if len(page) < self.page_size:
                break
            offset += len(page)
        return rows

    async def get(self, table: str, record_id: str) -> Row:
        def fetch() -> Row:
            data = self._client.table(table).select("*").eq(self.id_column, record_id).limit(1).execute().data
            if not data:
                raise RemoteTableError(table, "GET", f"record {record_id} not found", status_code=404)
            return data[0]

        return await self._run(table, "GET", fetch)

    async def create(self, table: str, body: Mapping[str, Any]) -> Row:
        def insert() -> Row:
            data = self._client.table(table).insert(dict(body)).execute().data
            return data[0] if data else {}

        return await self._run(table, "CREATE", insert)

    async def update(self, table: str, record_id: str, body: Mapping[str, Any]) -> Row:
        def patch() -> Row:
            data = self._client.table(table).update(dict(body)).eq(self.id_column, record_id).execute().data
            return data[0] if data else {}

        return await self._run(table, "UPDATE", patch)

    async def delete(self, table: str, record_id: str) -> None:
        await self._run(
            table, "DELETE", lambda: self._client.table(table).delete().eq(self.id_column, record_id).execute()
        )

    async def close(self) -> None:
        return None
