"""HTTP gateway for the NocoDB tabular API."""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from ..config import settings
from ..errors import TransientNetworkError
from .gateway import Row

logger = logging.getLogger(__name__)

CREDENTIAL_HEADER = "xc-token"


def build_where(filters: Mapping[str, Any]) -> str:
    """Encode equality filters in NocoDB's ``(field,eq,value)~and(...)`` syntax."""
    return "~and".join(f"({field},eq,{value})" for field, value in filters.items())


class NocoDBGateway:
    """Async CRUD client for ``/api/v1/db/data/noco/{project}/{table}``.

    In proxy mode the credential header is never sent; a trusted intermediary
    (for example a Cloudflare worker) injects it server-side.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_token: str | None = None,
        project_id: str | None = None,
        proxy_mode: bool | None = None,
        page_size: int | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = (base_url or settings.remote_base_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("Remote table base URL is not configured.")
        self.api_token = api_token if api_token is not None else settings.remote_api_token
        if proxy_mode is None:
            proxy_mode = settings.remote_proxy_mode
        self.proxy_mode = proxy_mode if proxy_mode is not None else "workers.dev" in self.base_url
        self.page_size = page_size or settings.remote_page_size
        self._project_id = project_id or settings.remote_project_id
        self._client = client or httpx.AsyncClient()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if not self.proxy_mode and self.api_token:
            headers[CREDENTIAL_HEADER] = self.api_token
        return headers

    async def _request(
        self,
        method: str,
        table: str,
        operation: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        body: Mapping[str, Any] | None = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug(f"{method} {url}")
        try:
            response = await self._client.request(
                method, url, params=params, json=dict(body) if body is not None else None, headers=self._headers()
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            raise TransientNetworkError(
                table, operation, f"{status_code} - {exc.response.text}", status_code=status_code
            ) from exc
        except httpx.HTTPError as exc:
            raise TransientNetworkError(table, operation, str(exc) or type(exc).__name__) from exc

        if "application/json" in response.headers.get("content-type", ""):
            return response.json()
        return response.text

    async def project_id(self, table: str = "meta") -> str:
        """Resolve the project id, using the first project when none is configured."""
        if self._project_id:
            return self._project_id
        payload = await self._request("GET", table, "META", "/api/v1/db/meta/projects/")
        projects = payload.get("list") if isinstance(payload, dict) else None
        if not projects:
            raise TransientNetworkError(table, "META", "No project found")
        self._project_id = str(projects[0]["id"])
        logger.info(f"Resolved remote project id {self._project_id}")
        return self._project_id

    async def _table_path(self, table: str, record_id: str | None = None) -> str:
        project = await self.project_id(table)
        path = f"/api/v1/db/data/noco/{project}/{table}"
        return f"{path}/{record_id}" if record_id is not None else path

    async def list(self, table: str, filters: Mapping[str, Any] | None = None) -> list[Row]:
        path = await self._table_path(table)
        rows: list[Row] = []
        offset = 0
        while True:
            params: dict[str, Any] = {"limit": self.page_size, "offset": offset}
            if filters:
                params["where"] = build_where(filters)
            payload = await self._request("GET", table, "LIST", path, params=params)
            page = (payload.get("list") if isinstance(payload, dict) else None) or []
            rows.extend(page)
            page_info = (payload.get("pageInfo") or {}) if isinstance(payload, dict) else {}
            if not page or len(page) < self.page_size or page_info.get("isLastPage") is True:
                break
            offset += len(page)
        return rows

    async def get(self, table: str, record_id: str) -> Row:
        return await self._request("GET", table, "GET", await self._table_path(table, record_id))

    async def create(self, table: str, body: Mapping[str, Any]) -> Row:
        return await self._request("POST", table, "CREATE", await self._table_path(table), body=body)

    async def update(self, table: str, record_id: str, body: Mapping[str, Any]) -> Row:
        return await self._request("PATCH", table, "UPDATE", await self._table_path(table, record_id), body=body)

    async def delete(self, table: str, record_id: str) -> None:
        await self._request("DELETE", table, "DELETE", await self._table_path(table, record_id))

    async def close(self) -> None:
        await self._client.aclose()
