"""Pydantic models for sync endpoints."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel


class SyncStatusResponse(BaseModel):
    status: str
    sync_in_progress: bool
    pending: bool
    cycle_count: int
    last_sync_time: Optional[str] = None
    last_error: Optional[str] = None
    last_result: Optional[dict[str, Any]] = None


class SyncRunResponse(BaseModel):
    ran: bool
    result: Optional[dict[str, Any]] = None
    status: SyncStatusResponse


class CleanupResponse(BaseModel):
    table: str
    deleted: int
