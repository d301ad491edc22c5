"""Activity log: one remote row per create/update/delete/login/logout."""

from __future__ import annotations

import json
import logging
import platform
from dataclasses import dataclass
from typing import Any, Literal, Mapping, Optional

from ..config import settings
from ..db.gateway import TableGateway
from ..errors import RemoteTableError
from ..models.domain import utc_now, utc_now_iso

logger = logging.getLogger(__name__)

LogAction = Literal["create", "update", "delete", "login", "logout"]
LogEntityType = Literal["distribution", "zone", "binome", "session"]


@dataclass(slots=True)
class LogContext:
    user_id: str
    user_name: str
    started_at: float


def _encode(values: Optional[Mapping[str, Any]]) -> Optional[str]:
    if values is None:
        return None
    return json.dumps(dict(values), ensure_ascii=False, default=str)


class ActivityLogger:
    """Writes audit rows to the Logs table.

    Nothing is written while no user context is set. A failed write is logged
    and dropped so it never interferes with the action being audited.
    """

    def __init__(self, gateway: TableGateway, table: str | None = None) -> None:
        self.gateway = gateway
        self.table = table or settings.logs_table
        self.context: LogContext | None = None

    def set_context(self, user_id: str, user_name: str) -> None:
        self.context = LogContext(user_id=user_id, user_name=user_name, started_at=utc_now().timestamp())

    def clear_context(self) -> None:
        self.context = None

    def _session_duration(self) -> int | None:
        if self.context is None:
            return None
        return int(utc_now().timestamp() - self.context.started_at)

    def build_entry(
        self,
        action: LogAction,
        entity_type: LogEntityType,
        entity_id: str,
        entity_name: str | None = None,
        old_values: Mapping[str, Any] | None = None,
        new_values: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        if self.context is None:
            raise RuntimeError("No logging context set")
        entry = {
            "timestamp": utc_now_iso(),
            "action": action,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "entity_name": entity_name,
            "user_id": self.context.user_id,
            "user_name": self.context.user_name,
            "old_values": _encode(old_values),
            "new_values": _encode(new_values),
            "platform": platform.system().lower() or "unknown",
            "session_duration": self._session_duration(),
        }
        return {key: value for key, value in entry.items() if value is not None}

    async def log(
        self,
        action: LogAction,
        entity_type: LogEntityType,
        entity_id: str,
        entity_name: str | None = None,
        old_values: Mapping[str, Any] | None = None,
        new_values: Mapping[str, Any] | None = None,
    ) -> bool:
        """Write one entry. Returns whether a row was created."""
        if self.context is None:
            logger.debug(f"No logging context, skipping {action} {entity_type} {entity_id}")
            return False

        entry = self.build_entry(action, entity_type, entity_id, entity_name, old_values, new_values)
        try:
            await self.gateway.create(self.table, entry)
        except RemoteTableError as exc:
            logger.warning(f"Failed to write activity log ({action} {entity_type} {entity_id}): {exc}")
            return False
        logger.debug(f"Activity logged: {action} {entity_type} {entity_id}")
        return True

    async def log_create(self, entity_type: LogEntityType, entity_id: str, entity_name: str, new_values: Mapping[str, Any]) -> bool:
        return await self.log("create", entity_type, entity_id, entity_name, None, new_values)

    async def log_update(
        self,
        entity_type: LogEntityType,
        entity_id: str,
        entity_name: str,
        old_values: Mapping[str, Any],
        new_values: Mapping[str, Any],
    ) -> bool:
        return await self.log("update", entity_type, entity_id, entity_name, old_values, new_values)

    async def log_delete(self, entity_type: LogEntityType, entity_id: str, entity_name: str, old_values: Mapping[str, Any]) -> bool:
        return await self.log("delete", entity_type, entity_id, entity_name, old_values, None)

    async def log_login(self, user_id: str, user_name: str) -> bool:
        self.set_context(user_id, user_name)
        return await self.log("login", "session", user_id, user_name)

    async def log_logout(self) -> bool:
        if self.context is None:
            return False
        written = await self.log("logout", "session", self.context.user_id, self.context.user_name)
        self.clear_context()
        return written
