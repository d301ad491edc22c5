"""Apply a sync plan record by record.

A failed operation is logged and skipped; the rest of the plan still runs.
Nothing is rolled back: the local replica is unchanged, so the next cycle
recomputes the same intent and retries.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from ...db.gateway import TableGateway
from ...errors import RemoteTableError
from .plan import PlannedOperation, SyncPlan

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ApplyReport:
    table: str
    created: int = 0
    updated: int = 0
    deleted: int = 0
    failures: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict[str, Any]:
        return {
            "table": self.table,
            "created": self.created,
            "updated": self.updated,
            "deleted": self.deleted,
            "failures": list(self.failures),
        }


async def _apply_one(gateway: TableGateway, table: str, op: PlannedOperation) -> None:
    match op.action:
        case "delete":
            await gateway.delete(table, op.remote_id)
        case "update":
            await gateway.update(table, op.remote_id, op.payload)
        case "create":
            await gateway.create(table, op.payload)
        case _:
            raise ValueError(f"Unknown plan action '{op.action}'")


async def apply_plan(gateway: TableGateway, plan: SyncPlan) -> ApplyReport:
    report = ApplyReport(table=plan.table)
    for op in plan.operations():
        label = op.action.upper()
        if op.action != "create" and op.remote_id is None:
            message = f"[{label}] {op.key}: remote row has no id, skipped"
            logger.warning(message)
            report.failures.append(message)
            continue
        try:
            await _apply_one(gateway, plan.table, op)
        except RemoteTableError as exc:
            message = f"[{label}] {op.key} failed: {exc}"
            logger.warning(f"  ✗ {message}")
            report.failures.append(message)
            continue

        logger.info(f"[{label}] {plan.table} {op.key} (remote id: {op.remote_id or 'new'}, {op.reason})")
        if op.action == "create":
            report.created += 1
        elif op.action == "update":
            report.updated += 1
        else:
            report.deleted += 1
    return report
