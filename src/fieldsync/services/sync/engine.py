"""Debounced, single-flight reconciliation of the local replica with the remote tables.

Every local mutation calls :meth:`ReconciliationEngine.schedule`, which
(re)starts the debounce timer. When the timer elapses a cycle runs, unless one
is already in flight, in which case the timer is re-armed. A cycle first lists
every remote table it will touch; if any listing fails the cycle is aborted
before a single mutation is sent. Each cycle recomputes its plans from current
state, so a retry after a failure needs no stored diff.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional, Sequence

from ...config import settings
from ...db.gateway import Row, TableGateway
from ...errors import CycleAbortError, RemoteTableError, ShapeError
from ...models.domain import Distribution, Session, utc_now
from ...persistence.replica import ALL_OWNERS, DISTRIBUTIONS, ZONES, LocalReplica
from .apply import ApplyReport, apply_plan
from .mapping import FALLBACK_KEY_FIELD, LOCAL_ID_FIELD, OWNER_FIELD, row_to_distribution, row_to_zone
from .plan import SyncPlan, plan_zone_replacement, reconcile_distributions

logger = logging.getLogger(__name__)

SessionProvider = Callable[[], Optional[Session]]


class SyncStatus(str, Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    SYNCING = "syncing"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(slots=True)
class SyncResult:
    started_at: datetime
    finished_at: datetime | None = None
    reports: list[ApplyReport] = field(default_factory=list)
    hydrated: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(report.ok for report in self.reports)

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "reports": [report.to_dict() for report in self.reports],
            "hydrated": list(self.hydrated),
        }


class DistributionTarget:
    """Distributions: localId-indexed diff, scoped to the session's own records for non-admins.

    The replica remembers whose rows it has adopted (``ALL_OWNERS`` for an
    admin load, otherwise the member's username). When a session's scope is
    not yet covered, remote rows outside the covered owners that the replica
    does not hold are adopted before planning, so widening the scope never
    deletes another team's rows.
    """

    entity_type = DISTRIBUTIONS

    def __init__(self, replica: LocalReplica, table: str | None = None) -> None:
        self.replica = replica
        self.table = table or settings.distributions_table

    def enabled(self, session: Optional[Session]) -> bool:
        return session is not None

    @staticmethod
    def scope_key(session: Session) -> str:
        return ALL_OWNERS if session.is_admin else session.user_id

    def scope(self, rows: list[Row], session: Session) -> list[Row]:
        if session.is_admin:
            return rows
        return [row for row in rows if str(row.get(OWNER_FIELD) or "") == session.user_id]

    def adopt(self, rows: list[Row], session: Session) -> int:
        loaded = self.replica.loaded_scopes(self.entity_type)
        key = self.scope_key(session)
        if ALL_OWNERS in loaded or key in loaded:
            return 0

        local = self.replica.load_distributions()
        local_ids = {d.id for d in local}
        local_addresses = {d.address for d in local}
        adopted: list[Distribution] = []
        for row in rows:
            if str(row.get(OWNER_FIELD) or "") in loaded:
                continue
            local_id = str(row.get(LOCAL_ID_FIELD) or "")
            held = local_id in local_ids if local_id else row.get(FALLBACK_KEY_FIELD) in local_addresses
            if held:
                continue
            try:
                adopted.append(row_to_distribution(row))
            except (TypeError, ValueError) as exc:
                logger.warning(f"Skipping unreadable remote distribution {row!r}: {exc}")
                continue
            if local_id:
                local_ids.add(local_id)

        if adopted:
            self.replica.save_distributions(local + adopted)
        self.replica.mark_loaded(self.entity_type, key)
        return len(adopted)

    def build_plan(self, rows: list[Row], session: Session) -> SyncPlan:
        local = self.replica.load_distributions()
        if not session.is_admin:
            local = [d for d in local if d.owner_id == session.user_id]
        return reconcile_distributions(local, rows, table=self.table)

    def commit(self) -> None:
        self.replica.save_distributions(self.replica.load_distributions())


class ZoneTarget:
    """Zones: whole-table replacement from admin sessions, a read-only refresh for everyone else."""

    entity_type = ZONES

    def __init__(self, replica: LocalReplica, table: str | None = None) -> None:
        self.replica = replica
        self.table = table or settings.zones_table

    def enabled(self, session: Optional[Session]) -> bool:
        return session is not None

    def scope(self, rows: list[Row], session: Session) -> list[Row]:
        return rows

    def _load(self, rows: list[Row]) -> int:
        zones = []
        for row in rows:
            try:
                zones.append(row_to_zone(row, default_color=settings.default_zone_color))
            except ShapeError as exc:
                logger.warning(f"Skipping remote zone '{row.get('name')}' with unreadable geometry: {exc}")
        self.replica.save_zones(zones)
        return len(zones)

    def adopt(self, rows: list[Row], session: Session) -> int:
        if not session.is_admin:
            return self._load(rows)
        if rows and not self.replica.exists(self.entity_type):
            return self._load(rows)
        return 0

    def build_plan(self, rows: list[Row], session: Session) -> SyncPlan:
        if not session.is_admin:
            return SyncPlan(table=self.table)
        return plan_zone_replacement(self.replica.load_zones(), rows, table=self.table)

    def commit(self) -> None:
        self.replica.save_zones(self.replica.load_zones())


class ReconciliationEngine:
    """Owns the debounce timer and the single-flight guard for sync cycles."""

    def __init__(
        self,
        gateway: TableGateway,
        replica: LocalReplica,
        session_provider: SessionProvider,
        *,
        debounce_seconds: float | None = None,
        targets: Sequence[DistributionTarget | ZoneTarget] | None = None,
        notify: Callable[[str], None] | None = None,
    ) -> None:
        self.gateway = gateway
        self.replica = replica
        self.session_provider = session_provider
        self.debounce_seconds = settings.sync_debounce_seconds if debounce_seconds is None else debounce_seconds
        self.targets = list(targets) if targets is not None else [DistributionTarget(replica), ZoneTarget(replica)]
        self.notify = notify or (lambda message: logger.error(f"User notification: {message}"))

        self.sync_in_progress = False
        self.status = SyncStatus.IDLE
        self.cycle_count = 0
        self.last_sync_time: datetime | None = None
        self.last_error: str | None = None
        self.last_result: SyncResult | None = None
        self._timer: asyncio.TimerHandle | None = None
        self._task: asyncio.Task | None = None

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def schedule(self) -> None:
        """(Re)start the debounce timer; must be called from the event loop."""
        loop = asyncio.get_running_loop()
        self.cancel()
        self._timer = loop.call_later(self.debounce_seconds, self._on_timer)
        if not self.sync_in_progress:
            self.status = SyncStatus.SCHEDULED
        logger.debug(f"Sync scheduled in {self.debounce_seconds}s")

    def cancel(self) -> bool:
        """Drop a pending (not yet fired) timer. A running cycle is never interrupted."""
        if self._timer is None:
            return False
        self._timer.cancel()
        self._timer = None
        if self.status is SyncStatus.SCHEDULED:
            self.status = SyncStatus.IDLE
        return True

    def _on_timer(self) -> None:
        self._timer = None
        if self.sync_in_progress:
            logger.debug("Cycle in flight, re-arming debounce timer")
            self.schedule()
            return
        self._task = asyncio.get_running_loop().create_task(self.sync_now())

    async def sync_now(self) -> SyncResult | None:
        """Run one cycle immediately. Returns None if a cycle was in flight or the cycle failed."""
        if self.sync_in_progress:
            logger.info("Sync already in progress")
            return None

        self.sync_in_progress = True
        self.status = SyncStatus.SYNCING
        try:
            result = await self._run_cycle()
        except CycleAbortError as exc:
            self.status = SyncStatus.ERROR
            self.last_error = str(exc)
            logger.error(f"❌ Sync cycle aborted: {exc}")
            self.notify(f"Synchronisation failed: {exc}")
            return None
        except Exception as exc:
            self.status = SyncStatus.ERROR
            self.last_error = f"{type(exc).__name__}: {exc}"
            logger.exception(f"❌ Sync cycle failed unexpectedly: {exc}")
            self.notify(f"Synchronisation failed: {self.last_error}")
            return None
        finally:
            self.sync_in_progress = False
            self.cycle_count += 1

        self.last_result = result
        self.last_sync_time = result.finished_at
        self.last_error = None
        self.status = SyncStatus.SUCCESS
        logger.info(f"✅ Sync completed at {self.last_sync_time.isoformat()}")
        return result

    async def _run_cycle(self) -> SyncResult:
        result = SyncResult(started_at=utc_now())
        session = self.session_provider()
        targets = [target for target in self.targets if target.enabled(session)]
        if not targets:
            logger.info("No active session allowed to sync, nothing to do")

        snapshots: dict[str, list[Row]] = {}
        for target in targets:
            try:
                rows = await self.gateway.list(target.table)
            except RemoteTableError as exc:
                raise CycleAbortError(f"cannot list remote table '{target.table}': {exc.detail}", cause=exc) from exc
            snapshots[target.table] = target.scope(rows, session)
            logger.info(f"[SYNC] Found {len(snapshots[target.table])} row(s) in {target.table}")

        for target in targets:
            rows = snapshots[target.table]
            count = target.adopt(rows, session)
            if count:
                result.hydrated.append(target.entity_type)
                logger.info(f"[MERGE] Adopted {count} {target.entity_type} from {target.table}")

            plan = target.build_plan(rows, session)
            if plan.is_empty:
                logger.info(f"[SYNC] {target.table} already mirrors the local replica")
            report = await apply_plan(self.gateway, plan)
            result.reports.append(report)
            target.commit()

        result.finished_at = utc_now()
        return result

    async def shutdown(self) -> None:
        """Cancel a pending timer and let an in-flight cycle finish."""
        self.cancel()
        if self._task is not None and not self._task.done():
            await self._task

    def status_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "sync_in_progress": self.sync_in_progress,
            "pending": self.pending,
            "cycle_count": self.cycle_count,
            "last_sync_time": self.last_sync_time.isoformat() if self.last_sync_time else None,
            "last_error": self.last_error,
            "last_result": self.last_result.to_dict() if self.last_result else None,
        }
