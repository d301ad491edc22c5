"""Compute the remote mutations that bring a table in line with the local replica.

Distribution rows are matched on the ``localId`` they carry. Rows written
before that field existed are matched once on ``address`` and then receive
their ``localId`` through the update, after which they match normally.
When several legacy rows share an address, local records claim them in remote
list order; a row is never matched twice.

Zones have no stable identity across edits, so the zone table is replaced
wholesale whenever it no longer mirrors the local zones.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Iterator, Literal, Sequence

from ...db.gateway import Row, remote_id
from ...errors import ShapeError
from ...models.domain import Distribution, Zone, utc_now_iso
from .mapping import (
    FALLBACK_KEY_FIELD,
    LOCAL_ID_FIELD,
    distribution_to_row,
    row_differs,
    zone_to_row,
)

logger = logging.getLogger(__name__)

Action = Literal["create", "update", "delete"]


@dataclass(slots=True)
class PlannedOperation:
    action: Action
    key: str
    remote_id: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    reason: str = ""


@dataclass(slots=True)
class SyncPlan:
    table: str
    to_create: list[PlannedOperation] = field(default_factory=list)
    to_update: list[PlannedOperation] = field(default_factory=list)
    to_delete: list[PlannedOperation] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.to_create or self.to_update or self.to_delete)

    def operations(self) -> Iterator[PlannedOperation]:
        """Operations in application order: deletes, then updates, then creates."""
        yield from self.to_delete
        yield from self.to_update
        yield from self.to_create

    def summary(self) -> dict[str, list[str]]:
        """Keys per non-empty bucket, e.g. ``{"toCreate": ["a"]}``; ``{}`` for an empty plan."""
        buckets = {
            "toCreate": [op.key for op in self.to_create],
            "toUpdate": [op.key for op in self.to_update],
            "toDelete": [op.key for op in self.to_delete],
        }
        return {name: keys for name, keys in buckets.items() if keys}


def _row_local_id(row: Row) -> str | None:
    value = row.get(LOCAL_ID_FIELD)
    if value is None or value == "":
        return None
    return str(value)


def reconcile_distributions(
    local: Sequence[Distribution],
    remote: Sequence[Row],
    *,
    table: str = "Distributions",
    now: str | None = None,
) -> SyncPlan:
    plan = SyncPlan(table=table)
    local_ids = {d.id for d in local}
    local_addresses = {d.address for d in local if d.address}

    by_local_id: dict[str, Row] = {}
    legacy_by_address: dict[str, list[Row]] = defaultdict(list)

    for row in remote:
        row_id = remote_id(row)
        local_id = _row_local_id(row)
        if local_id is not None:
            if local_id not in local_ids:
                plan.to_delete.append(PlannedOperation("delete", local_id, row_id, reason="deleted locally"))
            elif local_id in by_local_id:
                plan.to_delete.append(PlannedOperation("delete", local_id, row_id, reason="duplicate localId"))
            else:
                by_local_id[local_id] = row
            continue

        address = row.get(FALLBACK_KEY_FIELD) or ""
        if address in local_addresses:
            legacy_by_address[address].append(row)
        else:
            plan.to_delete.append(PlannedOperation("delete", row_id or address, row_id, reason="legacy row not found locally"))

    for distribution in local:
        payload = distribution_to_row(distribution)
        row = by_local_id.get(distribution.id)
        reason = "matched by localId"
        if row is None and distribution.address:
            candidates = legacy_by_address.get(distribution.address)
            if candidates:
                row = candidates.pop(0)
                reason = "matched by address"
                logger.info(f"[MIGRATION] Matching '{distribution.address}' by address (will add localId)")

        if row is None:
            payload["createdAt"] = distribution.created_at or now or utc_now_iso()
            plan.to_create.append(PlannedOperation("create", distribution.id, None, payload, reason="new local record"))
        elif _row_local_id(row) is None or row_differs(row, payload):
            plan.to_update.append(PlannedOperation("update", distribution.id, remote_id(row), payload, reason=reason))

    return plan


def _zones_mirrored(remote: Sequence[Row], payloads: Sequence[Row]) -> bool:
    if len(remote) != len(payloads):
        return False
    unmatched = list(remote)
    for payload in payloads:
        for index, row in enumerate(unmatched):
            if not row_differs(row, payload):
                del unmatched[index]
                break
        else:
            return False
    return True


def plan_zone_replacement(local: Sequence[Zone], remote: Sequence[Row], *, table: str = "Zones") -> SyncPlan:
    """Delete every remote zone row and recreate all local zones, unless already mirrored."""
    plan = SyncPlan(table=table)
    payloads: list[tuple[Zone, Row]] = []
    for zone in local:
        try:
            payloads.append((zone, zone_to_row(zone)))
        except ShapeError as exc:
            logger.warning(f"Skipping zone '{zone.name}' with unusable geometry: {exc}")

    if _zones_mirrored(remote, [payload for _, payload in payloads]):
        return plan

    for row in remote:
        row_id = remote_id(row)
        plan.to_delete.append(PlannedOperation("delete", row_id or str(row.get("name") or ""), row_id, reason="replace"))
    for zone, payload in payloads:
        plan.to_create.append(PlannedOperation("create", zone.id, None, payload, reason="replace"))
    return plan
