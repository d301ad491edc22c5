"""Local mutations of distributions.

Every mutation is applied to the replica and saved before anything touches the
network, then audited and handed to the sync engine's debounce timer.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import timedelta
from typing import Any, Mapping, Optional

from ..errors import RecordNotFound
from ..models.domain import (
    Distribution,
    DistributionStatus,
    PaymentMethod,
    Session,
    new_local_id,
    parse_timestamp,
    utc_now,
    utc_now_iso,
)
from ..persistence.replica import LocalReplica
from .access import can_see_distribution
from .audit import ActivityLogger
from .sync.engine import ReconciliationEngine

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = (
    "address",
    "lat",
    "lng",
    "status",
    "amount",
    "payment_method",
    "notes",
    "recipient_name",
    "owner_id",
)


def normalize_payment(values: dict[str, Any]) -> dict[str, Any]:
    """Reset the payment fields when the status is anything but done."""
    status = DistributionStatus(values.get("status") or DistributionStatus.DONE)
    values["status"] = status
    if status is not DistributionStatus.DONE:
        values["amount"] = 0.0
        values["payment_method"] = PaymentMethod.UNSPECIFIED
    else:
        values["amount"] = float(values.get("amount") or 0.0)
    return values


def next_updated_at(previous: str | None) -> str:
    """Now, or just after ``previous`` if the clock went backwards."""
    now = utc_now()
    earlier = parse_timestamp(previous)
    if earlier is not None and now <= earlier:
        now = earlier + timedelta(milliseconds=1)
    return now.isoformat().replace("+00:00", "Z")


class DistributionService:
    def __init__(
        self,
        replica: LocalReplica,
        engine: ReconciliationEngine | None = None,
        audit: ActivityLogger | None = None,
    ) -> None:
        self.replica = replica
        self.engine = engine
        self.audit = audit

    def list(self) -> list[Distribution]:
        return self.replica.load_distributions()

    def get(self, session: Optional[Session], distribution_id: str) -> Distribution:
        for item in self.replica.load_distributions():
            if item.id == distribution_id and can_see_distribution(session, item):
                return item
        raise RecordNotFound("distribution", distribution_id)

    async def create(self, session: Session, data: Mapping[str, Any]) -> Distribution:
        values = {key: data[key] for key in _EDITABLE_FIELDS if key in data}
        if not session.is_admin or not values.get("owner_id"):
            values["owner_id"] = session.user_id
        now = utc_now_iso()
        distribution = Distribution(id=new_local_id(), created_at=now, updated_at=now, **normalize_payment(values))

        items = self.replica.load_distributions()
        items.insert(0, distribution)
        self.replica.save_distributions(items)
        logger.info(f"Created distribution {distribution.id} at '{distribution.address}'")

        if self.audit is not None:
            await self.audit.log_create("distribution", distribution.id, distribution.address, distribution.to_dict())
        self._schedule()
        return distribution

    async def update(self, session: Session, distribution_id: str, changes: Mapping[str, Any]) -> Distribution:
        items = self.replica.load_distributions()
        index = self._index_of(session, items, distribution_id)
        previous = items[index]

        values = {key: getattr(previous, key) for key in _EDITABLE_FIELDS}
        values.update({key: changes[key] for key in _EDITABLE_FIELDS if key in changes})
        if not session.is_admin:
            values["owner_id"] = previous.owner_id
        updated = replace(previous, **normalize_payment(values), updated_at=next_updated_at(previous.updated_at))

        items[index] = updated
        self.replica.save_distributions(items)
        logger.info(f"Updated distribution {distribution_id}")

        if self.audit is not None:
            await self.audit.log_update("distribution", updated.id, updated.address, previous.to_dict(), updated.to_dict())
        self._schedule()
        return updated

    async def remove(self, session: Session, distribution_id: str) -> Distribution:
        items = self.replica.load_distributions()
        index = self._index_of(session, items, distribution_id)
        removed = items.pop(index)
        self.replica.save_distributions(items)
        logger.info(f"Removed distribution {distribution_id}")

        if self.audit is not None:
            await self.audit.log_delete("distribution", removed.id, removed.address, removed.to_dict())
        self._schedule()
        return removed

    @staticmethod
    def _index_of(session: Session, items: list[Distribution], distribution_id: str) -> int:
        for index, item in enumerate(items):
            if item.id == distribution_id and can_see_distribution(session, item):
                return index
        raise RecordNotFound("distribution", distribution_id)

    def _schedule(self) -> None:
        if self.engine is not None:
            self.engine.schedule()
