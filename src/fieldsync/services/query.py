"""Filtering and statistics over the distributions a session may see."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Iterable, Optional

from ..models.domain import Distribution, DistributionStatus, PaymentMethod, Session, Zone, parse_timestamp
from .access import visible_distributions
from .geospatial import point_in_zone

UNSPECIFIED_PAYMENT = "unspecified"


@dataclass(slots=True)
class DistributionQuery:
    """Optional filters; unset fields match everything."""

    status: Optional[DistributionStatus] = None
    search: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    payment: Optional[str] = None
    owner_id: Optional[str] = None
    zone: Optional[Zone] = None

    def matches(self, distribution: Distribution) -> bool:
        if self.status is not None and distribution.status is not DistributionStatus(self.status):
            return False

        if self.search:
            needle = self.search.lower()
            haystacks = (distribution.address or "", distribution.notes or "")
            if not any(needle in text.lower() for text in haystacks):
                return False

        if self.date_from is not None or self.date_to is not None:
            created = parse_timestamp(distribution.created_at)
            if created is None:
                return False
            if self.date_from is not None and created < datetime.combine(self.date_from, time.min, tzinfo=timezone.utc):
                return False
            # date_to covers the whole day
            if self.date_to is not None and created > datetime.combine(self.date_to, time.max, tzinfo=timezone.utc):
                return False

        if self.payment:
            if self.payment == UNSPECIFIED_PAYMENT:
                if distribution.payment_method not in (None, PaymentMethod.UNSPECIFIED):
                    return False
            elif distribution.payment_method is None or distribution.payment_method.value != self.payment:
                return False

        if self.owner_id is not None and distribution.owner_id != self.owner_id:
            return False

        if self.zone is not None and not point_in_zone((distribution.lat, distribution.lng), self.zone):
            return False
        return True

    def apply(self, session: Optional[Session], distributions: Iterable[Distribution]) -> list[Distribution]:
        """Visible distributions that satisfy every filter, in input order."""
        return [d for d in visible_distributions(session, distributions) if self.matches(d)]


def compute_stats(distributions: Iterable[Distribution]) -> dict:
    items = list(distributions)
    counts = {status.value: 0 for status in DistributionStatus}
    total_amount = 0.0
    for item in items:
        counts[item.status.value] += 1
        total_amount += item.amount or 0.0

    done = counts[DistributionStatus.DONE.value]
    return {
        "total": len(items),
        **counts,
        "total_amount": round(total_amount, 2),
        "success_rate": round(done / len(items) * 100, 1) if items else 0.0,
    }
