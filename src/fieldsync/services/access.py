"""Visibility rules for distributions and zones.

Admins see everything. Other binômes see the distributions they own and the
zones assigned to them. Zone assignment is matched three ways because older
binôme rows store the zone id, newer ones the zone name, and zones themselves
may carry the owning username. Filtering never mutates the underlying lists.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from ..models.domain import Distribution, Session, Zone


def _active(session: Optional[Session], now: datetime | None) -> bool:
    return session is not None and not session.is_expired(now)


def can_see_distribution(session: Optional[Session], distribution: Distribution, now: datetime | None = None) -> bool:
    if not _active(session, now):
        return False
    if session.is_admin:
        return True
    return distribution.owner_id == session.user_id


def can_see_zone(session: Optional[Session], zone: Zone, now: datetime | None = None) -> bool:
    if not _active(session, now):
        return False
    if session.is_admin:
        return True
    assigned = session.assigned_zone
    return (
        (assigned is not None and zone.id == assigned)
        or (assigned is not None and zone.name == assigned)
        or (zone.owner_team_id is not None and zone.owner_team_id == session.user_id)
    )


def visible_distributions(session: Optional[Session], distributions: Iterable[Distribution]) -> list[Distribution]:
    return [d for d in distributions if can_see_distribution(session, d)]


def visible_zones(session: Optional[Session], zones: Iterable[Zone]) -> list[Zone]:
    return [z for z in zones if can_see_zone(session, z)]
