"""Local mutations of zones (admin-managed)."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from ..config import settings
from ..errors import RecordNotFound
from ..models.domain import Distribution, Zone, ZoneShape, new_local_id, utc_now_iso
from ..models.geojson import zone_to_dict
from ..persistence.replica import LocalReplica
from .audit import ActivityLogger
from .geospatial import distributions_in_zone
from .sync.engine import ReconciliationEngine

logger = logging.getLogger(__name__)


class ZoneService:
    def __init__(
        self,
        replica: LocalReplica,
        engine: ReconciliationEngine | None = None,
        audit: ActivityLogger | None = None,
    ) -> None:
        self.replica = replica
        self.engine = engine
        self.audit = audit

    def list(self) -> list[Zone]:
        return self.replica.load_zones()

    def get(self, zone_id: str) -> Zone:
        for zone in self.replica.load_zones():
            if zone.id == zone_id:
                return zone
        raise RecordNotFound("zone", zone_id)

    def distributions_inside(self, zone_id: str, distributions: list[Distribution]) -> list[Distribution]:
        return distributions_in_zone(distributions, self.get(zone_id))

    async def create(
        self,
        name: str,
        shape: ZoneShape,
        color: str | None = None,
        owner_team_id: str | None = None,
        owner_team_name: str | None = None,
    ) -> Zone:
        now = utc_now_iso()
        zone = Zone(
            id=f"zone-{new_local_id()}",
            name=name,
            shape=shape,
            color=color or settings.default_zone_color,
            owner_team_id=owner_team_id,
            owner_team_name=owner_team_name,
            created_at=now,
            updated_at=now,
        )
        zones = self.replica.load_zones()
        zones.append(zone)
        self.replica.save_zones(zones)
        logger.info(f"Created zone '{zone.name}' ({zone.id})")

        if self.audit is not None:
            await self.audit.log_create("zone", zone.id, zone.name, zone_to_dict(zone))
        self._schedule()
        return zone

    async def update(
        self,
        zone_id: str,
        *,
        name: str | None = None,
        shape: ZoneShape | None = None,
        color: str | None = None,
    ) -> Zone:
        zones = self.replica.load_zones()
        index = self._index_of(zones, zone_id)
        previous = zones[index]
        updated = replace(
            previous,
            name=name if name is not None else previous.name,
            shape=shape if shape is not None else previous.shape,
            color=color if color is not None else previous.color,
            updated_at=utc_now_iso(),
        )
        return await self._store(zones, index, previous, updated)

    async def assign_binome(self, zone_id: str, binome_id: Optional[str], binome_name: Optional[str] = None) -> Zone:
        """Assign the zone to a binôme; ``None`` clears the assignment."""
        zones = self.replica.load_zones()
        index = self._index_of(zones, zone_id)
        previous = zones[index]
        updated = replace(
            previous,
            owner_team_id=binome_id or None,
            owner_team_name=(binome_name or None) if binome_id else None,
            updated_at=utc_now_iso(),
        )
        return await self._store(zones, index, previous, updated)

    async def update_color(self, zone_id: str, color: str) -> Zone:
        return await self.update(zone_id, color=color)

    async def delete(self, zone_id: str) -> Zone:
        zones = self.replica.load_zones()
        index = self._index_of(zones, zone_id)
        removed = zones.pop(index)
        self.replica.save_zones(zones)
        logger.info(f"Deleted zone '{removed.name}' ({zone_id})")

        if self.audit is not None:
            await self.audit.log_delete("zone", removed.id, removed.name, zone_to_dict(removed))
        self._schedule()
        return removed

    async def _store(self, zones: list[Zone], index: int, previous: Zone, updated: Zone) -> Zone:
        zones[index] = updated
        self.replica.save_zones(zones)
        logger.info(f"Updated zone '{updated.name}' ({updated.id})")

        if self.audit is not None:
            await self.audit.log_update("zone", updated.id, updated.name, zone_to_dict(previous), zone_to_dict(updated))
        self._schedule()
        return updated

    @staticmethod
    def _index_of(zones: list[Zone], zone_id: str) -> int:
        for index, zone in enumerate(zones):
            if zone.id == zone_id:
                return index
        raise RecordNotFound("zone", zone_id)

    def _schedule(self) -> None:
        if self.engine is not None:
            self.engine.schedule()
