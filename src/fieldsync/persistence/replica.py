"""Local replica: whole-collection JSON snapshots per entity type."""

from __future__ import annotations

import json
import logging
from typing import Any

from ..models.domain import Distribution, Zone
from ..models.geojson import zone_from_dict, zone_to_dict
from .kv import KeyValueStore

logger = logging.getLogger(__name__)

DISTRIBUTIONS = "distributions"
ZONES = "zones"

# Scope marker meaning "every owner" (admin loads).
ALL_OWNERS = "*"


class LocalReplica:
    """The device-side source of truth for what the user intends."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def exists(self, entity_type: str) -> bool:
        return self.store.get(entity_type) is not None

    def load(self, entity_type: str) -> list[dict[str, Any]]:
        raw = self.store.get(entity_type)
        if raw is None:
            return []
        try:
            records = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning(f"Replica '{entity_type}' is unreadable, treating as empty: {exc}")
            return []
        if not isinstance(records, list):
            logger.warning(f"Replica '{entity_type}' does not hold a list, treating as empty")
            return []
        return records

    def save(self, entity_type: str, records: list[dict[str, Any]]) -> None:
        payload = json.dumps(records, ensure_ascii=False).encode("utf-8")
        self.store.set(entity_type, payload)

    def loaded_scopes(self, entity_type: str) -> set[str]:
        """Owners whose remote rows have already been adopted into this replica."""
        raw = self.store.get(f"{entity_type}.scopes")
        if raw is None:
            return set()
        try:
            scopes = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning(f"Scope marker for '{entity_type}' is unreadable, treating as unloaded: {exc}")
            return set()
        if not isinstance(scopes, list):
            return set()
        return {str(scope) for scope in scopes}

    def mark_loaded(self, entity_type: str, scope: str) -> None:
        scopes = self.loaded_scopes(entity_type)
        if scope in scopes:
            return
        scopes.add(scope)
        self.store.set(f"{entity_type}.scopes", json.dumps(sorted(scopes)).encode("utf-8"))

    def load_distributions(self) -> list[Distribution]:
        items: list[Distribution] = []
        for record in self.load(DISTRIBUTIONS):
            try:
                items.append(Distribution.from_dict(record))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(f"Skipping invalid local distribution {record.get('id')!r}: {exc}")
        return items

    def save_distributions(self, distributions: list[Distribution]) -> None:
        self.save(DISTRIBUTIONS, [d.to_dict() for d in distributions])

    def load_zones(self) -> list[Zone]:
        items: list[Zone] = []
        for record in self.load(ZONES):
            try:
                items.append(zone_from_dict(record))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(f"Skipping invalid local zone {record.get('id')!r}: {exc}")
        return items

    def save_zones(self, zones: list[Zone]) -> None:
        self.save(ZONES, [zone_to_dict(z) for z in zones])
