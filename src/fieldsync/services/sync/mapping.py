"""Translation between domain records and remote table rows."""

from __future__ import annotations

import json
import logging
import math
from typing import Any, Mapping

from ...db.gateway import Row, remote_id
from ...models.domain import (
    Distribution,
    DistributionStatus,
    PaymentMethod,
    Zone,
    new_local_id,
    parse_timestamp,
    utc_now_iso,
)
from ...models.geojson import shape_from_feature, shape_to_feature

logger = logging.getLogger(__name__)

LOCAL_ID_FIELD = "localId"
FALLBACK_KEY_FIELD = "address"
OWNER_FIELD = "binome_id"

_NUMERIC_FIELDS = {"lat", "lng", "amount"}
_TIMESTAMP_FIELDS = {"createdAt", "updatedAt"}
_JSON_FIELDS = {"geojson"}


def distribution_to_row(distribution: Distribution) -> Row:
    """Full mirrored field set of a distribution; ``createdAt`` is added on create only."""
    return {
        LOCAL_ID_FIELD: distribution.id,
        "address": distribution.address,
        "lat": distribution.lat,
        "lng": distribution.lng,
        "status": distribution.status.value,
        "amount": distribution.amount or 0,
        "payment_method": distribution.payment_method.value if distribution.payment_method else "",
        "notes": distribution.notes or "",
        "recipient_name": distribution.recipient_name or "",
        OWNER_FIELD: distribution.owner_id,
        "updatedAt": distribution.updated_at or utc_now_iso(),
    }


def _enum_or_none(enum_cls, value: Any):
    try:
        return enum_cls(value) if value not in (None, "") else None
    except ValueError:
        return None


def row_to_distribution(row: Mapping[str, Any], local_id: str | None = None) -> Distribution:
    """Adopt a remote row as a local record, coercing values that break local invariants."""
    status = _enum_or_none(DistributionStatus, row.get("status")) or DistributionStatus.DONE
    try:
        amount = max(float(row.get("amount") or 0), 0.0)
    except (TypeError, ValueError):
        amount = 0.0
    payment = _enum_or_none(PaymentMethod, row.get("payment_method") or row.get("payment"))
    if status is not DistributionStatus.DONE:
        amount = 0.0
        payment = PaymentMethod.UNSPECIFIED if payment else None

    return Distribution(
        id=local_id or str(row.get(LOCAL_ID_FIELD) or "") or new_local_id(),
        address=str(row.get("address") or ""),
        lat=float(row.get("lat") or 0.0),
        lng=float(row.get("lng") or 0.0),
        status=status,
        amount=amount,
        payment_method=payment,
        notes=row.get("notes") or None,
        recipient_name=row.get("recipient_name") or None,
        owner_id=str(row.get(OWNER_FIELD) or ""),
        created_at=str(row.get("createdAt") or row.get("created_at") or utc_now_iso()),
        updated_at=str(row.get("updatedAt") or row.get("updated_at") or utc_now_iso()),
    )


def zone_to_row(zone: Zone) -> Row:
    return {
        "name": zone.name,
        "color": zone.color,
        "geojson": json.dumps(shape_to_feature(zone.shape)),
        "binome_id": zone.owner_team_id,
        "binome_name": zone.owner_team_name,
        "createdAt": zone.created_at,
        "updatedAt": zone.updated_at,
    }


def row_to_zone(row: Mapping[str, Any], default_color: str = "#10b981") -> Zone:
    """Raises ``ShapeError`` when the row's geometry cannot be read."""
    return Zone(
        id=remote_id(row) or f"zone-{new_local_id()}",
        name=str(row.get("name") or ""),
        shape=shape_from_feature(row.get("geojson") or ""),
        color=row.get("color") or default_color,
        owner_team_id=row.get("binome_id") or row.get("binome_username") or None,
        owner_team_name=row.get("binome_name") or None,
        created_at=str(row.get("createdAt") or utc_now_iso()),
        updated_at=str(row.get("updatedAt") or utc_now_iso()),
    )


def _normalize(value: Any) -> Any:
    if value is None or value == "":
        return None
    return value


def same_value(field: str, remote: Any, local: Any) -> bool:
    remote, local = _normalize(remote), _normalize(local)
    if remote is None or local is None:
        return remote is local
    if field in _NUMERIC_FIELDS:
        try:
            return math.isclose(float(remote), float(local), rel_tol=0.0, abs_tol=1e-9)
        except (TypeError, ValueError):
            return False
    if field in _TIMESTAMP_FIELDS:
        parsed_remote, parsed_local = parse_timestamp(remote), parse_timestamp(local)
        if parsed_remote is not None and parsed_local is not None:
            return parsed_remote == parsed_local
    if field in _JSON_FIELDS:
        try:
            decoded_remote = json.loads(remote) if isinstance(remote, str) else remote
            decoded_local = json.loads(local) if isinstance(local, str) else local
            return decoded_remote == decoded_local
        except json.JSONDecodeError:
            return False
    return str(remote) == str(local)


def row_differs(row: Mapping[str, Any], payload: Mapping[str, Any]) -> bool:
    """True when any mirrored field of ``payload`` is not reflected by ``row``."""
    return any(not same_value(field, row.get(field), value) for field, value in payload.items())
