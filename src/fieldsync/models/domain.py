"""Domain models for distributions, zones and the authenticated session."""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().isoformat().replace("+00:00", "Z")


def new_local_id() -> str:
    return uuid.uuid4().hex


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class DistributionStatus(str, Enum):
    """Outcome of a visit. Values are the strings stored in the remote table."""

    DONE = "effectue"
    RETRY = "repasser"
    REFUSED = "refus"
    EMPTY = "maison_vide"


class PaymentMethod(str, Enum):
    CASH = "espece"
    CHEQUE = "cheque"
    CARD = "cb"
    TRANSFER = "virement"
    UNSPECIFIED = "non_specifie"


@dataclass(frozen=True, slots=True)
class LatLng:
    lat: float
    lng: float


@dataclass(frozen=True, slots=True)
class CircleShape:
    center: LatLng
    radius_m: float


@dataclass(frozen=True, slots=True)
class PolygonShape:
    """Ordered ring of vertices; the closing edge back to the first vertex is implicit."""

    ring: tuple[LatLng, ...]


@dataclass(frozen=True, slots=True)
class RectangleShape:
    south: float
    west: float
    north: float
    east: float

    def ring(self) -> tuple[LatLng, ...]:
        return (
            LatLng(self.south, self.west),
            LatLng(self.north, self.west),
            LatLng(self.north, self.east),
            LatLng(self.south, self.east),
        )


ZoneShape = CircleShape | PolygonShape | RectangleShape


@dataclass(slots=True)
class Distribution:
    """A single visit recorded by a binôme."""

    id: str
    address: str
    lat: float
    lng: float
    status: DistributionStatus = DistributionStatus.DONE
    amount: float = 0.0
    payment_method: Optional[PaymentMethod] = None
    notes: Optional[str] = None
    recipient_name: Optional[str] = None
    owner_id: str = ""
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)

    def __post_init__(self) -> None:
        self.status = DistributionStatus(self.status)
        if self.payment_method is not None:
            self.payment_method = PaymentMethod(self.payment_method)
        if self.amount < 0:
            raise ValueError("amount must be >= 0")
        if self.amount > 0 and self.status is not DistributionStatus.DONE:
            raise ValueError(f"amount only applies to status '{DistributionStatus.DONE.value}'")

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["status"] = self.status.value
        payload["payment_method"] = self.payment_method.value if self.payment_method else None
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Distribution":
        return cls(
            id=str(payload["id"]),
            address=payload.get("address") or "",
            lat=float(payload.get("lat") or 0.0),
            lng=float(payload.get("lng") or 0.0),
            status=payload.get("status") or DistributionStatus.DONE,
            amount=float(payload.get("amount") or 0.0),
            payment_method=payload.get("payment_method") or None,
            notes=payload.get("notes"),
            recipient_name=payload.get("recipient_name"),
            owner_id=payload.get("owner_id") or "",
            created_at=payload.get("created_at") or utc_now_iso(),
            updated_at=payload.get("updated_at") or utc_now_iso(),
        )


@dataclass(slots=True)
class Zone:
    """A named geographic region, optionally assigned to a binôme."""

    id: str
    name: str
    shape: ZoneShape
    color: str = "#10b981"
    owner_team_id: Optional[str] = None
    owner_team_name: Optional[str] = None
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)


@dataclass(slots=True)
class Session:
    """The authenticated actor on this device."""

    user_id: str
    display_name: str
    assigned_zone: Optional[str]
    is_admin: bool
    expiry: datetime
    record_id: Optional[str] = None

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utc_now()) >= self.expiry

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "display_name": self.display_name,
            "assigned_zone": self.assigned_zone,
            "is_admin": self.is_admin,
            "expiry": self.expiry.isoformat(),
            "record_id": self.record_id,
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Session":
        expiry = parse_timestamp(payload.get("expiry"))
        if expiry is None:
            raise ValueError("session payload has no valid expiry")
        return cls(
            user_id=str(payload["user_id"]),
            display_name=payload.get("display_name") or "",
            assigned_zone=payload.get("assigned_zone"),
            is_admin=bool(payload.get("is_admin")),
            expiry=expiry,
            record_id=payload.get("record_id"),
        )
