"""NearHelp engine — core data models.

These are plain dataclasses with no framework dependencies. Storage adapters
see them only as documents (``to_doc`` / ``from_doc``); the API layer
converts them to JSON with ``to_dict``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum

from nearhelp.core.errors import ValidationError


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lon: float

    @classmethod
    def checked(cls, lat: object, lon: object) -> Coordinate:
        """Build a coordinate from untrusted input, rejecting bad values."""
        if lat is None or lon is None:
            raise ValidationError("latitude and longitude are required", field="lat")
        if isinstance(lat, bool) or isinstance(lon, bool):
            raise ValidationError("latitude and longitude must be numbers", field="lat")
        try:
            flat, flon = float(lat), float(lon)
        except (TypeError, ValueError, OverflowError):
            raise ValidationError("latitude and longitude must be numbers", field="lat") from None
        if not (math.isfinite(flat) and math.isfinite(flon)):
            raise ValidationError("latitude and longitude must be finite", field="lat")
        if not -90.0 <= flat <= 90.0:
            raise ValidationError(f"latitude {flat} out of range [-90, 90]", field="lat")
        if not -180.0 <= flon <= 180.0:
            raise ValidationError(f"longitude {flon} out of range [-180, 180]", field="lng")
        return cls(lat=flat, lon=flon)

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lng": self.lon}


@dataclass
class User:
    user_id: str
    name: str
    phone: str
    location: Coordinate
    accuracy: float = 0.0
    last_updated_ms: int = 0
    registered_at_ms: int = 0
    is_active: bool = True

    def to_doc(self) -> dict:
        return {
            "user_id": self.user_id,
            "name": self.name,
            "phone": self.phone,
            "lat": self.location.lat,
            "lon": self.location.lon,
            "accuracy": self.accuracy,
            "last_updated_ms": self.last_updated_ms,
            "registered_at_ms": self.registered_at_ms,
            "is_active": self.is_active,
        }

    @classmethod
    def from_doc(cls, doc: dict) -> User:
        return cls(
            user_id=doc["user_id"],
            name=doc.get("name", ""),
            phone=doc.get("phone", doc["user_id"]),
            location=Coordinate(doc["lat"], doc["lon"]),
            accuracy=doc.get("accuracy", 0.0),
            last_updated_ms=doc.get("last_updated_ms", 0),
            registered_at_ms=doc.get("registered_at_ms", 0),
            is_active=doc.get("is_active", True),
        )

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "name": self.name,
            "phone": self.phone,
            "location": self.location.to_dict(),
            "accuracy": self.accuracy,
            "last_updated_ms": self.last_updated_ms,
            "registered_at_ms": self.registered_at_ms,
            "is_active": self.is_active,
        }


@dataclass(frozen=True)
class NotifiedUser:
    user_id: str
    distance_km: float
    notified_at_ms: int

    def to_doc(self) -> dict:
        return {
            "user_id": self.user_id,
            "distance_km": self.distance_km,
            "notified_at_ms": self.notified_at_ms,
        }

    @classmethod
    def from_doc(cls, doc: dict) -> NotifiedUser:
        return cls(doc["user_id"], doc["distance_km"], doc["notified_at_ms"])


@dataclass
class Alert:
    alert_id: str
    sender: str
    sender_id: str
    message: str
    location: Coordinate
    timestamp_ms: int
    active: bool = True
    resolved: bool = False
    notified_users: list[NotifiedUser] = field(default_factory=list)
    accept_count: int = 0

    @property
    def is_open(self) -> bool:
        """OPEN is active and not resolved; anything else is terminal."""
        return self.active and not self.resolved

    def has_notified(self, user_id: str) -> bool:
        return any(n.user_id == user_id for n in self.notified_users)

    def to_doc(self) -> dict:
        return {
            "alert_id": self.alert_id,
            "sender": self.sender,
            "sender_id": self.sender_id,
            "message": self.message,
            "lat": self.location.lat,
            "lon": self.location.lon,
            "timestamp_ms": self.timestamp_ms,
            "active": self.active,
            "resolved": self.resolved,
            "notified_users": [n.to_doc() for n in self.notified_users],
            "accept_count": self.accept_count,
        }

    @classmethod
    def from_doc(cls, doc: dict) -> Alert:
        return cls(
            alert_id=doc["alert_id"],
            sender=doc.get("sender", ""),
            sender_id=doc.get("sender_id", ""),
            message=doc.get("message", ""),
            location=Coordinate(doc["lat"], doc["lon"]),
            timestamp_ms=doc.get("timestamp_ms", 0),
            active=doc.get("active", True),
            resolved=doc.get("resolved", False),
            notified_users=[NotifiedUser.from_doc(n) for n in doc.get("notified_users", [])],
            accept_count=doc.get("accept_count", 0),
        )

    def to_dict(self) -> dict:
        return {
            "alert_id": self.alert_id,
            "sender": self.sender,
            "sender_id": self.sender_id,
            "message": self.message,
            "location": self.location.to_dict(),
            "timestamp_ms": self.timestamp_ms,
            "active": self.active,
            "resolved": self.resolved,
            "notified_users": [n.to_doc() for n in self.notified_users],
            "accept_count": self.accept_count,
        }


class HelpStatus(str, Enum):
    NEED_HELP = "NEED_HELP"
    SAFE = "SAFE"


@dataclass
class HelpRequest:
    help_id: str
    phone: str
    location: Coordinate
    status: HelpStatus = HelpStatus.NEED_HELP
    accepted_count: int = 0
    accepted_by: list[str] = field(default_factory=list)
    created_at_ms: int = 0
    active: bool = True

    @property
    def is_open(self) -> bool:
        return self.active and self.status is HelpStatus.NEED_HELP

    def to_doc(self) -> dict:
        return {
            "help_id": self.help_id,
            "phone": self.phone,
            "lat": self.location.lat,
            "lon": self.location.lon,
            "status": self.status.value,
            "accepted_count": self.accepted_count,
            "accepted_by": list(self.accepted_by),
            "created_at_ms": self.created_at_ms,
            "active": self.active,
        }

    @classmethod
    def from_doc(cls, doc: dict) -> HelpRequest:
        return cls(
            help_id=doc["help_id"],
            phone=doc.get("phone", ""),
            location=Coordinate(doc["lat"], doc["lon"]),
            status=HelpStatus(doc.get("status", HelpStatus.NEED_HELP.value)),
            accepted_count=doc.get("accepted_count", 0),
            accepted_by=list(doc.get("accepted_by", [])),
            created_at_ms=doc.get("created_at_ms", 0),
            active=doc.get("active", True),
        )


@dataclass(frozen=True)
class LocationHistoryRecord:
    """Audit trail entry. Written once, never read by the engine."""
    user_id: str
    location: Coordinate
    accuracy: float
    timestamp_ms: int


@dataclass(frozen=True)
class NotificationEvent:
    alert_id: str
    sender: str
    message: str
    location: Coordinate
    distance_km: float
    timestamp_ms: int

    def to_dict(self) -> dict:
        return {
            "alert_id": self.alert_id,
            "sender": self.sender,
            "message": self.message,
            "location": self.location.to_dict(),
            "distance_km": round(self.distance_km, 3),
            "timestamp_ms": self.timestamp_ms,
        }


@dataclass(frozen=True)
class Recipient:
    user_id: str
    name: str
    phone: str
    distance_km: float

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "name": self.name,
            "phone": self.phone,
            "distance_km": round(self.distance_km, 3),
        }


@dataclass(frozen=True)
class SearchResult:
    recipients: list[Recipient]
    radius_km: float


@dataclass(frozen=True)
class HelpAcceptResult:
    accepted_count: int
    already_accepted: bool = False
