"""Safety service — the engine's public operations.

Wires the matcher, recipient search, accept counter and lifecycle
transitions to storage. It depends on the DocumentStore and
LocationHistoryLog protocols, not concrete implementations.
"""

from __future__ import annotations

import time
import uuid
from typing import Callable, TYPE_CHECKING

import structlog

from nearhelp.core import lifecycle
from nearhelp.core.errors import CapacityExceeded, NotFound, ValidationError
from nearhelp.core.geo import haversine_km
from nearhelp.core.matcher import is_open_alert
from nearhelp.core.models import (
    Alert,
    HelpRequest,
    HelpStatus,
    LocationHistoryRecord,
    NotifiedUser,
    User,
)
from nearhelp.storage.base import ALERTS, HELP_REQUESTS, USERS

if TYPE_CHECKING:
    from nearhelp.core.counter import AcceptCounter
    from nearhelp.core.matcher import NotificationMatcher
    from nearhelp.core.models import (
        Coordinate,
        HelpAcceptResult,
        NotificationEvent,
        SearchResult,
    )
    from nearhelp.core.search import RecipientSearch
    from nearhelp.core.stats import EngineStats
    from nearhelp.storage.base import DocumentStore, LocationHistoryLog, Transaction

log = structlog.get_logger()

NEARBY_ALERTS_RADIUS_KM = 10.0
HELP_RADIUS_KM = 2.0
ACTIVE_ALERTS_LIMIT = 20


def _now_ms() -> int:
    return int(time.time() * 1000)


def _require(value: object, field: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", field=field)
    return value.strip()


class SafetyService:
    """Entry point for every request the API layer serves."""

    def __init__(
        self,
        store: DocumentStore,
        history: LocationHistoryLog,
        stats: EngineStats,
        matcher: NotificationMatcher,
        search: RecipientSearch,
        counter: AcceptCounter,
        nearby_alerts_radius_km: float = NEARBY_ALERTS_RADIUS_KM,
        help_radius_km: float = HELP_RADIUS_KM,
        active_alerts_limit: int = ACTIVE_ALERTS_LIMIT,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._store = store
        self._history = history
        self._stats = stats
        self._matcher = matcher
        self._search = search
        self._counter = counter
        self._nearby_alerts_radius_km = nearby_alerts_radius_km
        self._help_radius_km = help_radius_km
        self._active_alerts_limit = active_alerts_limit
        self._clock = clock

    # ── Users ──

    async def register_user(self, phone: str, name: str, location: Coordinate) -> tuple[User, bool]:
        """Register a user keyed by phone. Returns (user, created).

        Registering a known phone updates the name and position in place.
        """
        phone = _require(phone, "phone")
        name = _require(name, "name")
        now = self._clock()

        doc = await self._store.find_one(USERS, phone)
        if doc is not None:
            user = User.from_doc(doc)
            user.name = name
            user.location = location
            user.last_updated_ms = now
            created = False
        else:
            user = User(
                user_id=phone,
                name=name,
                phone=phone,
                location=location,
                last_updated_ms=now,
                registered_at_ms=now,
            )
            created = True

        await self._store.save(USERS, user.user_id, user.to_doc())
        if created:
            self._stats.record_registration()
        log.info("user_registered" if created else "user_updated", user=phone[-4:])
        return user, created

    async def update_location(
        self, user_id: str, location: Coordinate, accuracy: float = 0.0,
    ) -> list[NotificationEvent]:
        """Store a position report and return alerts the user is newly near."""
        user_id = _require(user_id, "user_id")
        now = self._clock()

        doc = await self._store.find_one(USERS, user_id)
        if doc is not None:
            user = User.from_doc(doc)
        else:
            # Unknown ids are upserted so a device that skipped registration
            # still receives alerts.
            user = User(user_id=user_id, name="", phone=user_id, location=location,
                        registered_at_ms=now)
        user.location = location
        user.accuracy = accuracy
        user.last_updated_ms = now
        await self._store.save(USERS, user_id, user.to_doc())

        await self._history.append(
            LocationHistoryRecord(user_id=user_id, location=location,
                                  accuracy=accuracy, timestamp_ms=now)
        )

        events = await self._matcher.match_and_notify(user_id, location)
        self._stats.record_location(user_id, notifications=len(events))
        if events:
            log.info("user_near_alerts", user=user_id[-4:], alerts=len(events))
        return events

    async def get_user(self, user_id: str) -> User:
        doc = await self._store.find_one(USERS, user_id)
        if doc is None:
            raise NotFound("user", user_id)
        return User.from_doc(doc)

    async def list_users(self) -> list[User]:
        return [User.from_doc(d) for d in await self._store.find(USERS)]

    # ── Alerts ──

    async def create_alert(
        self, sender: str, sender_id: str, message: str, location: Coordinate,
    ) -> tuple[Alert, SearchResult]:
        """Create an OPEN alert and select its recipients."""
        sender = _require(sender, "sender")
        sender_id = _require(sender_id, "sender_id")
        message = _require(message, "message")
        now = self._clock()

        alert = Alert(
            alert_id=f"alert_{now}_{uuid.uuid4().hex[:6]}",
            sender=sender,
            sender_id=sender_id,
            message=message,
            location=location,
            timestamp_ms=now,
        )
        # Saved before the search so location updates can match it already.
        await self._store.save(ALERTS, alert.alert_id, alert.to_doc())
        log.info("alert_created", alert_id=alert.alert_id, sender=sender_id[-4:],
                 lat=round(location.lat, 5), lon=round(location.lon, 5))

        result = await self._search.find_recipients(location, exclude_user_id=sender_id)
        alert = await self._store.run_atomic(
            self._write_recipients(alert.alert_id, result, self._clock())
        )

        self._stats.record_alert(len(result.recipients))
        log.info("alert_recipients_selected", alert_id=alert.alert_id,
                 recipients=len(result.recipients), radius_km=result.radius_km)
        return alert, result

    @staticmethod
    def _write_recipients(alert_id: str, result: SearchResult, now: int):
        # Overwrites notified_users with the search result, keeping entries
        # appended by the matcher in the meantime for users not in it.
        async def write(tx: Transaction) -> Alert:
            alert = Alert.from_doc(await tx.get(ALERTS, alert_id))
            selected = {r.user_id for r in result.recipients}
            alert.notified_users = [
                NotifiedUser(user_id=r.user_id, distance_km=r.distance_km, notified_at_ms=now)
                for r in result.recipients
            ] + [n for n in alert.notified_users if n.user_id not in selected]
            tx.set(ALERTS, alert_id, alert.to_doc())
            return alert

        return write

    async def accept_alert(self, alert_id: str, acceptor_id: str | None = None) -> int:
        alert_id = _require(alert_id, "alert_id")
        try:
            count = await self._counter.accept_alert(alert_id, acceptor_id)
        except CapacityExceeded:
            self._stats.record_accept(accepted=False)
            raise
        self._stats.record_accept()
        return count

    async def get_accept_count(self, alert_id: str) -> int:
        doc = await self._store.find_one(ALERTS, alert_id)
        if doc is None:
            raise NotFound("alert", alert_id)
        return Alert.from_doc(doc).accept_count

    async def resolve_alert(self, alert_id: str) -> bool:
        alert_id = _require(alert_id, "alert_id")
        changed = await lifecycle.resolve_alert(self._store, alert_id)
        if changed:
            self._stats.record_resolved()
        return changed

    async def active_alerts(self) -> list[Alert]:
        """OPEN alerts, newest first."""
        alerts = [Alert.from_doc(d) for d in await self._store.find(ALERTS, is_open_alert)]
        alerts.sort(key=lambda a: a.timestamp_ms, reverse=True)
        return alerts[:self._active_alerts_limit]

    async def nearby_alerts(self, user_id: str) -> list[tuple[Alert, float]]:
        """OPEN alerts within range of the user's last position, nearest first."""
        user = await self.get_user(user_id)
        nearby = []
        for doc in await self._store.find(ALERTS, is_open_alert):
            alert = Alert.from_doc(doc)
            distance = haversine_km(user.location, alert.location)
            if distance <= self._nearby_alerts_radius_km:
                nearby.append((alert, distance))
        nearby.sort(key=lambda pair: pair[1])
        return nearby

    # ── Help requests ──

    async def create_help_request(self, phone: str, location: Coordinate) -> HelpRequest:
        phone = _require(phone, "phone")
        req = HelpRequest(
            help_id=uuid.uuid4().hex,
            phone=phone,
            location=location,
            created_at_ms=self._clock(),
        )
        await self._store.save(HELP_REQUESTS, req.help_id, req.to_doc())
        self._stats.record_help_request()
        log.info("help_request_created", help_id=req.help_id, phone=phone[-4:])
        return req

    async def nearby_help_requests(
        self, location: Coordinate, helper_id: str,
    ) -> list[tuple[HelpRequest, float]]:
        """Open requests a helper can still take, within range, nearest first."""
        helper_id = _require(helper_id, "helper_id")
        docs = await self._store.find(
            HELP_REQUESTS, lambda d: d.get("status") == HelpStatus.NEED_HELP.value,
        )
        nearby = []
        for doc in docs:
            req = HelpRequest.from_doc(doc)
            if req.accepted_count >= self._counter.max_helpers:
                continue
            if helper_id in req.accepted_by:
                continue
            distance = haversine_km(location, req.location)
            if distance <= self._help_radius_km:
                nearby.append((req, distance))
        nearby.sort(key=lambda pair: pair[1])
        return nearby

    async def accept_help_request(self, help_id: str, helper_id: str) -> HelpAcceptResult:
        help_id = _require(help_id, "help_id")
        helper_id = _require(helper_id, "helper_id")
        try:
            result = await self._counter.accept_help(help_id, helper_id)
        except CapacityExceeded:
            self._stats.record_accept(accepted=False)
            raise
        if not result.already_accepted:
            self._stats.record_accept()
        return result

    async def mark_safe(self, phone: str) -> int:
        phone = _require(phone, "phone")
        count = await lifecycle.mark_safe(self._store, phone)
        self._stats.record_marked_safe(count)
        return count
