"""Notification dedup matcher.

On every location update, scans the OPEN alerts and notifies the user of
each one within NEARBY_RADIUS_KM that has not notified them before. The
"not yet notified" check and the append run inside one store transaction
per alert, so two concurrent updates from the same user cannot both append.

Failure policy is fail-open: a storage failure while recording one match is
logged and the event is still returned, and the scan carries on with the
remaining alerts. Such failures count as storage errors in EngineStats.
A malformed alert document is logged and skipped. Only a failure to fetch
the alerts in the first place propagates, since at that point nothing has
been computed.
"""

from __future__ import annotations

import time
from typing import Callable, TYPE_CHECKING

import structlog

from nearhelp.core.geo import haversine_km
from nearhelp.core.models import Alert, NotificationEvent, NotifiedUser
from nearhelp.storage.base import ALERTS

if TYPE_CHECKING:
    from nearhelp.core.models import Coordinate
    from nearhelp.core.stats import EngineStats
    from nearhelp.storage.base import DocumentStore, Transaction

log = structlog.get_logger()

# Users within this distance of an OPEN alert get notified of it.
NEARBY_RADIUS_KM = 5.0


def _now_ms() -> int:
    return int(time.time() * 1000)


def is_open_alert(doc: dict) -> bool:
    return doc.get("active", False) and not doc.get("resolved", False)


class NotificationMatcher:
    """Matches a user position against OPEN alerts, at most once per pair."""

    def __init__(
        self,
        store: DocumentStore,
        radius_km: float = NEARBY_RADIUS_KM,
        clock: Callable[[], int] = _now_ms,
        stats: EngineStats | None = None,
    ) -> None:
        self._store = store
        self._stats = stats
        self._radius_km = radius_km
        self._clock = clock

    async def match_and_notify(self, user_id: str, position: Coordinate) -> list[NotificationEvent]:
        """Return one event per alert this user is newly notified of."""
        # StorageFailure here propagates: nothing has been matched yet.
        docs = await self._store.find(ALERTS, is_open_alert)

        events: list[NotificationEvent] = []
        for doc in docs:
            try:
                alert = Alert.from_doc(doc)
                distance = haversine_km(position, alert.location)
            except (KeyError, TypeError, ValueError):
                log.error("alert_document_invalid", alert_id=doc.get("alert_id"), exc_info=True)
                continue
            if distance > self._radius_km or alert.has_notified(user_id):
                continue

            event = NotificationEvent(
                alert_id=alert.alert_id,
                sender=alert.sender,
                message=alert.message,
                location=alert.location,
                distance_km=distance,
                timestamp_ms=alert.timestamp_ms,
            )
            try:
                appended = await self._record(alert.alert_id, user_id, distance)
            except Exception:
                # Fail open: the user still hears about it, and the next
                # update retries the append.
                log.error("notification_record_failed", alert_id=alert.alert_id,
                          user=user_id[-4:], exc_info=True)
                if self._stats is not None:
                    self._stats.record_storage_error()
                events.append(event)
                continue

            if appended:
                events.append(event)
                log.info("user_notified", alert_id=alert.alert_id,
                         user=user_id[-4:], distance_km=round(distance, 2))

        return events

    async def _record(self, alert_id: str, user_id: str, distance: float) -> bool:
        """Append-if-absent inside one transaction. False if nothing to do."""

        async def append(tx: Transaction) -> bool:
            doc = await tx.get(ALERTS, alert_id)
            if doc is None:
                return False
            alert = Alert.from_doc(doc)
            if not alert.is_open or alert.has_notified(user_id):
                return False
            alert.notified_users.append(
                NotifiedUser(user_id=user_id, distance_km=distance, notified_at_ms=self._clock())
            )
            tx.set(ALERTS, alert_id, alert.to_doc())
            return True

        return await self._store.run_atomic(append)
