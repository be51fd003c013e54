"""Engine statistics and active-user tracking.

In-memory counters plus a sliding window of users who recently reported
their location. No framework dependencies.
"""

from __future__ import annotations

import threading
import time


class EngineStats:
    """Thread-safe engine counters with active-user tracking.

    A user is "active" if their last location update arrived within
    ``active_window_seconds`` (default 120s).
    """

    def __init__(self, active_window_seconds: float = 120.0) -> None:
        self._lock = threading.Lock()
        self._started_at = time.time()
        self._active_window = active_window_seconds

        # Counters
        self.users_registered: int = 0
        self.location_updates: int = 0
        self.notifications_sent: int = 0
        self.alerts_created: int = 0
        self.alerts_resolved: int = 0
        self.recipients_selected: int = 0
        self.accepts: int = 0
        self.accepts_rejected: int = 0
        self.help_requests_created: int = 0
        self.help_requests_marked_safe: int = 0
        self.storage_errors: int = 0

        # user_id -> time.monotonic() of the last location update
        self._last_seen: dict[str, float] = {}

    def record_registration(self) -> None:
        with self._lock:
            self.users_registered += 1

    def record_location(self, user_id: str, notifications: int = 0) -> None:
        """Record a location update and the notifications it produced."""
        now = time.monotonic()
        with self._lock:
            self.location_updates += 1
            self.notifications_sent += notifications
            self._last_seen[user_id] = now

    def record_alert(self, recipients: int) -> None:
        with self._lock:
            self.alerts_created += 1
            self.recipients_selected += recipients

    def record_resolved(self) -> None:
        with self._lock:
            self.alerts_resolved += 1

    def record_accept(self, accepted: bool = True) -> None:
        with self._lock:
            if accepted:
                self.accepts += 1
            else:
                self.accepts_rejected += 1

    def record_help_request(self) -> None:
        with self._lock:
            self.help_requests_created += 1

    def record_marked_safe(self, count: int) -> None:
        with self._lock:
            self.help_requests_marked_safe += count

    def record_storage_error(self) -> None:
        with self._lock:
            self.storage_errors += 1

    def _prune_stale_users(self, now: float) -> None:
        """Forget users not seen within the active window. Caller holds lock."""
        cutoff = now - self._active_window
        stale = [uid for uid, seen in self._last_seen.items() if seen < cutoff]
        for uid in stale:
            del self._last_seen[uid]

    def snapshot(self) -> dict:
        """Return a JSON-serializable snapshot of all stats."""
        now_mono = time.monotonic()
        with self._lock:
            self._prune_stale_users(now_mono)
            return {
                "uptime_seconds": round(time.time() - self._started_at, 1),
                "users_registered": self.users_registered,
                "location_updates": self.location_updates,
                "notifications_sent": self.notifications_sent,
                "alerts_created": self.alerts_created,
                "alerts_resolved": self.alerts_resolved,
                "recipients_selected": self.recipients_selected,
                "accepts": self.accepts,
                "accepts_rejected": self.accepts_rejected,
                "help_requests_created": self.help_requests_created,
                "help_requests_marked_safe": self.help_requests_marked_safe,
                "storage_errors": self.storage_errors,
                "active_users": {
                    "total": len(self._last_seen),
                    "window_seconds": self._active_window,
                },
            }
