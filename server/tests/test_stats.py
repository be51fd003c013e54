"""Tests for EngineStats and active user tracking."""

from __future__ import annotations

import time

from nearhelp.core.stats import EngineStats


def test_initial_stats():
    snap = EngineStats().snapshot()
    assert snap["location_updates"] == 0
    assert snap["notifications_sent"] == 0
    assert snap["active_users"]["total"] == 0


def test_location_updates_track_distinct_users():
    stats = EngineStats()
    stats.record_location("user-a", notifications=2)
    stats.record_location("user-a")
    stats.record_location("user-b", notifications=1)

    snap = stats.snapshot()
    assert snap["location_updates"] == 3
    assert snap["notifications_sent"] == 3
    assert snap["active_users"]["total"] == 2


def test_stale_users_pruned():
    """Users older than the active window should be pruned from stats."""
    stats = EngineStats(active_window_seconds=0.1)
    stats.record_location("user-c")

    assert stats.snapshot()["active_users"]["total"] == 1

    time.sleep(0.15)

    assert stats.snapshot()["active_users"]["total"] == 0


def test_accept_and_error_counters():
    stats = EngineStats()
    stats.record_accept()
    stats.record_accept()
    stats.record_accept(accepted=False)
    stats.record_storage_error()
    stats.record_alert(recipients=4)
    stats.record_resolved()
    stats.record_help_request()
    stats.record_marked_safe(2)

    snap = stats.snapshot()
    assert snap["accepts"] == 2
    assert snap["accepts_rejected"] == 1
    assert snap["storage_errors"] == 1
    assert snap["alerts_created"] == 1
    assert snap["recipients_selected"] == 4
    assert snap["alerts_resolved"] == 1
    assert snap["help_requests_created"] == 1
    assert snap["help_requests_marked_safe"] == 2
