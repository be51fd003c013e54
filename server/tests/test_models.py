"""Tests for coordinate validation and document conversion."""

from __future__ import annotations

import pytest

from nearhelp.core.errors import ValidationError
from nearhelp.core.models import (
    Alert,
    Coordinate,
    HelpRequest,
    HelpStatus,
    NotifiedUser,
)


def test_checked_accepts_numeric_strings():
    c = Coordinate.checked("45.5", -73)
    assert c == Coordinate(45.5, -73.0)


@pytest.mark.parametrize("lat,lon", [
    (None, 1.0),
    (1.0, None),
    (91.0, 0.0),
    (0.0, -180.5),
    ("north", 0.0),
    (True, 0.0),
    (float("nan"), 0.0),
])
def test_checked_rejects_bad_input(lat, lon):
    with pytest.raises(ValidationError):
        Coordinate.checked(lat, lon)


def test_alert_open_state():
    alert = Alert("a1", "Ana", "555", "help", Coordinate(0, 0), 1)
    assert alert.is_open
    alert.resolved = True
    assert not alert.is_open


def test_alert_doc_keeps_notified_users():
    alert = Alert("a1", "Ana", "555", "help", Coordinate(1.5, 2.5), 1,
                  notified_users=[NotifiedUser("u1", 0.4, 10)], accept_count=2)
    restored = Alert.from_doc(alert.to_doc())
    assert restored == alert
    assert restored.has_notified("u1")
    assert not restored.has_notified("u2")


def test_help_request_status_from_doc():
    req = HelpRequest("h1", "555", Coordinate(10, 10), status=HelpStatus.SAFE, active=False)
    restored = HelpRequest.from_doc(req.to_doc())
    assert restored.status is HelpStatus.SAFE
    assert not restored.is_open


def test_checked_rejects_integers_too_large_for_float():
    with pytest.raises(ValidationError):
        Coordinate.checked(10**400, 0)
