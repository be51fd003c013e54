"""Tests for the haversine distance."""

from __future__ import annotations

import pytest

from nearhelp.core.geo import haversine_km
from nearhelp.core.models import Coordinate


def test_zero_for_identical_points():
    p = Coordinate(45.764043, 4.835659)
    assert haversine_km(p, p) == 0.0


def test_symmetric():
    a = Coordinate(48.8566, 2.3522)
    b = Coordinate(45.7640, 4.8357)
    assert haversine_km(a, b) == haversine_km(b, a)


def test_one_degree_longitude_at_equator():
    d = haversine_km(Coordinate(0.0, 0.0), Coordinate(0.0, 1.0))
    assert d == pytest.approx(111.19, rel=0.01)


def test_paris_lyon():
    d = haversine_km(Coordinate(48.8566, 2.3522), Coordinate(45.7640, 4.8357))
    assert 385 < d < 400


def test_antipodes_do_not_raise():
    d = haversine_km(Coordinate(0.0, 0.0), Coordinate(0.0, 180.0))
    assert d == pytest.approx(20015.1, rel=0.001)
