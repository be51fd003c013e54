"""Tests for the bounded accept counters."""

from __future__ import annotations

import asyncio

import pytest

from nearhelp.core.counter import MAX_HELPERS, AcceptCounter
from nearhelp.core.errors import CapacityExceeded, Closed, NotFound, StorageFailure
from nearhelp.core.models import Alert, Coordinate, HelpRequest, HelpStatus
from nearhelp.storage.base import ALERTS, HELP_REQUESTS


async def _put_alert(store, alert_id="a1", **kwargs):
    alert = Alert(alert_id, "Ana", "555", "help", Coordinate(0, 0), 1, **kwargs)
    await store.save(ALERTS, alert_id, alert.to_doc())


async def _put_help(store, help_id="h1", **kwargs):
    req = HelpRequest(help_id, "555", Coordinate(10, 10), **kwargs)
    await store.save(HELP_REQUESTS, help_id, req.to_doc())


async def _accept_count(store, alert_id="a1"):
    return Alert.from_doc(await store.find_one(ALERTS, alert_id)).accept_count


async def test_accept_increments(store):
    await _put_alert(store)
    counter = AcceptCounter(store)

    assert await counter.accept_alert("a1") == 1
    assert await counter.accept_alert("a1") == 2
    assert await _accept_count(store) == 2


async def test_accept_unknown_alert(store):
    with pytest.raises(NotFound):
        await AcceptCounter(store).accept_alert("nope")


async def test_accept_at_cap_leaves_count_unchanged(store):
    await _put_alert(store, accept_count=MAX_HELPERS)

    with pytest.raises(CapacityExceeded):
        await AcceptCounter(store).accept_alert("a1")
    assert await _accept_count(store) == MAX_HELPERS


async def test_accept_resolved_alert_is_rejected(store):
    await _put_alert(store, active=False, resolved=True)

    with pytest.raises(Closed):
        await AcceptCounter(store).accept_alert("a1")
    assert await _accept_count(store) == 0


async def test_same_acceptor_counts_twice_on_alerts(store):
    await _put_alert(store)
    counter = AcceptCounter(store)

    await counter.accept_alert("a1", acceptor_id="helper-1")
    assert await counter.accept_alert("a1", acceptor_id="helper-1") == 2


@pytest.mark.parametrize("callers", [MAX_HELPERS, MAX_HELPERS + 1, 3 * MAX_HELPERS])
async def test_concurrent_accepts_never_exceed_cap(store, callers):
    await _put_alert(store)
    counter = AcceptCounter(store)

    results = await asyncio.gather(
        *[counter.accept_alert("a1") for _ in range(callers)],
        return_exceptions=True,
    )

    successes = [r for r in results if isinstance(r, int)]
    failures = [r for r in results if isinstance(r, CapacityExceeded)]
    assert sorted(successes) == list(range(1, MAX_HELPERS + 1))
    assert len(failures) == callers - MAX_HELPERS
    assert await _accept_count(store) == MAX_HELPERS


async def test_storage_failure_aborts_without_partial_increment(store):
    await _put_alert(store)

    async def failing_fn(tx):
        doc = await tx.get(ALERTS, "a1")
        doc["accept_count"] += 1
        tx.set(ALERTS, "a1", doc)
        raise StorageFailure("commit lost")

    with pytest.raises(StorageFailure):
        await store.run_atomic(failing_fn)
    assert await _accept_count(store) == 0


async def test_help_accept_records_helper(store):
    await _put_help(store)
    counter = AcceptCounter(store)

    result = await counter.accept_help("h1", "helper-1")

    assert result.accepted_count == 1
    assert not result.already_accepted
    req = HelpRequest.from_doc(await store.find_one(HELP_REQUESTS, "h1"))
    assert req.accepted_by == ["helper-1"]


async def test_help_accept_is_idempotent_per_helper(store):
    await _put_help(store)
    counter = AcceptCounter(store)

    await counter.accept_help("h1", "helper-1")
    again = await counter.accept_help("h1", "helper-1")

    assert again.already_accepted
    assert again.accepted_count == 1


async def test_help_accept_at_cap(store):
    helpers = [f"helper-{i}" for i in range(MAX_HELPERS)]
    await _put_help(store, accepted_count=MAX_HELPERS, accepted_by=helpers)

    with pytest.raises(CapacityExceeded):
        await AcceptCounter(store).accept_help("h1", "late-helper")


async def test_help_accept_on_safe_request(store):
    await _put_help(store, status=HelpStatus.SAFE, active=False)

    with pytest.raises(Closed):
        await AcceptCounter(store).accept_help("h1", "helper-1")


async def test_concurrent_distinct_helpers_fill_exactly_to_cap(store):
    await _put_help(store)
    counter = AcceptCounter(store)

    results = await asyncio.gather(
        *[counter.accept_help("h1", f"helper-{i}") for i in range(MAX_HELPERS + 5)],
        return_exceptions=True,
    )

    assert sum(1 for r in results if isinstance(r, CapacityExceeded)) == 5
    req = HelpRequest.from_doc(await store.find_one(HELP_REQUESTS, "h1"))
    assert req.accepted_count == MAX_HELPERS
    assert len(set(req.accepted_by)) == MAX_HELPERS
