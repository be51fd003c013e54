"""In-process storage implementations.

``MemoryDocumentStore`` is the default backend in dev and the one the tests
run against. Every read returns a deep copy so callers can never mutate
stored state except through ``save`` or a committed transaction.
"""

from __future__ import annotations

import asyncio
import copy
from typing import Awaitable, Callable, Optional, TypeVar, TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from nearhelp.core.models import LocationHistoryRecord
    from nearhelp.storage.base import Predicate

log = structlog.get_logger()

T = TypeVar("T")


class MemoryTransaction:
    """Transaction handle over a MemoryDocumentStore. Reads see own writes."""

    def __init__(self, store: MemoryDocumentStore) -> None:
        self._store = store
        self.writes: dict[tuple[str, str], dict] = {}

    async def get(self, collection: str, key: str) -> dict | None:
        # Yield like a real round-trip would, so concurrent callers interleave.
        await asyncio.sleep(0)
        if (collection, key) in self.writes:
            return copy.deepcopy(self.writes[(collection, key)])
        return self._store._get(collection, key)

    def set(self, collection: str, key: str, doc: dict) -> None:
        self.writes[(collection, key)] = copy.deepcopy(doc)


class MemoryDocumentStore:
    """DocumentStore backed by dicts. Transactions and saves share one lock."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict]] = {}
        self._lock = asyncio.Lock()

    def _get(self, collection: str, key: str) -> dict | None:
        doc = self._collections.get(collection, {}).get(key)
        return copy.deepcopy(doc) if doc is not None else None

    def _put(self, collection: str, key: str, doc: dict) -> None:
        self._collections.setdefault(collection, {})[key] = copy.deepcopy(doc)

    def _commit(self, writes: dict[tuple[str, str], dict]) -> None:
        """Apply buffered writes. Caller holds the lock."""
        for (collection, key), doc in writes.items():
            self._put(collection, key, doc)

    async def find(self, collection: str, predicate: Optional[Predicate] = None) -> list[dict]:
        """Return copies of matching documents, in insertion order."""
        docs = self._collections.get(collection, {}).values()
        return [copy.deepcopy(d) for d in docs if predicate is None or predicate(d)]

    async def find_one(self, collection: str, key: str) -> dict | None:
        return self._get(collection, key)

    async def save(self, collection: str, key: str, doc: dict) -> None:
        async with self._lock:
            self._commit({(collection, key): doc})

    async def run_atomic(self, fn: Callable[[MemoryTransaction], Awaitable[T]]) -> T:
        async with self._lock:
            tx = MemoryTransaction(self)
            result = await fn(tx)
            self._commit(tx.writes)
            return result


class MemoryLocationHistory:
    """LocationHistoryLog kept in a list."""

    def __init__(self) -> None:
        self.records: list[LocationHistoryRecord] = []

    async def append(self, record: LocationHistoryRecord) -> None:
        self.records.append(record)
        log.debug("location_history_appended", user=record.user_id[-4:])
