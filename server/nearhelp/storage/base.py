"""Storage interfaces (ports) for documents and the location audit log."""

from __future__ import annotations

from typing import Awaitable, Callable, Optional, Protocol, TypeVar, TYPE_CHECKING

if TYPE_CHECKING:
    from nearhelp.core.models import LocationHistoryRecord

T = TypeVar("T")

# Collection names.
USERS = "users"
ALERTS = "alerts"
HELP_REQUESTS = "help_requests"

Predicate = Callable[[dict], bool]


class Transaction(Protocol):
    """Read/write handle passed to ``DocumentStore.run_atomic``.

    Writes are buffered and only become visible when the transaction
    function returns without raising.
    """

    async def get(self, collection: str, key: str) -> dict | None: ...

    def set(self, collection: str, key: str, doc: dict) -> None: ...


class DocumentStore(Protocol):
    """Port: keyed document storage with predicate scans and transactions."""

    async def find(self, collection: str, predicate: Optional[Predicate] = None) -> list[dict]: ...

    async def find_one(self, collection: str, key: str) -> dict | None: ...

    async def save(self, collection: str, key: str, doc: dict) -> None: ...

    async def run_atomic(self, fn: Callable[[Transaction], Awaitable[T]]) -> T: ...


class LocationHistoryLog(Protocol):
    """Port: append-only log of location reports."""

    async def append(self, record: LocationHistoryRecord) -> None: ...
