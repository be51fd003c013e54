"""Bounded accept counters.

Both counters read the current count, check the cap and write the increment
inside a single store transaction, so concurrent accepts on the same alert
or help request can never lose an update or overshoot ``max_helpers``.

Alerts count anonymous accepts: the same caller may accept twice. Help
requests record who accepted, and a helper who already accepted is not
counted again.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from nearhelp.core.errors import CapacityExceeded, Closed, NotFound
from nearhelp.core.models import Alert, HelpAcceptResult, HelpRequest
from nearhelp.storage.base import ALERTS, HELP_REQUESTS

if TYPE_CHECKING:
    from nearhelp.storage.base import DocumentStore, Transaction

log = structlog.get_logger()

# Hard cap on accepts per alert / helpers per help request.
MAX_HELPERS = 10


class AcceptCounter:
    def __init__(self, store: DocumentStore, max_helpers: int = MAX_HELPERS) -> None:
        self._store = store
        self._max_helpers = max_helpers

    @property
    def max_helpers(self) -> int:
        return self._max_helpers

    async def accept_alert(self, alert_id: str, acceptor_id: str | None = None) -> int:
        """Increment an OPEN alert's accept count. Returns the new count."""

        async def increment(tx: Transaction) -> int:
            doc = await tx.get(ALERTS, alert_id)
            if doc is None:
                raise NotFound("alert", alert_id)
            alert = Alert.from_doc(doc)
            if not alert.is_open:
                raise Closed("alert", alert_id)
            if alert.accept_count >= self._max_helpers:
                raise CapacityExceeded("alert", alert_id, self._max_helpers)
            alert.accept_count += 1
            tx.set(ALERTS, alert_id, alert.to_doc())
            return alert.accept_count

        try:
            count = await self._store.run_atomic(increment)
        except CapacityExceeded:
            log.info("alert_accept_rejected", alert_id=alert_id, cap=self._max_helpers)
            raise

        log.info("alert_accepted", alert_id=alert_id, accept_count=count,
                 acceptor=(acceptor_id or "")[-4:])
        return count

    async def accept_help(self, help_id: str, helper_id: str) -> HelpAcceptResult:
        """Add ``helper_id`` to an open help request's helpers."""

        async def add_helper(tx: Transaction) -> HelpAcceptResult:
            doc = await tx.get(HELP_REQUESTS, help_id)
            if doc is None:
                raise NotFound("help request", help_id)
            req = HelpRequest.from_doc(doc)
            if not req.is_open:
                raise Closed("help request", help_id)
            if helper_id in req.accepted_by:
                return HelpAcceptResult(accepted_count=req.accepted_count, already_accepted=True)
            if req.accepted_count >= self._max_helpers:
                raise CapacityExceeded("help request", help_id, self._max_helpers)
            req.accepted_by.append(helper_id)
            req.accepted_count = len(req.accepted_by)
            tx.set(HELP_REQUESTS, help_id, req.to_doc())
            return HelpAcceptResult(accepted_count=req.accepted_count)

        try:
            result = await self._store.run_atomic(add_helper)
        except CapacityExceeded:
            log.info("help_accept_rejected", help_id=help_id, cap=self._max_helpers)
            raise

        if not result.already_accepted:
            log.info("help_accepted", help_id=help_id, helper=helper_id[-4:],
                     accepted_count=result.accepted_count)
        return result
