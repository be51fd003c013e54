"""Alert and help-request lifecycle transitions.

OPEN -> RESOLVED for alerts and NEED_HELP -> SAFE for help requests. Both
are terminal; nothing in the engine ever sets ``active`` back to true.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from nearhelp.core.errors import NotFound
from nearhelp.core.models import Alert, HelpRequest, HelpStatus
from nearhelp.storage.base import ALERTS, HELP_REQUESTS

if TYPE_CHECKING:
    from nearhelp.storage.base import DocumentStore, Transaction

log = structlog.get_logger()


async def resolve_alert(store: DocumentStore, alert_id: str) -> bool:
    """Resolve an alert. Returns False if it was already resolved.

    Runs as a transaction so it cannot clobber a notification appended
    between our read and our write.
    """

    async def resolve(tx: Transaction) -> bool:
        doc = await tx.get(ALERTS, alert_id)
        if doc is None:
            raise NotFound("alert", alert_id)
        alert = Alert.from_doc(doc)
        if not alert.is_open:
            return False
        alert.active = False
        alert.resolved = True
        tx.set(ALERTS, alert_id, alert.to_doc())
        return True

    changed = await store.run_atomic(resolve)
    if changed:
        log.info("alert_resolved", alert_id=alert_id)
    return changed


async def mark_safe(store: DocumentStore, phone: str) -> int:
    """Mark every open help request for ``phone`` as SAFE. Returns how many."""
    docs = await store.find(
        HELP_REQUESTS,
        lambda d: d.get("phone") == phone and d.get("status") == HelpStatus.NEED_HELP.value,
    )
    marked = 0
    for doc in docs:
        if await store.run_atomic(_safe_transition(doc["help_id"])):
            marked += 1

    log.info("phone_marked_safe", phone=phone[-4:], requests=marked)
    return marked


def _safe_transition(help_id: str):
    # Re-read inside the transaction so a concurrent accept is not lost.
    async def transition(tx: Transaction) -> bool:
        doc = await tx.get(HELP_REQUESTS, help_id)
        if doc is None:
            return False
        req = HelpRequest.from_doc(doc)
        if req.status is HelpStatus.SAFE:
            return False
        req.status = HelpStatus.SAFE
        req.active = False
        tx.set(HELP_REQUESTS, help_id, req.to_doc())
        return True

    return transition
