"""Expanding-radius recipient search.

Finds the users who should hear about a new alert: starting at
SEARCH_START_KM, widen by SEARCH_STEP_KM until at least SEARCH_QUORUM active
users (other than the sender) fall inside the radius, or SEARCH_MAX_KM is
reached. Coming up short at the ceiling is degraded coverage, not an error.

Distances are computed once per search and the radius is widened over the
sorted list, which gives the same answer as re-scanning the active users at
every step.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from nearhelp.core.geo import haversine_km
from nearhelp.core.models import Recipient, SearchResult, User
from nearhelp.storage.base import USERS

if TYPE_CHECKING:
    from nearhelp.core.models import Coordinate
    from nearhelp.storage.base import DocumentStore

log = structlog.get_logger()

SEARCH_START_KM = 2.0
SEARCH_STEP_KM = 1.0
SEARCH_MAX_KM = 10.0
SEARCH_QUORUM = 3


def rank_by_distance(users: list[User], origin: Coordinate, exclude_user_id: str | None) -> list[Recipient]:
    """All users except the excluded one, nearest first.

    ``sorted`` is stable, so equal distances keep the scan order.
    """
    ranked = [
        Recipient(
            user_id=u.user_id,
            name=u.name,
            phone=u.phone,
            distance_km=haversine_km(origin, u.location),
        )
        for u in users
        if u.user_id != exclude_user_id
    ]
    return sorted(ranked, key=lambda r: r.distance_km)


class RecipientSearch:
    def __init__(
        self,
        store: DocumentStore,
        start_km: float = SEARCH_START_KM,
        step_km: float = SEARCH_STEP_KM,
        max_km: float = SEARCH_MAX_KM,
        quorum: int = SEARCH_QUORUM,
    ) -> None:
        if step_km <= 0:
            raise ValueError("step_km must be positive")
        self._store = store
        self._start_km = start_km
        self._step_km = step_km
        self._max_km = max_km
        self._quorum = quorum

    async def find_recipients(self, origin: Coordinate, exclude_user_id: str | None = None) -> SearchResult:
        docs = await self._store.find(USERS, lambda d: d.get("is_active", True))
        ranked = rank_by_distance([User.from_doc(d) for d in docs], origin, exclude_user_id)

        radius = self._start_km
        while True:
            within = [r for r in ranked if r.distance_km <= radius]
            log.debug("recipient_search_radius", radius_km=radius, found=len(within))
            if len(within) >= self._quorum or radius >= self._max_km:
                break
            radius = min(radius + self._step_km, self._max_km)

        if len(within) < self._quorum:
            log.warning("recipient_quorum_not_met", radius_km=radius,
                        found=len(within), quorum=self._quorum)
        return SearchResult(recipients=within, radius_km=radius)
