"""Emergency alert endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Request

from nearhelp.api.parsing import parse_coordinate, read_json

router = APIRouter(prefix="/api/v1")


@router.post("/alerts")
async def create_alert(request: Request) -> dict:
    """Raise an alert and notify the nearest users.

    Body: {"sender": "...", "sender_id": "...", "message": "...", "lat": .., "lng": ..}

    The search starts at 2 km and widens 1 km at a time until at least
    three users are found or 10 km is reached; ``radius_km`` reports where
    it stopped.
    """
    from nearhelp.main import get_service

    body = await read_json(request)
    location = parse_coordinate(body)
    alert, result = await get_service().create_alert(
        body.get("sender"), body.get("sender_id"), body.get("message"), location,
    )
    return {
        "success": True,
        "alert_id": alert.alert_id,
        "notified_users": len(result.recipients),
        "radius_km": result.radius_km,
        "users": [r.to_dict() for r in result.recipients],
    }


@router.get("/alerts/active")
async def active_alerts() -> dict:
    """Most recent open alerts."""
    from nearhelp.main import get_service

    alerts = await get_service().active_alerts()
    return {"success": True, "alerts": [a.to_dict() for a in alerts]}


@router.get("/alerts/nearby/{user_id}")
async def nearby_alerts(user_id: str) -> dict:
    """Open alerts near the user's last known position, nearest first."""
    from nearhelp.main import get_service

    nearby = await get_service().nearby_alerts(user_id)
    return {
        "success": True,
        "alerts": [
            {**alert.to_dict(), "distance_km": round(distance, 3)}
            for alert, distance in nearby
        ],
    }


@router.put("/alerts/{alert_id}/accept")
async def accept_alert(alert_id: str, request: Request) -> dict:
    """Count one more responder. An optional JSON body may carry ``acceptor_id``."""
    from nearhelp.main import get_service

    acceptor_id = None
    if await request.body():
        acceptor_id = (await read_json(request)).get("acceptor_id")
    count = await get_service().accept_alert(alert_id, acceptor_id)
    return {"success": True, "message": "Alert accepted", "accept_count": count}


@router.get("/alerts/{alert_id}/accept")
async def get_accept_count(alert_id: str) -> dict:
    from nearhelp.main import get_service

    count = await get_service().get_accept_count(alert_id)
    return {"success": True, "accept_count": count}


@router.post("/alerts/{alert_id}/resolve")
async def resolve_alert(alert_id: str) -> dict:
    from nearhelp.main import get_service

    changed = await get_service().resolve_alert(alert_id)
    return {
        "success": True,
        "message": "Alert resolved" if changed else "Alert already resolved",
    }
