"""User registration and location update endpoints.

Thin FastAPI adapter: parses the body, calls the service, shapes the JSON.
"""

from __future__ import annotations

from fastapi import APIRouter, Request

from nearhelp.api.parsing import parse_accuracy, parse_coordinate, read_json

router = APIRouter(prefix="/api/v1")


@router.post("/users/register")
async def register_user(request: Request) -> dict:
    """Register a user by phone, or update them if the phone is known.

    Body: {"phone": "...", "name": "...", "lat": 48.85, "lng": 2.35}
    ``user_id`` is accepted in place of ``phone``.
    """
    from nearhelp.main import get_service

    body = await read_json(request)
    location = parse_coordinate(body)
    user, created = await get_service().register_user(
        body.get("phone") or body.get("user_id"), body.get("name"), location,
    )
    return {
        "success": True,
        "message": "User registered" if created else "User updated",
        "user_id": user.user_id,
    }


@router.post("/location/update")
async def update_location(request: Request) -> dict:
    """Store a position report and return any alerts the user is newly near."""
    from nearhelp.main import get_service

    body = await read_json(request)
    location = parse_coordinate(body)
    events = await get_service().update_location(
        body.get("user_id"), location, parse_accuracy(body),
    )
    return {
        "success": True,
        "message": "Location updated",
        "nearby_alerts": [e.to_dict() for e in events],
    }


@router.get("/users")
async def list_users() -> dict:
    from nearhelp.main import get_service

    users = await get_service().list_users()
    return {"success": True, "count": len(users), "users": [u.to_dict() for u in users]}


@router.get("/users/{user_id}")
async def get_user(user_id: str) -> dict:
    from nearhelp.main import get_service

    user = await get_service().get_user(user_id)
    return {"success": True, "user": user.to_dict()}
