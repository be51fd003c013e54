"""Help request endpoints (requester <-> nearby helpers)."""

from __future__ import annotations

from fastapi import APIRouter, Request

from nearhelp.api.parsing import parse_coordinate, read_json

router = APIRouter(prefix="/api/v1/help")


@router.post("/create")
async def create_help_request(request: Request) -> dict:
    from nearhelp.main import get_service

    body = await read_json(request)
    req = await get_service().create_help_request(body.get("phone"), parse_coordinate(body))
    return {"success": True, "help_id": req.help_id}


@router.post("/nearby")
async def nearby_help_requests(request: Request) -> dict:
    """Open requests within 2 km that still need helpers and that this helper has not taken."""
    from nearhelp.main import get_service

    body = await read_json(request)
    nearby = await get_service().nearby_help_requests(parse_coordinate(body), body.get("helper_id"))
    return {
        "success": True,
        "requests": [
            {
                "help_id": req.help_id,
                "location": req.location.to_dict(),
                "accepted_count": req.accepted_count,
                "distance_km": round(distance, 2),
            }
            for req, distance in nearby
        ],
    }


@router.post("/accept")
async def accept_help_request(request: Request) -> dict:
    from nearhelp.main import get_service

    body = await read_json(request)
    result = await get_service().accept_help_request(body.get("help_id"), body.get("helper_id"))
    return {
        "success": True,
        "accepted": True,
        "accepted_count": result.accepted_count,
        "already_accepted": result.already_accepted,
    }


@router.post("/safe")
async def mark_safe(request: Request) -> dict:
    """Close every open request for a phone (e.g. on a SAFE SMS)."""
    from nearhelp.main import get_service

    body = await read_json(request)
    count = await get_service().mark_safe(body.get("phone"))
    return {"success": True, "safe": True, "requests_closed": count}
