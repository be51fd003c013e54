"""Request body helpers shared by the routers."""

from __future__ import annotations

import json
import math

from fastapi import Request

from nearhelp.core.errors import MalformedRequest, ValidationError
from nearhelp.core.models import Coordinate


async def read_json(request: Request) -> dict:
    """Parse the body as a JSON object."""
    body_bytes = await request.body()
    try:
        body = json.loads(body_bytes)
    except (ValueError, UnicodeDecodeError):
        # ValueError also covers integers past the int-string digit limit.
        raise MalformedRequest("invalid JSON") from None
    if not isinstance(body, dict):
        raise MalformedRequest("request body must be a JSON object")
    return body


def parse_coordinate(body: dict) -> Coordinate:
    """Accepts lat/lng, with latitude/longitude as aliases."""
    lat = body.get("lat", body.get("latitude"))
    lng = body.get("lng", body.get("longitude"))
    return Coordinate.checked(lat, lng)


def parse_accuracy(body: dict) -> float:
    accuracy = body.get("accuracy") or 0
    if isinstance(accuracy, bool) or not isinstance(accuracy, (int, float)):
        raise ValidationError("accuracy must be a non-negative number", field="accuracy")
    try:
        value = float(accuracy)
    except OverflowError:
        raise ValidationError("accuracy is out of range", field="accuracy") from None
    if not math.isfinite(value) or value < 0:
        raise ValidationError("accuracy must be a non-negative number", field="accuracy")
    return value
