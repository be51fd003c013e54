"""Engine error taxonomy.

Every public engine operation either returns its payload or raises one of
these. The API layer maps them to JSON error responses; nothing here knows
about HTTP.
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for all failures scoped to a single request."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(EngineError):
    """Unknown alert, user, or help request."""

    def __init__(self, resource: str, key: str) -> None:
        super().__init__(f"{resource} not found: {key}")
        self.resource = resource
        self.key = key


class CapacityExceeded(EngineError):
    """The accept cap for an alert or help request has been reached."""

    def __init__(self, resource: str, key: str, cap: int) -> None:
        super().__init__(f"{resource} {key} already has {cap} helpers")
        self.resource = resource
        self.key = key
        self.cap = cap


class Closed(EngineError):
    """The alert is resolved or the help request is marked safe."""

    def __init__(self, resource: str, key: str) -> None:
        super().__init__(f"{resource} {key} is no longer open")
        self.resource = resource
        self.key = key


class ValidationError(EngineError):
    """Missing or out-of-range identity or coordinate fields."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class MalformedRequest(ValidationError):
    """The request body could not be parsed at all."""


class StorageFailure(EngineError):
    """The document store or history log is unavailable."""
