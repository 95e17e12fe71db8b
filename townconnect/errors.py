"""Error types raised by the TownConnect stores."""

from __future__ import annotations


class TownConnectError(Exception):
    """Base class for every error surfaced to callers."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(TownConnectError):
    """Raised when caller-supplied data violates an invariant."""


class EventFullError(ValidationError):
    """Raised when an event is at capacity for accepted RSVPs."""

    def __init__(self, event_id: str) -> None:
        super().__init__("This event has reached its maximum number of attendees.")
        self.event_id = event_id


class NotFoundError(TownConnectError):
    """Raised when a referenced entity does not exist in the data store."""

    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind} not found: {entity_id}")
        self.kind = kind
        self.entity_id = entity_id


class BackendError(TownConnectError):
    """Raised when the backing data store fails or a secondary write diverges."""


class PermissionDeniedError(TownConnectError):
    """Raised when the acting user's role lacks a capability."""

    def __init__(self, user_id: str, permission: str) -> None:
        super().__init__(f"User {user_id} lacks permission {permission}")
        self.user_id = user_id
        self.permission = permission
