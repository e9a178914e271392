from __future__ import annotations

from enum import Enum


class EzParkError(Exception):
    status_code: int = 500

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class ValidationError(EzParkError):
    """Malformed client input."""

    status_code = 400


class NotFoundError(EzParkError):
    status_code = 404


class InternalError(EzParkError):
    status_code = 500


class RouteLookupFailed(EzParkError):
    """The routing service answered with an error status or an unusable payload."""

    status_code = 502


class LocationErrorReason(str, Enum):
    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"
    IN_PROGRESS = "in_progress"


class PositionError(Exception):
    """Raised by a position source for a single failed request."""

    def __init__(self, reason: LocationErrorReason, message: str = ""):
        self.reason = reason
        super().__init__(message or reason.value)


class LocationUnavailable(EzParkError):
    status_code = 503

    def __init__(self, reason: LocationErrorReason, detail: str = ""):
        self.reason = reason
        super().__init__(detail or f"Location unavailable: {reason.value}")


class LocationRequestInProgress(LocationUnavailable):
    def __init__(self) -> None:
        super().__init__(LocationErrorReason.IN_PROGRESS, "A location request is already in progress")
