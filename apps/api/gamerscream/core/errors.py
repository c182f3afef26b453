"""Error taxonomy shared by the services and the HTTP layer."""
from __future__ import annotations


class GateError(Exception):
    """Base class for failures that map onto a JSON error response."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(GateError):
    status_code = 400
    default_message = "Invalid request"


class Unauthorized(GateError):
    status_code = 401
    default_message = "Unauthorized — app PIN required"


class InvalidCredential(GateError):
    """Wrong PIN, admin secret or channel PIN."""

    status_code = 403
    default_message = "Invalid PIN"


class NotFound(GateError):
    status_code = 404
    default_message = "Channel not found"


class RateLimited(GateError):
    status_code = 429
    default_message = "Too many attempts. Try again later."


class UpstreamFailure(GateError):
    """The media service management API failed."""

    status_code = 500
    default_message = "Media service request failed"


class ServiceUnavailable(GateError):
    status_code = 503
    default_message = "Admin panel not configured"
