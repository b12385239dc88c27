"""
portal/errors.py

Error taxonomy returned to API consumers.

Every failure in the guard or the resource operations is raised as one of these
and rendered by a single FastAPI exception handler as:

    {"error": "<message>", "details": "<only outside production>"}
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class PortalError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, details: Optional[str] = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_body(self, include_details: bool = False) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.message}
        if include_details and self.details:
            body["details"] = self.details
        return body


class Unauthenticated(PortalError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(PortalError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(PortalError):
    status_code = 404
    default_message = "Not found"


class InvalidArgument(PortalError):
    status_code = 400
    default_message = "Invalid request"


class Conflict(PortalError):
    """Unique-key collisions and violated multi-row postconditions (retryable)."""

    status_code = 409
    default_message = "Conflict"


class Internal(PortalError):
    status_code = 500
    default_message = "Internal server error"
