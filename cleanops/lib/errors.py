"""
Service errors.
Each kind carries the code and HTTP status the API reports for it.
"""

from typing import Optional


class ServiceError(Exception):
    """Base for every error a service raises on purpose."""

    code = "INTERNAL_SERVER_ERROR"
    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class AuthError(ServiceError):
    """Bad, expired or unreadable token."""
    code = "UNAUTHORIZED"
    status_code = 401
    default_message = "Invalid or expired token"


class NotFoundError(ServiceError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Not found"


class ForbiddenError(ServiceError):
    code = "FORBIDDEN"
    status_code = 403
    default_message = "Access denied. Admin privileges required."


class InvalidStateError(ServiceError):
    """The record is not in a state that allows the requested transition."""
    code = "BAD_REQUEST"
    status_code = 400
    default_message = "Invalid state"


class ProcessorError(ServiceError):
    """Stripe rejected or failed the call. The message is Stripe's own."""
    code = "BAD_REQUEST"
    status_code = 400
    default_message = "Payment processor error"

    def __init__(self, processor_message: Optional[str] = None):
        self.processor_message = processor_message or self.default_message
        super().__init__(f"Stripe error: {self.processor_message}")


class InternalError(ServiceError):
    code = "INTERNAL_SERVER_ERROR"
    status_code = 500
