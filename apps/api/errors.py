"""Error kinds raised by the service layer.

Messages are a small fixed vocabulary shown to end users; provider details
stay in the logs.
"""
from typing import Optional


class ServiceError(Exception):
    status_code = 500
    code = "internal_error"
    message = "Something went wrong"

    def __init__(self, message: Optional[str] = None, *, code: Optional[str] = None):
        super().__init__(message or self.message)
        if message:
            self.message = message
        if code:
            self.code = code

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code}


class NotAuthenticated(ServiceError):
    status_code = 401
    code = "not_authenticated"
    message = "Please sign in to continue"


class NotAuthorized(ServiceError):
    status_code = 403
    code = "not_authorized"
    message = "You do not have permission to do that"


class SubscriptionRequired(ServiceError):
    status_code = 402
    code = "subscription_required"
    message = "An active subscription is required to read this summary"


class NotFound(ServiceError):
    status_code = 404
    code = "not_found"
    message = "Not found"


class ValidationError(ServiceError):
    status_code = 400
    code = "validation_error"
    message = "The request is invalid"


class Conflict(ServiceError):
    status_code = 409
    code = "conflict"
    message = "The resource was changed by another request"


class UpstreamUnavailable(ServiceError):
    status_code = 503
    code = "upstream_unavailable"
    message = "A required service is temporarily unavailable"
