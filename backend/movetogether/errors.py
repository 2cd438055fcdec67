from __future__ import annotations


class ServiceError(Exception):
    """Base for errors surfaced to API callers. `status_code` maps to the HTTP response."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(ServiceError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(ServiceError):
    status_code = 403
    default_message = "Forbidden"


class InvalidDataError(ServiceError):
    status_code = 400
    default_message = "Invalid data"


class NotFound(ServiceError):
    status_code = 404
    default_message = "Not found"


class RateLimited(ServiceError):
    status_code = 429
    default_message = "Too many requests. Please try again later."

    def __init__(self, message: str | None = None, retry_after: int = 60):
        super().__init__(message)
        self.retry_after = retry_after


class UpstreamFailure(ServiceError):
    status_code = 500
    default_message = "Upstream service failed"
