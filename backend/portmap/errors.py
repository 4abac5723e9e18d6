from contextlib import contextmanager


class PortmapError(Exception):
    """Base class for errors surfaced to the dashboard as notifications."""

    status_code = 500
    kind = "error"

    def __init__(self, code: str, message: str | None = None):
        super().__init__(message or code)
        self.code = code
        self.message = message or code
        # Notification key of the operation that failed, set by the caller
        self.operation: str | None = None


class ValidationError(PortmapError):
    """Malformed user input. Never reaches the gateway."""

    status_code = 422
    kind = "validation"

    def __init__(self, code: str, message: str | None = None, fields: dict[str, str] | None = None):
        super().__init__(code, message)
        self.fields = fields or {}


class GatewayError(PortmapError):
    """Transport or storage failure at the remote data gateway."""

    status_code = 502
    kind = "gateway"

    def __init__(self, message: str, status: int | None = None):
        super().__init__("gateway_error", message)
        self.status = status


class AuthError(PortmapError):
    status_code = 401
    kind = "auth"


class ForbiddenError(PortmapError):
    status_code = 403
    kind = "forbidden"


class BusyError(PortmapError):
    status_code = 409
    kind = "busy"

    def __init__(self):
        super().__init__("busy", "Another switch operation is still in progress")


class NotFoundError(PortmapError):
    status_code = 404
    kind = "not_found"


@contextmanager
def failing_as(operation: str):
    """Tag gateway failures raised inside the block with the failed operation."""
    try:
        yield
    except GatewayError as e:
        e.operation = operation
        raise
