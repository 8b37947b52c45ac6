"""
Domain errors raised by the visit, billing and tracking services.

Every error carries a stable ``error_code`` and the HTTP status the API layer
answers with. The services raise them at the violated precondition; the
application renders them through a single exception handler.
"""


class FieldTrackError(Exception):
    """Base class for all controlled fieldtrack failures."""

    status_code = 400
    error_code = "error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidLocation(FieldTrackError):
    error_code = "invalid_location"


class InvalidRequest(FieldTrackError):
    error_code = "invalid_request"


class InvalidAmount(FieldTrackError):
    error_code = "invalid_amount"


class NotFound(FieldTrackError):
    status_code = 404
    error_code = "not_found"

    def __init__(self, resource_type: str, resource_id=None):
        super().__init__(f"{resource_type} not found", {"id": resource_id})
        self.resource_type = resource_type


class Forbidden(FieldTrackError):
    status_code = 403
    error_code = "forbidden"

    def __init__(self, resource_type: str, resource_id=None):
        super().__init__(
            f"Unauthorized access to {resource_type.lower()}",
            {"id": resource_id},
        )
        self.resource_type = resource_type


class AlreadyEnded(FieldTrackError):
    error_code = "already_ended"


class AlreadyInvoiced(FieldTrackError):
    error_code = "already_invoiced"


class VisitAlreadyOpen(FieldTrackError):
    status_code = 409
    error_code = "visit_already_open"
