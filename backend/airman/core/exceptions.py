class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class ValidationError(AppError):
    """Raised when input is malformed (day/time format, missing fields)."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=422, details=details)

class NotFoundError(AppError):
    """Raised when a tenant-scoped lookup misses.

    Cross-tenant access is reported through this error as well, so callers
    cannot tell a foreign record from a missing one.
    """
    def __init__(self, resource_type: str, resource_id: str | None = None):
        details = {"resource_type": resource_type}
        if resource_id is not None:
            details["resource_id"] = resource_id
        super().__init__(f"{resource_type} not found", status_code=404, details=details)

class StateConflictError(AppError):
    """Raised when the current status does not allow the requested transition."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class SchedulingConflictError(AppError):
    """Raised when an assignment would double-book an instructor.

    Callers may retry with a different slot or instructor.
    """
    def __init__(self, message: str = "Instructor has a conflicting booking at this time", details: dict = None):
        super().__init__(message, status_code=409, details=details)

class PermissionDeniedError(AppError):
    """Raised when the actor may not perform a transition on a booking."""
    def __init__(self, message: str = "Cannot update this booking", details: dict = None):
        super().__init__(message, status_code=403, details=details)
