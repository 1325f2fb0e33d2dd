class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict | None = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            f"{resource_type} with id {resource_id} not found",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class InvalidInputError(AppError):
    """Raised when input is well-formed but semantically invalid."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=422, details=details)


class ScheduleConflictError(AppError):
    """Raised when a timetable write would overlap existing slots.

    ``conflicts`` keeps the typed detector output; ``details`` holds its
    serialised form for the HTTP layer.
    """
    def __init__(self, conflicts: list):
        self.conflicts = list(conflicts)
        dimensions = list(dict.fromkeys(item.dimension for item in self.conflicts))
        super().__init__(
            f"Schedule conflicts detected: {', '.join(dimensions)}",
            status_code=409,
            details={"conflicts": [item.as_dict() for item in self.conflicts]},
        )


class NotificationDeliveryError(RuntimeError):
    """Raised by notification sinks; never escapes the dispatcher."""
