"""Custom application exceptions."""


class AppException(Exception):
    """Base application exception."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    code = "FORBIDDEN"

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class ConflictException(AppException):
    """Conflict exception."""

    code = "CONFLICT"

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class ValidationException(AppException):
    """Validation error exception."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Validation error"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)


class RateLimitException(AppException):
    """Rate limit exceeded exception."""

    code = "RATE_LIMITED"

    def __init__(self, message: str = "Rate limit exceeded"):
        """Initialize with 429 status code."""
        super().__init__(message, status_code=429)


# Scheduling rejections


class NotWorkingHoursException(AppException):
    """Requested start is not covered by any in-force rule or date exception."""

    code = "NOT_WORKING_HOURS"

    def __init__(self, message: str = "The professional does not work at the requested time"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)


class BlockedPeriodException(ConflictException):
    """Requested interval overlaps an unavailability block."""

    code = "BLOCKED_PERIOD"

    def __init__(self, message: str = "The requested time falls within a blocked period"):
        """Initialize with 409 status code."""
        super().__init__(message)


class SlotTakenException(ConflictException):
    """Requested interval overlaps an existing non-terminal appointment."""

    code = "SLOT_TAKEN"

    def __init__(self, message: str = "The requested time slot is not available"):
        """Initialize with 409 status code."""
        super().__init__(message)


class InvalidStateTransitionException(ConflictException):
    """Lifecycle operation attempted from an incompatible state."""

    code = "INVALID_STATE_TRANSITION"

    def __init__(self, message: str = "Invalid appointment state transition"):
        """Initialize with 409 status code."""
        super().__init__(message)
