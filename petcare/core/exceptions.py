"""Custom application exceptions."""


class ConfigurationError(RuntimeError):
    """Raised at startup when a required setting is missing."""


class AppException(Exception):
    """Base application exception."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class AuthenticationException(AppException):
    """Missing or invalid credentials."""

    code = "UNAUTHENTICATED"

    def __init__(self, message: str = "Could not validate credentials"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class UnauthorizedException(AppException):
    """Caller lacks rights over the referenced entity."""

    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class NotFoundException(AppException):
    """Resource not found exception."""

    code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class ConflictException(AppException):
    """Slot contention or duplicate processing."""

    code = "CONFLICT"

    def __init__(self, message: str = "Conflict"):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409)


class AlreadyProcessedException(ConflictException):
    """A payment proof was already applied to its target."""

    code = "ALREADY_PROCESSED"

    def __init__(self, message: str = "Payment already processed"):
        super().__init__(message)


class InvalidStateException(AppException):
    """Disallowed lifecycle transition."""

    code = "INVALID_STATE"

    def __init__(self, message: str, current_status: str | None = None):
        """Initialize with 409 status code and the status that blocked the transition."""
        self.current_status = current_status
        super().__init__(message, status_code=409)


class ValidationException(AppException):
    """Validation error exception."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str = "Validation error"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)


class InvalidSignatureException(AppException):
    """Payment proof failed signature verification."""

    code = "INVALID_SIGNATURE"

    def __init__(self, message: str = "Payment signature verification failed"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)
