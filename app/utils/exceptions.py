import re
from typing import Any, Optional


class AppException(Exception):
    """Base exception for all application-specific errors."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 400,
        details: Optional[Any] = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class NotFoundException(AppException):
    """Exception raised when a resource or record is not found."""

    def __init__(self, message: str = "Not found", details: Optional[Any] = None):
        super().__init__(
            code="NOT_FOUND",
            message=message,
            status_code=404,
            details=details,
        )


class ValidationException(AppException):
    """Exception raised for malformed or invalid input."""

    def __init__(self, message: str = "Validation failed", details: Optional[Any] = None):
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=400,
            details=details,
        )


class InvalidConfigException(AppException):
    """Exception raised when a resource or dashboard config is malformed."""

    def __init__(self, message: str = "Invalid config", details: Optional[Any] = None):
        super().__init__(
            code="INVALID_CONFIG",
            message=message,
            status_code=500,
            details=details,
        )


class UnauthorizedException(AppException):
    """Exception raised when authentication fails."""

    def __init__(self, message: str = "Unauthorized access", details: Optional[Any] = None):
        super().__init__(
            code="UNAUTHORIZED",
            message=message,
            status_code=401,
            details=details,
        )


class PermissionDeniedException(AppException):
    """Exception raised when an authorization check or RLS policy rejects the call."""

    def __init__(self, message: str = "Permission denied", details: Optional[Any] = None):
        super().__init__(
            code="FORBIDDEN",
            message=message,
            status_code=403,
            details=details,
        )


class ConflictException(AppException):
    """Exception raised on unique constraint violations."""

    def __init__(self, message: str = "Conflict", details: Optional[Any] = None):
        super().__init__(
            code="CONFLICT",
            message=message,
            status_code=409,
            details=details,
        )


class RateLimitedException(AppException):
    """Exception raised when a caller exceeds the request budget."""

    def __init__(self, message: str = "Too many requests", details: Optional[Any] = None):
        super().__init__(
            code="RATE_LIMITED",
            message=message,
            status_code=429,
            details=details,
        )


class UpstreamException(AppException):
    """Exception raised for failures reported by the database service."""

    def __init__(
        self,
        message: str = "Database error occurred",
        status_code: int = 500,
        details: Optional[Any] = None,
    ):
        super().__init__(
            code="UPSTREAM_ERROR",
            message=message,
            status_code=status_code,
            details=details,
        )


_PERMISSION_PATTERN = re.compile(r"permission|rls|policy", re.IGNORECASE)
_CONFLICT_PATTERN = re.compile(r"duplicate key|unique constraint", re.IGNORECASE)
_MISSING_RELATION_PATTERN = re.compile(r"relation .* does not exist|relation .* not found", re.IGNORECASE)
_CLIENT_ERROR_PATTERN = re.compile(
    r"invalid|bad request|payload|column|type|syntax|violates", re.IGNORECASE
)


def database_error_message(exc: BaseException) -> str:
    """Return the driver-level message for a SQLAlchemy/DBAPI error."""
    orig = getattr(exc, "orig", None)
    return str(orig if orig is not None else exc).strip() or exc.__class__.__name__


def classify_database_error(exc: BaseException, table: Optional[str] = None) -> AppException:
    """Map a database failure onto the application exception taxonomy.

    The hosted database reports policy and constraint failures only through
    the message text, so classification is by pattern.
    """
    if isinstance(exc, AppException):
        return exc

    message = database_error_message(exc)
    if _PERMISSION_PATTERN.search(message):
        return PermissionDeniedException(message)
    if _CONFLICT_PATTERN.search(message):
        return ConflictException(message)
    if _MISSING_RELATION_PATTERN.search(message):
        hint = f'Database table/view "{table}" does not exist. Check that its migration has been applied.'
        return UpstreamException(hint if table else message, status_code=500, details=message)
    if _CLIENT_ERROR_PATTERN.search(message):
        return UpstreamException(message, status_code=400)
    return UpstreamException(message, status_code=500)
