"""
Exceptions for the restguard pipeline.

Every failure a guard or handler wants to report to the client is an
:class:`ApiError`. The error handler is the only place that turns these into
HTTP responses; anything that is not an ``ApiError`` is treated as an
internal error.
"""
from enum import Enum
from http import HTTPStatus
from typing import Any, Dict, List, Optional


class ErrorKind(str, Enum):
    """Error taxonomy with a fixed HTTP status per kind."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_INVALID = "TOKEN_INVALID"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    RESOURCE_ALREADY_EXISTS = "RESOURCE_ALREADY_EXISTS"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


STATUS_FOR_KIND: Dict[ErrorKind, HTTPStatus] = {
    ErrorKind.VALIDATION_ERROR: HTTPStatus.UNPROCESSABLE_ENTITY,
    ErrorKind.UNAUTHORIZED: HTTPStatus.UNAUTHORIZED,
    ErrorKind.INVALID_CREDENTIALS: HTTPStatus.UNAUTHORIZED,
    ErrorKind.TOKEN_EXPIRED: HTTPStatus.UNAUTHORIZED,
    ErrorKind.TOKEN_INVALID: HTTPStatus.UNAUTHORIZED,
    ErrorKind.RESOURCE_NOT_FOUND: HTTPStatus.NOT_FOUND,
    ErrorKind.RESOURCE_ALREADY_EXISTS: HTTPStatus.CONFLICT,
    ErrorKind.RATE_LIMIT_EXCEEDED: HTTPStatus.TOO_MANY_REQUESTS,
    ErrorKind.INTERNAL_ERROR: HTTPStatus.INTERNAL_SERVER_ERROR,
    ErrorKind.SERVICE_UNAVAILABLE: HTTPStatus.SERVICE_UNAVAILABLE,
}


class RestGuardError(Exception):
    """Base exception for restguard errors."""

    pass


class DuplicateRouteError(RestGuardError):
    """Raised when a route with the same method and pattern is registered twice."""

    def __init__(self, method: str, pattern: str):
        self.method = method
        self.pattern = pattern
        super().__init__(f"Route already registered: {method} {pattern}")


class RegistryFrozenError(RestGuardError):
    """Raised when a route is registered after the application started serving."""

    pass


class ApiError(RestGuardError):
    """A failure that should be reported to the client.

    Attributes:
        kind: Error kind from the taxonomy
        message: Client-facing message
        details: Optional structured detail (e.g. a list of field errors)
        headers: Extra response headers to send with the error (e.g. Retry-After)
    """

    kind: ErrorKind = ErrorKind.INTERNAL_ERROR
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message or self.default_message
        self.details = details
        self.headers = dict(headers or {})
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return int(STATUS_FOR_KIND[self.kind])


class ValidationFailedError(ApiError):
    """Input failed schema constraints. ``details`` is a list of ``{field, message}``."""

    kind = ErrorKind.VALIDATION_ERROR
    default_message = "Validation failed"

    def __init__(self, errors: List[Dict[str, str]], message: Optional[str] = None):
        super().__init__(message, details=list(errors))

    @property
    def errors(self) -> List[Dict[str, str]]:
        return self.details


class UnauthorizedError(ApiError):
    kind = ErrorKind.UNAUTHORIZED
    default_message = "Authentication required"


class InvalidCredentialsError(ApiError):
    kind = ErrorKind.INVALID_CREDENTIALS
    default_message = "Invalid credentials"


class TokenExpiredError(ApiError):
    """The token was well formed and correctly signed but is past its expiry."""

    kind = ErrorKind.TOKEN_EXPIRED
    default_message = "Token has expired"


class TokenInvalidError(ApiError):
    """The token is malformed, forged, or otherwise unverifiable."""

    kind = ErrorKind.TOKEN_INVALID
    default_message = "Token is invalid"


class ResourceNotFoundError(ApiError):
    kind = ErrorKind.RESOURCE_NOT_FOUND
    default_message = "Resource not found"


class ResourceAlreadyExistsError(ApiError):
    kind = ErrorKind.RESOURCE_ALREADY_EXISTS
    default_message = "Resource already exists"


class RateLimitExceededError(ApiError):
    """Raised when a rate-limit window is exhausted.

    The ``Retry-After`` header and ``details.retryAfter`` both advertise when a
    retry is expected to succeed.
    """

    kind = ErrorKind.RATE_LIMIT_EXCEEDED
    default_message = "Too many requests"

    def __init__(self, retry_after: int, message: Optional[str] = None):
        self.retry_after = retry_after
        super().__init__(
            message or f"Too many requests. Retry after {retry_after} seconds.",
            details={"retryAfter": retry_after},
            headers={"Retry-After": str(retry_after)},
        )


class InternalError(ApiError):
    kind = ErrorKind.INTERNAL_ERROR


class ServiceUnavailableError(ApiError):
    kind = ErrorKind.SERVICE_UNAVAILABLE
    default_message = "Service temporarily unavailable"
