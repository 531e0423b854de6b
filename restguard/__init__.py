"""
A request-processing pipeline for HTTP APIs.

Routes declare their capability requirements (rate limits, authentication,
schema validation) as an ordered list. Every request runs through request
logging, CORS, route matching, the route's guards in declaration order, the
handler and the response transformer; any failure on the way is turned into
a uniform JSON envelope by a single error handler.
"""

from .application import RestGuardApp
from .auth import JWTTokenService, PasswordHasher, Pbkdf2PasswordHasher, TokenService
from .config import Settings
from .context import Identity, RequestContext
from .cors import CORSConfig
from .dispatcher import Dispatcher
from .envelope import Envelope
from .error_handler import ErrorHandler
from .exceptions import (
    ApiError,
    DuplicateRouteError,
    ErrorKind,
    InternalError,
    InvalidCredentialsError,
    RateLimitExceededError,
    RegistryFrozenError,
    ResourceAlreadyExistsError,
    ResourceNotFoundError,
    RestGuardError,
    ServiceUnavailableError,
    TokenExpiredError,
    TokenInvalidError,
    UnauthorizedError,
    ValidationFailedError,
)
from .guards import Guard, GuardFactory, InMemoryRateLimitStore, RateLimitStore
from .models import HTTPMethod, MultiValueHeaders, Request, Response
from .observability import LoggingSink, LogRecord, LogSink, MemorySink
from .repository import InMemoryRepository, Repository
from .requirements import FieldSpec, RateLimit, RequireAuth, Target, ValidateSchema
from .router import Route, RouteMatch, RouteRegistry, Router
from .transformer import ResponseTransformer

__version__ = "0.1.0"
__license__ = "MIT"

__all__ = [
    "ApiError",
    "CORSConfig",
    "Dispatcher",
    "DuplicateRouteError",
    "Envelope",
    "ErrorHandler",
    "ErrorKind",
    "FieldSpec",
    "Guard",
    "GuardFactory",
    "HTTPMethod",
    "Identity",
    "InMemoryRateLimitStore",
    "InMemoryRepository",
    "InternalError",
    "InvalidCredentialsError",
    "JWTTokenService",
    "LogRecord",
    "LogSink",
    "LoggingSink",
    "MemorySink",
    "MultiValueHeaders",
    "PasswordHasher",
    "Pbkdf2PasswordHasher",
    "RateLimit",
    "RateLimitExceededError",
    "RateLimitStore",
    "RegistryFrozenError",
    "Repository",
    "Request",
    "RequestContext",
    "RequireAuth",
    "ResourceAlreadyExistsError",
    "ResourceNotFoundError",
    "Response",
    "ResponseTransformer",
    "RestGuardApp",
    "RestGuardError",
    "Route",
    "RouteMatch",
    "RouteRegistry",
    "Router",
    "ServiceUnavailableError",
    "Settings",
    "Target",
    "TokenExpiredError",
    "TokenInvalidError",
    "TokenService",
    "UnauthorizedError",
    "ValidateSchema",
]
