"""CORS (Cross-Origin Resource Sharing) stage.

Answers preflight requests and adds CORS headers to every response whose
request came from an allowed origin, including error responses.

References:
- WHATWG Fetch Standard: https://fetch.spec.whatwg.org/
- MDN CORS: https://developer.mozilla.org/en-US/docs/Web/HTTP/CORS
"""

import logging
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import TYPE_CHECKING, List, Literal, Optional, Union

from .models import HTTPMethod, Request, Response

if TYPE_CHECKING:
    from .router import RouteRegistry

logger = logging.getLogger(__name__)


@dataclass
class CORSConfig:
    """Configuration for CORS (Cross-Origin Resource Sharing).

    Attributes:
        origins: List of allowed origins or "*" for all origins.
        methods: Optional list of allowed HTTP methods. If None, auto-detects from registered routes.
        allow_headers: Request headers that can be used in actual request.
        expose_headers: Response headers that JavaScript can access.
        credentials: Whether to allow credentials (cookies, authorization headers).
                    When True, origins cannot be "*".
        max_age: How long (seconds) browser can cache preflight response.

    Examples:
        CORSConfig(origins=["https://app.example.com"], credentials=True)
    """

    origins: Union[List[str], Literal["*"]]

    # Auto-detect from routes if None
    methods: Optional[List[str]] = None

    allow_headers: List[str] = field(default_factory=lambda: [
        "Accept",
        "Accept-Language",
        "Content-Type",
        "Content-Language",
        "Authorization",
        "X-Requested-With",
        "X-Request-ID",
    ])

    expose_headers: List[str] = field(default_factory=lambda: [
        "Content-Length",
        "Content-Type",
        "Retry-After",
        "X-Request-ID",
    ])

    credentials: bool = False

    # 24 hours in seconds
    max_age: int = 86400

    def __post_init__(self):
        if isinstance(self.origins, str) and self.origins != "*":
            self.origins = [self.origins]
        self.validate()

    def matches_origin(self, origin: str) -> bool:
        """Check if the given origin is allowed."""
        if self.origins == "*":
            return True
        return origin in self.origins

    def get_allowed_methods(self, path: str, registry: 'RouteRegistry') -> List[str]:
        """Get allowed methods - manual override or auto-detected from routes."""
        if self.methods is not None:
            return self.methods
        return registry.methods_for_path(path)

    def validate(self) -> None:
        """Validate CORS configuration.

        Raises:
            ValueError: If configuration is invalid
        """
        # Security: Cannot use wildcard origin with credentials
        if self.credentials and self.origins == "*":
            raise ValueError(
                "CORS: Cannot use wildcard origin '*' with credentials=True. "
                "Specify explicit origins when allowing credentials."
            )


def is_preflight(request: Request) -> bool:
    return (
        request.method == HTTPMethod.OPTIONS.value
        and request.headers.get("origin") is not None
        and request.headers.get("access-control-request-method") is not None
    )


class CORSPolicy:
    """Applies a CORSConfig to requests and responses."""

    def __init__(self, config: CORSConfig, registry: 'RouteRegistry'):
        self.config = config
        self.registry = registry

    def preflight(self, request: Request) -> Optional[Response]:
        """Answer a preflight request, or return None if the path has no routes."""
        if not self.registry.has_path(request.path):
            return None

        headers = {}
        origin = request.headers.get("origin") or ""
        if self.config.matches_origin(origin):
            headers["Access-Control-Allow-Origin"] = self._allow_origin_value(origin)
            headers["Access-Control-Allow-Methods"] = ", ".join(
                self.config.get_allowed_methods(request.path, self.registry)
            )
            headers["Access-Control-Allow-Headers"] = ", ".join(self.config.allow_headers)
            headers["Access-Control-Max-Age"] = str(self.config.max_age)
            if self.config.credentials:
                headers["Access-Control-Allow-Credentials"] = "true"
        else:
            logger.debug(f"CORS preflight from disallowed origin {origin!r} for {request.path}")

        response = Response(int(HTTPStatus.NO_CONTENT), headers=headers)
        if self.config.origins != "*":
            response.headers.add("Vary", "Origin")
        return response

    def apply(self, request: Request, response: Response) -> Response:
        """Add CORS headers to an actual (non-preflight) response."""
        origin = request.headers.get("origin")
        if origin is None or not self.config.matches_origin(origin):
            return response

        response.headers["Access-Control-Allow-Origin"] = self._allow_origin_value(origin)
        if self.config.expose_headers:
            response.headers["Access-Control-Expose-Headers"] = ", ".join(self.config.expose_headers)
        if self.config.credentials:
            response.headers["Access-Control-Allow-Credentials"] = "true"
        if self.config.origins != "*":
            response.headers.add("Vary", "Origin")
        return response

    def _allow_origin_value(self, origin: str) -> str:
        if self.config.origins == "*":
            return "*"
        return origin
