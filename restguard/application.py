"""
Application facade: route registration plus a lazily built dispatcher.
"""

import logging
import time
from typing import Any, Callable, Optional, Sequence, Union

from .auth import JWTTokenService, TokenService
from .config import Settings
from .cors import CORSConfig, CORSPolicy
from .dispatcher import Dispatcher
from .error_handler import ErrorHandler
from .guards import Clock, GuardFactory, RateLimitStore
from .models import HTTPMethod, Request, Response
from .observability import LoggingSink, LogSink, RequestLogger
from .router import Route, RouteRegistry, Router
from .transformer import ResponseTransformer

logger = logging.getLogger(__name__)


class RestGuardApp:
    """An HTTP API whose routes declare their capability requirements.

    Example::

        app = RestGuardApp(Settings(jwt_secret="change-me"))

        @app.get("/me", requires=[RateLimit("me", 60, 100), RequireAuth()])
        def me(ctx):
            return {"subject": ctx.identity.subject}

        asgi_app = app.asgi()

    Collaborators (token service, rate-limit store, log sink, clock) are passed
    in explicitly; defaults are built from ``settings``. Routes can be added
    until the application starts serving, after which the registry is frozen.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        token_service: Optional[TokenService] = None,
        rate_limit_store: Optional[RateLimitStore] = None,
        log_sink: Optional[LogSink] = None,
        cors: Optional[CORSConfig] = None,
        clock: Clock = time.time,
    ):
        self.settings = settings or Settings()

        if token_service is None and self.settings.jwt_secret:
            token_service = JWTTokenService(
                self.settings.jwt_secret,
                algorithm=self.settings.jwt_algorithm,
                ttl_seconds=self.settings.token_ttl_seconds,
                clock=clock,
            )
        self.token_service = token_service

        if cors is None and self.settings.cors_origins is not None:
            cors = CORSConfig(origins=self.settings.cors_origins, credentials=self.settings.cors_credentials)
        self.cors_config = cors

        self.log_sink = log_sink or LoggingSink()
        self.registry = RouteRegistry()
        self.guard_factory = GuardFactory(
            rate_limit_store=rate_limit_store,
            token_service=token_service,
            clock=clock,
            trust_forwarded=self.settings.trust_forwarded_for,
        )
        self._dispatcher: Optional[Dispatcher] = None

    # Route registration

    def add_route(
        self,
        method: Union[str, HTTPMethod],
        path: str,
        handler: Callable[..., Any],
        requires: Sequence[Any] = (),
        name: Optional[str] = None,
    ) -> Route:
        """Register a route.

        Raises:
            DuplicateRouteError: If the method and pattern are already registered
            RegistryFrozenError: If the application is already serving
        """
        route = Route(method=method, pattern=path, handler=handler, requirements=tuple(requires), name=name)
        # Fail at registration time, not on the first request
        self.guard_factory.build_chain(route)
        return self.registry.register(route)

    def mount(self, prefix: str, router: Router) -> None:
        """Register every route of ``router`` (and its mounted routers) under ``prefix``."""
        for route in router.get_all_routes(prefix):
            self.guard_factory.build_chain(route)
            self.registry.register(route)

    def get(self, path: str, requires: Sequence[Any] = ()):
        """Decorator to register a GET route handler."""
        return self._route_decorator(HTTPMethod.GET, path, requires)

    def post(self, path: str, requires: Sequence[Any] = ()):
        """Decorator to register a POST route handler."""
        return self._route_decorator(HTTPMethod.POST, path, requires)

    def put(self, path: str, requires: Sequence[Any] = ()):
        """Decorator to register a PUT route handler."""
        return self._route_decorator(HTTPMethod.PUT, path, requires)

    def delete(self, path: str, requires: Sequence[Any] = ()):
        """Decorator to register a DELETE route handler."""
        return self._route_decorator(HTTPMethod.DELETE, path, requires)

    def patch(self, path: str, requires: Sequence[Any] = ()):
        """Decorator to register a PATCH route handler."""
        return self._route_decorator(HTTPMethod.PATCH, path, requires)

    def _route_decorator(self, method: HTTPMethod, path: str, requires: Sequence[Any]):
        def decorator(func: Callable):
            self.add_route(method, path, func, requires)
            return func

        return decorator

    # Serving

    def startup(self) -> Dispatcher:
        """Freeze the registry and build the dispatcher. Idempotent."""
        if self._dispatcher is None:
            self.registry.freeze()
            cors = CORSPolicy(self.cors_config, self.registry) if self.cors_config is not None else None
            self._dispatcher = Dispatcher(
                self.registry,
                guard_factory=self.guard_factory,
                transformer=ResponseTransformer(),
                error_handler=ErrorHandler(self.log_sink),
                request_logger=RequestLogger(self.log_sink),
                cors=cors,
            )
            logger.info(f"Serving {len(self.registry)} routes")
        return self._dispatcher

    @property
    def dispatcher(self) -> Dispatcher:
        return self.startup()

    async def handle(self, request: Request) -> Response:
        """Run ``request`` through the pipeline."""
        return await self.dispatcher.dispatch(request)

    def asgi(self):
        """Return an ASGI 3.0 application for this app."""
        from .adapters import ASGIAdapter

        return ASGIAdapter(self)
