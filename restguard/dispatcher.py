"""
Dispatcher: drives one request through the pipeline.

Order of stages for every request::

    request logging (start)
      -> CORS preflight (OPTIONS with Origin + Access-Control-Request-Method)
      -> route match (miss -> RESOURCE_NOT_FOUND)
      -> route guards, strictly in declaration order
      -> handler
      -> response transformer
    any failure above -> error handler
      -> CORS response headers, X-Request-ID
    request logging (completion)
"""

import logging
from typing import Dict, List, Optional

from .context import RequestContext, resolve_request_id
from .cors import CORSPolicy, is_preflight
from .error_handler import ErrorHandler
from .exceptions import ResourceNotFoundError
from .guards import Guard, GuardFactory, maybe_await
from .models import Request, Response
from .observability import RequestLogger
from .router import Route, RouteRegistry
from .transformer import ResponseTransformer

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class Dispatcher:
    """Matches requests to routes and runs each route's guard chain.

    The dispatcher never looks at error kinds: any exception raised by a
    guard, the handler or the transformer stops the chain and is handed to
    the error handler, which owns the kind -> status mapping.

    ``asyncio.CancelledError`` (client disconnect) is not an ``Exception`` and
    therefore propagates to the server instead of producing a response.
    """

    def __init__(
        self,
        registry: RouteRegistry,
        guard_factory: Optional[GuardFactory] = None,
        transformer: Optional[ResponseTransformer] = None,
        error_handler: Optional[ErrorHandler] = None,
        request_logger: Optional[RequestLogger] = None,
        cors: Optional[CORSPolicy] = None,
    ):
        self.registry = registry
        self.guard_factory = guard_factory or GuardFactory()
        self.transformer = transformer or ResponseTransformer()
        self.error_handler = error_handler or ErrorHandler()
        self.request_logger = request_logger
        self.cors = cors
        self._chains: Dict[Route, List[Guard]] = {}
        for route in registry.routes:
            self._chains[route] = self.guard_factory.build_chain(route)

    def chain_for(self, route: Route) -> List[Guard]:
        """The ordered guard chain for ``route``."""
        chain = self._chains.get(route)
        if chain is None:
            chain = self._chains[route] = self.guard_factory.build_chain(route)
        return chain

    async def dispatch(self, request: Request) -> Response:
        """Process ``request`` and return the response to send."""
        ctx = RequestContext(request=request)
        ctx.request_id = resolve_request_id(request)
        if self.request_logger is not None:
            self.request_logger.started(ctx)

        logger.debug(f"Dispatching {ctx.method} {ctx.path} [request_id={ctx.request_id}]")

        preflight = None
        if self.cors is not None and is_preflight(request):
            preflight = self.cors.preflight(request)

        if preflight is not None:
            response = preflight
        else:
            try:
                response = await self._run(ctx)
            except Exception as exc:
                response = self.error_handler.handle(ctx, exc)
            if self.cors is not None:
                response = self.cors.apply(request, response)

        response.headers[REQUEST_ID_HEADER] = ctx.request_id

        if self.request_logger is not None:
            self.request_logger.completed(ctx, response.status_code)
        return response

    async def _run(self, ctx: RequestContext) -> Response:
        match = self.registry.match(ctx.method, ctx.path)
        if match is None:
            raise ResourceNotFoundError(f"No route matches {ctx.method} {ctx.path}")

        ctx.route = match.route
        ctx.path_params = dict(match.params)

        for guard in self.chain_for(match.route):
            logger.debug(f"  → {guard.name}")
            await guard.check(ctx)

        result = await maybe_await(match.route.handler(ctx))
        return self.transformer.transform(ctx, result)
