"""
ASGI adapter for running restguard applications on ASGI servers.

The adapter converts between ASGI scope/receive/send messages and restguard's
:class:`~restguard.models.Request`/:class:`~restguard.models.Response`.
"""

import logging
import urllib.parse
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, List, Optional, Tuple

from .context import RequestContext
from .models import MultiValueHeaders, Request, Response

if TYPE_CHECKING:
    from .application import RestGuardApp

logger = logging.getLogger(__name__)

Receive = Callable[[], Awaitable[Dict[str, Any]]]
Send = Callable[[Dict[str, Any]], Awaitable[None]]


class ASGIAdapter:
    """
    ASGI 3.0 adapter for restguard applications.

    The adapter handles:
    - Converting ASGI scope/receive/send to a restguard Request
    - Running the request through the application's pipeline
    - Converting the Response back to ASGI messages
    - The lifespan protocol: startup freezes the route registry

    Each HTTP connection scope is handled in its own task by the server. A
    client that disconnects before its body is complete is dropped without
    dispatching. A disconnect later on makes the server cancel the task; the
    cancellation propagates through the pipeline and no response is sent.

    Example:
        ```python
        from restguard import RestGuardApp

        app = RestGuardApp()

        @app.get("/")
        def home(ctx):
            return {"message": "Hello World"}

        asgi_app = app.asgi()
        # uvicorn module:asgi_app
        ```
    """

    def __init__(self, app: "RestGuardApp"):
        self.app = app

    async def __call__(self, scope: Dict[str, Any], receive: Receive, send: Send):
        """
        ASGI 3.0 application entry point.

        Args:
            scope: ASGI connection scope dictionary
            receive: Async callable to receive ASGI messages
            send: Async callable to send ASGI messages
        """
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return

        if scope["type"] != "http":
            # Only handle HTTP and lifespan
            logger.warning(f"Unsupported ASGI scope type: {scope['type']}")
            return

        dispatcher = self.app.dispatcher
        try:
            request = await self._read_request(scope, receive)
        except Exception as e:
            # Nothing from the exception reaches the client
            bare = Request(method=scope.get("method", "GET"), path=scope.get("path", "/"))
            response = dispatcher.error_handler.handle(RequestContext(request=bare), e)
            await self._send_response(response, send, head=False)
            return

        if request is None:
            logger.debug(f"Client disconnected before sending the full body of {scope['method']} {scope['path']}")
            return

        response = await dispatcher.dispatch(request)
        await self._send_response(response, send, head=request.method == "HEAD")

    async def _handle_lifespan(self, receive: Receive, send: Send):
        """
        Handle ASGI lifespan protocol for startup and shutdown.

        Args:
            receive: ASGI receive callable
            send: ASGI send callable
        """
        while True:
            message = await receive()

            if message["type"] == "lifespan.startup":
                try:
                    self.app.startup()
                except Exception as e:
                    logger.error(f"Startup failed: {e}", exc_info=True)
                    await send({"type": "lifespan.startup.failed", "message": str(e)})
                    raise
                await send({"type": "lifespan.startup.complete"})

            elif message["type"] == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return

    async def _read_request(self, scope: Dict[str, Any], receive: Receive) -> Optional[Request]:
        """Build a Request from the scope and the full request body.

        Returns None if the client disconnects before the body is complete.
        """
        query_string = scope.get("query_string", b"").decode("latin-1")
        # Takes the first value for duplicate keys
        query_params: Dict[str, str] = {}
        for key, value in urllib.parse.parse_qsl(query_string, keep_blank_values=True):
            query_params.setdefault(key, value)

        # ASGI uses lowercase names and bytes
        headers = MultiValueHeaders()
        for header_name, header_value in scope.get("headers", []):
            headers.add(header_name.decode("latin-1").lower(), header_value.decode("latin-1"))

        chunks: List[bytes] = []
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] == "http.disconnect":
                return None
            chunks.append(message.get("body", b""))
            more_body = message.get("more_body", False)

        client = scope.get("client")
        return Request(
            method=scope["method"],
            path=scope["path"],
            headers=headers,
            body=b"".join(chunks),
            query_params=query_params,
            client=tuple(client) if client else None,
        )

    def _prepare_asgi_headers(self, response: Response) -> List[Tuple[bytes, bytes]]:
        return [
            (name.lower().encode("latin-1"), str(value).encode("latin-1"))
            for name, value in response.headers.items_all()
        ]

    async def _send_response(self, response: Response, send: Send, head: bool):
        await send({
            "type": "http.response.start",
            "status": response.status_code,
            "headers": self._prepare_asgi_headers(response),
        })
        await send({
            "type": "http.response.body",
            "body": b"" if head else response.body,
        })
