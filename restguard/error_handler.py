"""
Error handler: the single terminal sink for every failed request.

Guard short-circuits, handler exceptions, unmatched routes and unexpected
failures all end up here and leave as a ``success: false`` envelope. This is
the only place where an error kind is mapped to an HTTP status.
"""

import logging
from typing import Optional

from .context import RequestContext, new_request_id
from .envelope import Envelope
from .exceptions import STATUS_FOR_KIND, ApiError, ErrorKind
from .models import Response
from .observability import LogRecord, LogSink
from .transformer import JSON_CONTENT_TYPE

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"


class ErrorHandler:
    """Converts exceptions into error envelope responses.

    Internal errors are logged with their traceback server-side; the client
    only ever sees :data:`INTERNAL_ERROR_MESSAGE` and no details.
    """

    def __init__(self, sink: Optional[LogSink] = None):
        self.sink = sink

    def handle(self, ctx: RequestContext, exc: BaseException) -> Response:
        if ctx.request_id is None:
            ctx.request_id = new_request_id()

        if isinstance(exc, ApiError) and exc.kind != ErrorKind.INTERNAL_ERROR:
            kind = exc.kind
            message = exc.message
            details = exc.details
            headers = dict(exc.headers)
            logger.debug(f"{kind.value} for {ctx.method} {ctx.path}: {message}")
        else:
            kind = ErrorKind.INTERNAL_ERROR
            message = INTERNAL_ERROR_MESSAGE
            details = None
            headers = {}
            logger.error(
                f"Unhandled exception processing {ctx.method} {ctx.path} "
                f"[request_id={ctx.request_id}]: {exc!r}",
                exc_info=exc,
            )

        status = int(STATUS_FOR_KIND[kind])
        try:
            envelope = Envelope.failure(kind.value, message, request_id=ctx.request_id, details=details)
            body = envelope.to_json()
        except Exception as render_exc:
            logger.error(
                f"Could not render {kind.value} envelope for {ctx.method} {ctx.path} "
                f"[request_id={ctx.request_id}]: {render_exc!r}",
                exc_info=render_exc,
            )
            kind = ErrorKind.INTERNAL_ERROR
            status = int(STATUS_FOR_KIND[kind])
            headers = {}
            body = Envelope.failure(kind.value, INTERNAL_ERROR_MESSAGE, request_id=ctx.request_id).to_json()

        self._record(ctx, kind, status)
        return Response(status, body, headers=headers, content_type=JSON_CONTENT_TYPE)

    def _record(self, ctx: RequestContext, kind: ErrorKind, status: int) -> None:
        if self.sink is None:
            return
        self.sink.emit(LogRecord(
            request_id=ctx.request_id,
            level=logging.ERROR if status >= 500 else logging.WARNING,
            message="request failed",
            fields={"method": ctx.method, "path": ctx.path, "code": kind.value, "status": status},
        ))
