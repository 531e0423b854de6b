"""
Response transformer: wraps successful handler results in the envelope.
"""

import logging
from typing import Any

from .context import RequestContext, new_request_id
from .envelope import Envelope
from .models import Response

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"


class ResponseTransformer:
    """Turns a handler result into a ``success: true`` envelope response.

    Status code and extra headers come from ``ctx.response``, which the
    handler may have adjusted. This is only ever called for requests that
    reached the handler and returned normally; failures belong to the
    error handler.
    """

    def transform(self, ctx: RequestContext, result: Any) -> Response:
        if ctx.request_id is None:
            ctx.request_id = new_request_id()

        envelope = Envelope.ok(result, request_id=ctx.request_id)
        headers = ctx.response.headers.copy()
        return Response(
            int(ctx.response.status_code),
            envelope.to_json(),
            headers=headers,
            content_type=JSON_CONTENT_TYPE,
        )
