"""
Tests for the ASGI adapter.
"""

import json

import pytest

from restguard import RateLimit, RestGuardApp, Settings
from restguard.adapters import ASGIAdapter
from tests.helpers import FakeClock

pytestmark = pytest.mark.anyio


def http_scope(method="GET", path="/", headers=None, query_string=b"", client=("127.0.0.1", 9000)):
    return {
        "type": "http",
        "method": method,
        "path": path,
        "headers": headers or [],
        "query_string": query_string,
        "client": client,
    }


async def call(asgi_app, scope, chunks=(b"",)):
    """Run one request through the ASGI app and return (start, body) messages."""
    messages = [
        {"type": "http.request", "body": chunk, "more_body": i < len(chunks) - 1}
        for i, chunk in enumerate(chunks)
    ]
    sent = []

    async def receive():
        return messages.pop(0)

    async def send(message):
        sent.append(message)

    await asgi_app(scope, receive, send)
    assert len(sent) == 2
    return sent[0], sent[1]


@pytest.fixture
def api():
    app = RestGuardApp(Settings(), clock=FakeClock())

    @app.get("/items/{id}")
    def get_item(ctx):
        return {"id": ctx.path_params["id"], "q": ctx.query_params.get("q")}

    @app.post("/echo")
    def echo(ctx):
        return json.loads(ctx.body)

    @app.get("/whoami", requires=[RateLimit("whoami", 60, 1)])
    def whoami(ctx):
        return {"client": ctx.request.client_host}

    return app


class TestASGIAdapter:
    """Converting between ASGI messages and the pipeline."""

    async def test_asgi_wraps_the_app(self, api):
        asgi_app = api.asgi()
        assert isinstance(asgi_app, ASGIAdapter)
        assert asgi_app.app is api

    async def test_get_request(self, api):
        start, body = await call(api.asgi(), http_scope("GET", "/items/5", query_string=b"q=hello&q=ignored"))

        assert start["type"] == "http.response.start"
        assert start["status"] == 200
        headers = dict(start["headers"])
        assert headers[b"content-type"] == b"application/json"
        assert b"x-request-id" in headers

        payload = json.loads(body["body"])
        assert payload["data"] == {"id": "5", "q": "hello"}

    async def test_chunked_body_is_joined(self, api):
        start, body = await call(api.asgi(), http_scope("POST", "/echo"), chunks=(b'{"a":', b' 1}'))
        assert start["status"] == 200
        assert json.loads(body["body"])["data"] == {"a": 1}

    async def test_not_found_envelope(self, api):
        start, body = await call(api.asgi(), http_scope("GET", "/missing"))
        assert start["status"] == 404
        assert json.loads(body["body"])["success"] is False

    async def test_head_request_has_no_body(self, api):
        # No HEAD route is registered; the error body is still dropped
        start, body = await call(api.asgi(), http_scope("HEAD", "/items/5"))
        assert start["status"] == 404
        assert body["body"] == b""

    async def test_client_address_feeds_rate_limit(self, api):
        asgi_app = api.asgi()
        first, _ = await call(asgi_app, http_scope("GET", "/whoami", client=("10.1.1.1", 1)))
        other, _ = await call(asgi_app, http_scope("GET", "/whoami", client=("10.1.1.2", 1)))
        again, _ = await call(asgi_app, http_scope("GET", "/whoami", client=("10.1.1.1", 2)))

        assert (first["status"], other["status"], again["status"]) == (200, 200, 429)
        assert dict(again["headers"])[b"retry-after"] == b"20"

    async def test_headers_are_case_insensitive(self, api):
        @api.get("/agent")
        def agent(ctx):
            return {"agent": ctx.headers.get("User-Agent")}

        _, body = await call(api.asgi(), http_scope("GET", "/agent", headers=[(b"user-agent", b"pytest")]))
        assert json.loads(body["body"])["data"] == {"agent": "pytest"}

    async def test_disconnect_mid_body_is_not_dispatched(self, api):
        received = []

        @api.post("/upload", requires=[RateLimit("upload", 60, 1)])
        def upload(ctx):
            received.append(ctx.body)
            return {}

        messages = [
            {"type": "http.request", "body": b'{"name": "par', "more_body": True},
            {"type": "http.disconnect"},
        ]
        sent = []

        async def receive():
            return messages.pop(0)

        async def send(message):
            sent.append(message)

        asgi_app = api.asgi()
        await asgi_app(http_scope("POST", "/upload"), receive, send)

        assert sent == []
        assert received == []

        # The dropped request did not use up the window
        start, _ = await call(asgi_app, http_scope("POST", "/upload"), chunks=(b"{}",))
        assert start["status"] == 200


class TestLifespan:

    async def test_startup_freezes_registry(self, api):
        messages = [{"type": "lifespan.startup"}, {"type": "lifespan.shutdown"}]
        sent = []

        async def receive():
            return messages.pop(0)

        async def send(message):
            sent.append(message)

        await ASGIAdapter(api)({"type": "lifespan"}, receive, send)

        assert [m["type"] for m in sent] == ["lifespan.startup.complete", "lifespan.shutdown.complete"]
        assert api.registry.frozen

    async def test_unsupported_scope_is_ignored(self, api):
        sent = []

        async def receive():
            return {}

        async def send(message):
            sent.append(message)

        await ASGIAdapter(api)({"type": "websocket"}, receive, send)
        assert sent == []
