"""Tests for the CORS stage."""

import pytest

from restguard import CORSConfig, RestGuardApp, Settings, UnauthorizedError
from tests.helpers import make_request

pytestmark = pytest.mark.anyio

ORIGIN = "https://app.example.com"


def build_app(cors):
    app = RestGuardApp(Settings(), cors=cors)

    @app.get("/users")
    def list_users(ctx):
        return []

    @app.post("/users")
    def create_user(ctx):
        return {}

    @app.get("/private")
    def private(ctx):
        raise UnauthorizedError()

    return app


def preflight(path="/users", origin=ORIGIN):
    return make_request("OPTIONS", path, headers={
        "Origin": origin,
        "Access-Control-Request-Method": "POST",
    })


class TestCORSConfig:

    def test_wildcard_with_credentials_rejected(self):
        with pytest.raises(ValueError):
            CORSConfig(origins="*", credentials=True)

    def test_single_origin_string_becomes_list(self):
        assert CORSConfig(origins=ORIGIN).origins == [ORIGIN]

    def test_matches_origin(self):
        config = CORSConfig(origins=[ORIGIN])
        assert config.matches_origin(ORIGIN)
        assert not config.matches_origin("https://evil.example.com")


class TestPreflight:
    """OPTIONS preflights are answered before routing."""

    async def test_preflight_lists_route_methods(self):
        app = build_app(CORSConfig(origins=[ORIGIN]))
        response = await app.handle(preflight())

        assert response.status_code == 204
        assert response.body == b""
        assert response.headers["Access-Control-Allow-Origin"] == ORIGIN
        assert response.headers["Access-Control-Allow-Methods"] == "GET, OPTIONS, POST"
        assert "Authorization" in response.headers["Access-Control-Allow-Headers"]
        assert response.headers["Access-Control-Max-Age"] == "86400"
        assert "Origin" in response.headers.get_all("Vary")
        assert response.headers["X-Request-ID"]

    async def test_preflight_from_disallowed_origin(self):
        app = build_app(CORSConfig(origins=[ORIGIN]))
        response = await app.handle(preflight(origin="https://evil.example.com"))

        assert response.status_code == 204
        assert "Access-Control-Allow-Origin" not in response.headers

    async def test_preflight_for_unknown_path_is_not_found(self):
        app = build_app(CORSConfig(origins=[ORIGIN]))
        response = await app.handle(preflight(path="/nothing"))
        assert response.status_code == 404

    async def test_credentials_header(self):
        app = build_app(CORSConfig(origins=[ORIGIN], credentials=True))
        response = await app.handle(preflight())
        assert response.headers["Access-Control-Allow-Credentials"] == "true"

    async def test_options_without_cors_config_is_not_found(self):
        app = build_app(None)
        response = await app.handle(preflight())
        assert response.status_code == 404


class TestActualRequests:

    async def test_allowed_origin_gets_headers(self):
        app = build_app(CORSConfig(origins=[ORIGIN]))
        response = await app.handle(make_request("GET", "/users", headers={"Origin": ORIGIN}))

        assert response.status_code == 200
        assert response.headers["Access-Control-Allow-Origin"] == ORIGIN
        assert "X-Request-ID" in response.headers["Access-Control-Expose-Headers"]

    async def test_wildcard_origin(self):
        app = build_app(CORSConfig(origins="*"))
        response = await app.handle(make_request("GET", "/users", headers={"Origin": ORIGIN}))
        assert response.headers["Access-Control-Allow-Origin"] == "*"
        assert "Vary" not in response.headers

    async def test_error_responses_get_cors_headers(self):
        app = build_app(CORSConfig(origins=[ORIGIN]))
        response = await app.handle(make_request("GET", "/private", headers={"Origin": ORIGIN}))

        assert response.status_code == 401
        assert response.headers["Access-Control-Allow-Origin"] == ORIGIN

    async def test_disallowed_origin_gets_no_headers(self):
        app = build_app(CORSConfig(origins=[ORIGIN]))
        response = await app.handle(make_request("GET", "/users", headers={"Origin": "https://evil.example.com"}))
        assert response.status_code == 200
        assert "Access-Control-Allow-Origin" not in response.headers

    async def test_settings_build_cors_config(self):
        app = RestGuardApp(Settings(cors_origins=[ORIGIN]))

        @app.get("/x")
        def x(ctx):
            return {}

        response = await app.handle(make_request("GET", "/x", headers={"Origin": ORIGIN}))
        assert response.headers["Access-Control-Allow-Origin"] == ORIGIN
