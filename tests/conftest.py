"""
Shared fixtures for the restguard test suite.
"""

import pytest

from restguard import (
    FieldSpec,
    InMemoryRepository,
    InvalidCredentialsError,
    JWTTokenService,
    MemorySink,
    Pbkdf2PasswordHasher,
    RateLimit,
    RequireAuth,
    RestGuardApp,
    Settings,
    Target,
    ValidateSchema,
)
from tests.helpers import SECRET, FakeClock


def pytest_configure(config):
    """Configure pytest-anyio to use only asyncio backend (trio not installed)."""
    config.option.anyio_backends = ["asyncio"]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sink():
    return MemorySink()


@pytest.fixture
def token_service(clock):
    return JWTTokenService(SECRET, ttl_seconds=3600, clock=clock)


@pytest.fixture
def hasher():
    # Low iteration count keeps the suite fast
    return Pbkdf2PasswordHasher(iterations=1000)


@pytest.fixture
def users():
    return InMemoryRepository("user", unique_fields=["username"])


@pytest.fixture
async def app(clock, sink, token_service, hasher, users):
    """A small API with login, a rate-limited ping and a protected route."""
    await users.create({
        "id": "1",
        "username": "admin",
        "role": "admin",
        "password_hash": hasher.hash("password"),
    })

    app = RestGuardApp(Settings(), token_service=token_service, log_sink=sink, clock=clock)

    login_schema = ValidateSchema(Target.BODY, {
        "username": FieldSpec(min_length=1),
        "password": FieldSpec(min_length=6),
    })

    @app.post("/login", requires=[RateLimit("login", 60, 5), login_schema])
    async def login(ctx):
        data = ctx.validated("body")
        user = await users.find_by("username", data["username"])
        if user is None or not hasher.verify(data["password"], user["password_hash"]):
            raise InvalidCredentialsError()
        token = token_service.issue({"sub": user["id"], "role": user["role"]})
        return {"token": token, "user": {"id": user["id"], "username": user["username"], "role": user["role"]}}

    @app.get("/ping", requires=[RateLimit("ping", 1, 20)])
    def ping(ctx):
        return {"pong": True}

    @app.get("/me", requires=[RequireAuth()])
    def me(ctx):
        return {"subject": ctx.identity.subject, "role": ctx.identity.role}

    app.startup()
    return app
