#!/usr/bin/env python3
"""
Basic HTTP Server Example for restguard

A small user API with login, a protected profile route and user listing,
served with Uvicorn.

Run with:
    RESTGUARD_JWT_SECRET=change-me python examples/basic_server_example.py

Then:
    curl -X POST localhost:8000/auth/login -d '{"username": "admin", "password": "password"}'
    curl localhost:8000/api/v1/me -H "Authorization: Bearer <token>"
"""

import asyncio
import sys

from restguard import (
    FieldSpec,
    InMemoryRepository,
    InvalidCredentialsError,
    Pbkdf2PasswordHasher,
    RateLimit,
    RequireAuth,
    RestGuardApp,
    Router,
    Settings,
    Target,
    ValidateSchema,
)
from restguard.observability import configure_logging
from restguard.servers import serve


def create_app(settings: Settings) -> RestGuardApp:
    """Create the demo application."""
    app = RestGuardApp(settings)
    hasher = Pbkdf2PasswordHasher()
    users = InMemoryRepository("user", unique_fields=["username"])

    asyncio.run(users.create({
        "id": "1",
        "username": "admin",
        "role": "admin",
        "password_hash": hasher.hash("password"),
    }))

    def public(user):
        return {key: value for key, value in user.items() if key != "password_hash"}

    auth = Router()

    @auth.post("/login", requires=[
        RateLimit("login", window_seconds=60, max_requests=5),
        ValidateSchema(Target.BODY, {
            "username": FieldSpec(min_length=1),
            "password": FieldSpec(min_length=6),
        }),
    ])
    async def login(ctx):
        credentials = ctx.validated("body")
        user = await users.find_by("username", credentials["username"])
        if user is None or not hasher.verify(credentials["password"], user["password_hash"]):
            raise InvalidCredentialsError()
        token = app.token_service.issue({"sub": user["id"], "role": user["role"]})
        return {"token": token, "user": public(user)}

    api = Router(requires=[RateLimit("api", window_seconds=1, max_requests=20), RequireAuth()])

    @api.get("/me")
    async def me(ctx):
        return public(await users.find(ctx.identity.subject))

    @api.get("/users", requires=[
        ValidateSchema(Target.QUERY, {
            "limit": FieldSpec(type="integer", required=False, minimum=1, maximum=100),
            "offset": FieldSpec(type="integer", required=False, minimum=0),
        }),
    ])
    async def list_users(ctx):
        query = ctx.validated("query")
        found = await users.list(limit=query.get("limit"), offset=query.get("offset", 0))
        return [public(user) for user in found]

    app.mount("/auth", auth)
    app.mount("/api/v1", api)
    return app


if __name__ == "__main__":
    settings = Settings.from_env()
    if not settings.jwt_secret:
        print("Set RESTGUARD_JWT_SECRET to run this example", file=sys.stderr)
        sys.exit(1)

    configure_logging(settings.log_level)
    serve(create_app(settings))
