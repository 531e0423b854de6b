"""
Bearer token authentication guard.
"""

import logging
from typing import TYPE_CHECKING, Optional

from ..context import Identity
from ..exceptions import ApiError, UnauthorizedError
from .base import Guard, maybe_await

if TYPE_CHECKING:
    from restguard.auth import TokenService
    from restguard.context import RequestContext

logger = logging.getLogger(__name__)


def extract_bearer_token(header: Optional[str]) -> str:
    """Return the token from an ``Authorization: Bearer <token>`` header.

    Raises:
        UnauthorizedError: If the header is missing or not a bearer credential
    """
    if not header or not header.strip():
        raise UnauthorizedError("Missing bearer token")

    parts = header.strip().split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise UnauthorizedError("Malformed authorization header")
    return parts[1]


class AuthGuard(Guard):
    """Verifies the bearer token and attaches the caller's Identity.

    Verification is delegated to the token service, which raises
    TokenExpiredError or TokenInvalidError. Those propagate unchanged so that
    clients can tell "refresh" apart from "log in again".
    """

    def __init__(self, token_service: 'TokenService'):
        self.token_service = token_service

    async def check(self, ctx: 'RequestContext') -> None:
        token = extract_bearer_token(ctx.headers.get("authorization"))
        try:
            claims = await maybe_await(self.token_service.verify(token))
        except ApiError as e:
            logger.warning(f"Token rejected for {ctx.method} {ctx.path}: {e.kind.value}")
            raise

        ctx.identity = Identity.from_claims(claims)
        logger.debug(f"Authenticated subject '{ctx.identity.subject}' for {ctx.method} {ctx.path}")
