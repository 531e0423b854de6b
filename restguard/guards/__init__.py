"""
Capability guards and the factory turning route requirements into guard chains.
"""

import time
from typing import TYPE_CHECKING, Any, List, Optional

from ..requirements import RateLimit, RequireAuth, ValidateSchema
from .auth import AuthGuard, extract_bearer_token
from .base import Guard, maybe_await
from .rate_limit import Clock, InMemoryRateLimitStore, RateLimitGuard, RateLimitStore, client_identity
from .validation import SchemaValidatorGuard, parse_json_body

if TYPE_CHECKING:
    from restguard.auth import TokenService
    from restguard.router import Route


class GuardFactory:
    """Builds guards for route requirements from explicitly passed collaborators."""

    def __init__(
        self,
        rate_limit_store: Optional[RateLimitStore] = None,
        token_service: Optional['TokenService'] = None,
        clock: Clock = time.time,
        trust_forwarded: bool = False,
    ):
        self.clock = clock
        self.rate_limit_store = rate_limit_store or InMemoryRateLimitStore(clock=clock)
        self.token_service = token_service
        self.trust_forwarded = trust_forwarded

    def build(self, requirement: Any) -> Guard:
        """Build the guard enforcing ``requirement``.

        Guard instances are passed through unchanged.

        Raises:
            ValueError: For unknown requirements, or RequireAuth without a token service
        """
        if isinstance(requirement, Guard):
            return requirement
        if isinstance(requirement, RateLimit):
            return RateLimitGuard(requirement, self.rate_limit_store, self.clock, self.trust_forwarded)
        if isinstance(requirement, RequireAuth):
            if self.token_service is None:
                raise ValueError("RequireAuth needs a token service")
            return AuthGuard(self.token_service)
        if isinstance(requirement, ValidateSchema):
            return SchemaValidatorGuard(requirement)
        raise ValueError(f"Unknown requirement: {requirement!r}")

    def build_chain(self, route: 'Route') -> List[Guard]:
        """Guards for ``route`` in declaration order."""
        return [self.build(requirement) for requirement in route.requirements]


__all__ = [
    "AuthGuard",
    "Clock",
    "Guard",
    "GuardFactory",
    "InMemoryRateLimitStore",
    "RateLimitGuard",
    "RateLimitStore",
    "SchemaValidatorGuard",
    "client_identity",
    "extract_bearer_token",
    "maybe_await",
    "parse_json_body",
]
