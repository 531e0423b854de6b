"""
Fixed-window rate limiting.

Algorithm: Fixed Window Counter
    1. The window index is ``floor(now / window_seconds)``
    2. Each (limit key, client identity) bucket keeps (window index, count)
    3. A hit in a new window resets the count to 1, otherwise increments it
    4. If the new count exceeds the limit the request is rejected with 429

    A client can send up to 2x the limit across a window boundary (end of one
    window plus start of the next). This is accepted in exchange for O(1)
    memory per bucket.
"""

import logging
import math
import threading
import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Callable, Dict, Optional, Tuple

from ..exceptions import RateLimitExceededError
from ..requirements import RateLimit
from .base import Guard, maybe_await

if TYPE_CHECKING:
    from restguard.context import RequestContext

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class RateLimitStore(ABC):
    """Shared counter storage for rate-limit windows.

    ``hit`` must increment and return the new count atomically, so concurrent
    requests can never both observe the pre-increment value.
    """

    @abstractmethod
    def hit(self, bucket: str, window: int, expires_at: float):
        """Count one request for ``bucket`` in ``window`` and return the new count.

        May be a coroutine function for stores backed by network I/O.
        """
        pass


class InMemoryRateLimitStore(RateLimitStore):
    """Process-local store guarded by a single lock.

    Safe for one process, including ASGI servers running sync code in thread
    pools. Multi-process deployments need a shared store (e.g. Redis INCR with
    a TTL) implementing :class:`RateLimitStore`.
    """

    # Evict expired buckets every N hits
    CLEANUP_INTERVAL = 1000

    def __init__(self, clock: Clock = time.time):
        self._clock = clock
        self._lock = threading.Lock()
        # bucket -> (window index, count, expires_at)
        self._windows: Dict[str, Tuple[int, int, float]] = {}
        self._hits_since_cleanup = 0

    def hit(self, bucket: str, window: int, expires_at: float) -> int:
        with self._lock:
            current = self._windows.get(bucket)
            if current is None or current[0] != window:
                count = 1
            else:
                count = current[1] + 1
            self._windows[bucket] = (window, count, expires_at)

            self._hits_since_cleanup += 1
            if self._hits_since_cleanup >= self.CLEANUP_INTERVAL:
                self._hits_since_cleanup = 0
                self._evict_expired()
            return count

    def count(self, bucket: str, window: int) -> int:
        """Current count for ``bucket`` in ``window`` (0 if none)."""
        with self._lock:
            current = self._windows.get(bucket)
            if current is None or current[0] != window:
                return 0
            return current[1]

    def _evict_expired(self) -> None:
        now = self._clock()
        expired = [bucket for bucket, (_, _, expires_at) in self._windows.items() if expires_at <= now]
        for bucket in expired:
            del self._windows[bucket]
        if expired:
            logger.debug(f"Evicted {len(expired)} expired rate-limit windows")

    def __len__(self) -> int:
        return len(self._windows)


def client_identity(ctx: 'RequestContext', trust_forwarded: bool = False) -> str:
    """Default identity: the client address.

    When ``trust_forwarded`` is set the first ``X-Forwarded-For`` hop is used,
    which is only correct behind a proxy that overwrites that header.
    """
    if trust_forwarded:
        forwarded = ctx.headers.get("x-forwarded-for")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first
    host = ctx.request.client_host
    return host or "unknown"


class RateLimitGuard(Guard):
    """Rejects requests once a fixed-window counter exceeds the limit."""

    def __init__(
        self,
        limit: RateLimit,
        store: RateLimitStore,
        clock: Clock = time.time,
        trust_forwarded: bool = False,
    ):
        self.limit = limit
        self.store = store
        self.clock = clock
        self.trust_forwarded = trust_forwarded

    def identify(self, ctx: 'RequestContext') -> str:
        if self.limit.identify is not None:
            return self.limit.identify(ctx)
        return client_identity(ctx, self.trust_forwarded)

    async def check(self, ctx: 'RequestContext') -> None:
        now = self.clock()
        window_seconds = self.limit.window_seconds
        window = int(now // window_seconds)
        expires_at = (window + 1) * window_seconds
        identity = self.identify(ctx)
        bucket = f"{self.limit.key}:{identity}"

        count = await maybe_await(self.store.hit(bucket, window, expires_at))

        if count > self.limit.max_requests:
            retry_after = self.retry_after(now)
            logger.warning(
                f"Rate limit '{self.limit.key}' exceeded for {identity}: "
                f"{count} requests in {window_seconds}s window"
            )
            raise RateLimitExceededError(retry_after)

    def retry_after(self, now: Optional[float] = None) -> int:
        """Seconds until the current window ends."""
        now = self.clock() if now is None else now
        window_seconds = self.limit.window_seconds
        expires_at = (int(now // window_seconds) + 1) * window_seconds
        return max(1, math.ceil(expires_at - now))
