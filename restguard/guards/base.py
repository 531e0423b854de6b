"""
Base class for pipeline guards.
"""

import inspect
from abc import ABC, abstractmethod
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from restguard.context import RequestContext


class Guard(ABC):
    """A pipeline stage that passes, annotates, or short-circuits a request.

    A guard short-circuits by raising an :class:`~restguard.exceptions.ApiError`.
    Returning normally lets the request continue to the next guard.
    """

    @abstractmethod
    async def check(self, ctx: 'RequestContext') -> None:
        """Inspect (and possibly annotate) ``ctx``.

        Raises:
            ApiError: To end the chain with an error response
        """
        pass

    @property
    def name(self) -> str:
        """Guard name for logging and debugging."""
        return self.__class__.__name__

    def __repr__(self) -> str:
        return f"<{self.name}>"


async def maybe_await(value: Any) -> Any:
    """Await ``value`` if it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value
