"""Route registry, route matching and mountable routers."""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from .exceptions import DuplicateRouteError, RegistryFrozenError
from .models import HTTPMethod

logger = logging.getLogger(__name__)


def split_path(path: str) -> List[str]:
    return [s for s in path.split('/') if s]


def parse_param(segment: str) -> Optional[str]:
    """Return the parameter name for ``{name}`` or ``:name`` segments, else None."""
    if segment.startswith('{') and segment.endswith('}') and len(segment) > 2:
        return segment[1:-1]
    if segment.startswith(':') and len(segment) > 1:
        return segment[1:]
    return None


@dataclass(frozen=True, eq=False)
class Route:
    """An immutable route definition.

    Attributes:
        method: HTTP method
        pattern: Path pattern, e.g. ``/users/{id}`` or ``/users/:id``
        handler: Callable receiving the RequestContext, sync or async
        requirements: Ordered capability requirements (or Guard instances)
        name: Optional human-readable name used in logs
    """

    method: HTTPMethod
    pattern: str
    handler: Callable[..., Any]
    requirements: Tuple[Any, ...] = ()
    name: Optional[str] = None
    param_names: Tuple[str, ...] = field(init=False, default=())

    def __post_init__(self):
        object.__setattr__(self, "method", HTTPMethod.parse(self.method) or _unknown_method(self.method))
        object.__setattr__(self, "requirements", tuple(self.requirements))
        names = [name for name in (parse_param(s) for s in split_path(self.pattern)) if name is not None]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate path parameter name in pattern '{self.pattern}'")
        object.__setattr__(self, "param_names", tuple(names))
        if self.name is None:
            object.__setattr__(self, "name", getattr(self.handler, "__name__", None))


def _unknown_method(method: Any) -> HTTPMethod:
    raise ValueError(f"Unsupported HTTP method: {method!r}")


@dataclass(frozen=True)
class RouteMatch:
    """A matched route and its bound path parameters."""

    route: Route
    params: Dict[str, str]


class RouteNode:
    """A node in the route trie structure.

    Each node represents a path segment and can have:
    - static_children: Dict mapping exact segment strings to child nodes
    - param_child: Single child node for any parameter segment at this position
    - routes: Dict mapping HTTP methods to the Route ending at this node

    Parameter names are not stored in the trie; they belong to the route, so
    ``/users/{id}`` and ``/users/{user_id}/posts`` share the same param node.
    """

    def __init__(self):
        self.static_children: Dict[str, "RouteNode"] = {}
        self.param_child: Optional["RouteNode"] = None
        self.routes: Dict[HTTPMethod, Route] = {}

    def add_route(self, segments: List[str], route: Route) -> None:
        """Add a route to the trie.

        Raises:
            DuplicateRouteError: If the same method and pattern shape already exists
        """
        if not segments:
            existing = self.routes.get(route.method)
            if existing is not None:
                raise DuplicateRouteError(route.method.value, route.pattern)
            self.routes[route.method] = route
            return

        segment = segments[0]
        remaining = segments[1:]

        if parse_param(segment) is not None:
            if self.param_child is None:
                self.param_child = RouteNode()
            self.param_child.add_route(remaining, route)
        else:
            if segment not in self.static_children:
                self.static_children[segment] = RouteNode()
            self.static_children[segment].add_route(remaining, route)

    def match(self, segments: List[str], method: HTTPMethod) -> Optional[Tuple[Route, List[str]]]:
        """Match a path against the trie.

        Every route matching ``segments`` is collected and the one with the
        most literal segments wins. Ties go to the candidate found first,
        i.e. the one whose left-most differing segment is literal.

        Returns:
            Tuple of (Route, bound parameter values in path order) if matched, None otherwise
        """
        best = None
        for candidate in self.candidates(segments, method):
            if best is None or candidate[2] > best[2]:
                best = candidate
        if best is None:
            return None
        route, values, _ = best
        return (route, values)

    def candidates(
        self, segments: List[str], method: HTTPMethod, literals: int = 0
    ) -> Iterator[Tuple[Route, List[str], int]]:
        """Yield ``(route, param values, literal count)`` for every route matching ``segments``.

        Literal children are visited before the parameter child at each position.
        """
        if not segments:
            route = self.routes.get(method)
            if route is not None:
                yield (route, [], literals)
            return

        segment = segments[0]
        remaining = segments[1:]

        child = self.static_children.get(segment)
        if child is not None:
            yield from child.candidates(remaining, method, literals + 1)

        if self.param_child is not None:
            for route, values, count in self.param_child.candidates(remaining, method, literals):
                yield (route, [segment] + values, count)

    def methods(self, segments: List[str]) -> List[HTTPMethod]:
        """Return every method with a route reachable for ``segments``."""
        if not segments:
            return list(self.routes)

        found: List[HTTPMethod] = []
        child = self.static_children.get(segments[0])
        if child is not None:
            found.extend(child.methods(segments[1:]))
        if self.param_child is not None:
            found.extend(self.param_child.methods(segments[1:]))
        return found


class RouteRegistry:
    """Stores routes and resolves requests to them.

    The registry is writable during application setup and frozen once the
    application starts serving; after that it is only read.
    """

    def __init__(self):
        self._tree = RouteNode()
        self._routes: List[Route] = []
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        self._frozen = True

    def register(self, route: Route) -> Route:
        """Register a route.

        Raises:
            DuplicateRouteError: If an identical method + pattern exists
            RegistryFrozenError: If called after the registry was frozen
        """
        if self._frozen:
            raise RegistryFrozenError(f"Cannot register {route.method.value} {route.pattern}: registry is frozen")
        self._tree.add_route(split_path(route.pattern), route)
        self._routes.append(route)
        logger.debug(f"Registered route {route.method.value} {route.pattern}")
        return route

    def match(self, method: Union[str, HTTPMethod], path: str) -> Optional[RouteMatch]:
        """Return the most specific route for ``method`` and ``path``, or None.

        A miss is a normal outcome, not an error.
        """
        http_method = HTTPMethod.parse(method)
        if http_method is None:
            return None
        result = self._tree.match(split_path(path), http_method)
        if result is None:
            return None
        route, values = result
        return RouteMatch(route=route, params=dict(zip(route.param_names, values)))

    def has_path(self, path: str) -> bool:
        """Check if any route exists at the given path (regardless of method)."""
        return bool(self._tree.methods(split_path(path)))

    def methods_for_path(self, path: str) -> List[str]:
        """Get all HTTP methods that have routes at this path, sorted."""
        methods = set(self._tree.methods(split_path(path)))
        if methods:
            methods.add(HTTPMethod.OPTIONS)
        return sorted(m.value for m in methods)

    @property
    def routes(self) -> List[Route]:
        return list(self._routes)

    def __len__(self) -> int:
        return len(self._routes)


def normalize_path(prefix: str, path: str) -> str:
    """Normalize a path by combining prefix and path, handling double slashes.

    Examples:
        normalize_path("/", "/users") -> "/users"
        normalize_path("/api", "users") -> "/api/users"
        normalize_path("/api/", "/users") -> "/api/users"
    """
    if not prefix.startswith('/'):
        prefix = '/' + prefix

    # Remove trailing slash from prefix unless it's just "/"
    if prefix != '/' and prefix.endswith('/'):
        prefix = prefix.rstrip('/')

    if not path.startswith('/'):
        path = '/' + path

    if prefix == '/':
        return path

    return prefix + path


class Router:
    """Collects route definitions so they can be mounted under a prefix.

    Routers are used for grouping, e.g. versioned APIs::

        v1 = Router(requires=[RateLimit("v1", 60, 100)])

        @v1.get("/users/{id}")
        def get_user(ctx):
            ...

        app.mount("/api/v1", v1)

    ``requires`` given to the router are prepended to each route's own
    requirements, keeping declaration order.
    """

    def __init__(self, requires: Sequence[Any] = ()):
        self.requires: Tuple[Any, ...] = tuple(requires)
        self._routes: List[Route] = []
        self._mounted_routers: List[Tuple[str, "Router"]] = []

    def add_route(
        self,
        method: Union[str, HTTPMethod],
        path: str,
        handler: Callable[..., Any],
        requires: Sequence[Any] = (),
        name: Optional[str] = None,
    ) -> Route:
        route = Route(method=method, pattern=path, handler=handler, requirements=tuple(requires), name=name)
        self._routes.append(route)
        return route

    def mount(self, prefix: str, router: "Router") -> None:
        """Mount another router with a given prefix."""
        self._mounted_routers.append((prefix, router))

    def get_all_routes(self, prefix: str = "/", inherited: Tuple[Any, ...] = ()) -> List[Route]:
        """Get all routes from this router and mounted routers with full paths."""
        requires = inherited + self.requires
        routes = [
            Route(
                method=route.method,
                pattern=normalize_path(prefix, route.pattern),
                handler=route.handler,
                requirements=requires + route.requirements,
                name=route.name,
            )
            for route in self._routes
        ]

        for mount_prefix, mounted_router in self._mounted_routers:
            combined_prefix = normalize_path(prefix, mount_prefix)
            routes.extend(mounted_router.get_all_routes(combined_prefix, requires))

        return routes

    def get(self, path: str, requires: Sequence[Any] = ()):
        """Decorator to register a GET route handler."""
        return self._route_decorator(HTTPMethod.GET, path, requires)

    def post(self, path: str, requires: Sequence[Any] = ()):
        """Decorator to register a POST route handler."""
        return self._route_decorator(HTTPMethod.POST, path, requires)

    def put(self, path: str, requires: Sequence[Any] = ()):
        """Decorator to register a PUT route handler."""
        return self._route_decorator(HTTPMethod.PUT, path, requires)

    def delete(self, path: str, requires: Sequence[Any] = ()):
        """Decorator to register a DELETE route handler."""
        return self._route_decorator(HTTPMethod.DELETE, path, requires)

    def patch(self, path: str, requires: Sequence[Any] = ()):
        """Decorator to register a PATCH route handler."""
        return self._route_decorator(HTTPMethod.PATCH, path, requires)

    def _route_decorator(self, method: HTTPMethod, path: str, requires: Sequence[Any]):
        def decorator(func: Callable):
            self.add_route(method, path, func, requires)
            return func

        return decorator
