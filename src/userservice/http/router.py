"""
=============================================================================
URL ROUTER
=============================================================================

Maps a request path (and optionally method) to a handler function.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ROUTING FLOW                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   PUT /users/7                                                      │
    │        │                                                            │
    │        ▼                                                            │
    │   ┌──────────────────────────────────────────────────────────────┐  │
    │   │ ANY  /users              → UsersHandler.handle               │  │
    │   │ ANY  /users/:id          → UsersHandler.handle   ← MATCH     │  │
    │   │ ANY  /users/:id/*rest    → UsersHandler.handle               │  │
    │   │ ANY  /users/*rest        → UsersHandler.handle               │  │
    │   └──────────────────────────────────────────────────────────────┘  │
    │        │                                                            │
    │        ▼                                                            │
    │   request.path_params = {"id": "7"}                                 │
    │   UsersHandler.handle(request)                                      │
    │                                                                     │
    │   No match at all → 404 {"error": "Not Found"}                      │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

Patterns:

    /users            static segment, exact match
    /users/:id        ":name" captures one non-empty segment
    /users/:id/*rest  "*name" captures the remainder, slashes included

Trailing slashes are dropped before matching ("/users/" is "/users").
Nothing else is normalized and nothing is percent-decoded.

Routes are compiled to anchored regexes and tried in registration order;
first match wins.

=============================================================================
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from .request import HTTPRequest
from .response import HTTPResponse, method_not_allowed, not_found


logger = logging.getLogger(__name__)


Handler = Callable[[HTTPRequest], HTTPResponse]


def compile_pattern(path: str) -> Tuple[re.Pattern, List[str]]:
    """
    Route pattern → anchored regex and the names it captures.

        /users/:id/*rest  →  ^/users/(?P<id>[^/]+)/(?P<rest>.*)$
    """
    names: List[str] = []
    regex = ""

    for segment in filter(None, path.split("/")):
        if segment[0] == ":":
            names.append(segment[1:])
            regex += f"/(?P<{segment[1:]}>[^/]+)"
        elif segment[0] == "*":
            names.append(segment[1:] or "wildcard")
            regex += f"/(?P<{names[-1]}>.*)"
            break
        else:
            regex += "/" + re.escape(segment)

    return re.compile(f"^{regex or '/'}$"), names


@dataclass
class Route:
    """A registered pattern → handler binding."""

    path: str                        # pattern, e.g. /users/:id
    method: Optional[str]            # None = any method
    handler: Handler
    name: Optional[str] = None
    regex: re.Pattern = field(init=False, repr=False)
    param_names: List[str] = field(init=False, repr=False)

    def __post_init__(self):
        if self.method:
            self.method = self.method.upper()
        self.regex, self.param_names = compile_pattern(self.path)

    def accepts(self, method: str) -> bool:
        return self.method is None or self.method == method.upper()

    def capture(self, path: str) -> Optional[Dict[str, str]]:
        """Path params if the (normalized) path fits the pattern."""
        found = self.regex.match(path)
        return found.groupdict() if found else None


@dataclass
class RouteMatch:
    """The route that matched plus the captured path parameters."""

    route: Route
    params: Dict[str, str]


class Router:
    """
    Request router with ":param" and "*wildcard" segments.

        router = Router()
        router.add_route("/users/:id", users.handle)           # any method
        router.add_route("/status", status, method="GET")     # GET only
    """

    def __init__(self):
        self._routes: List[Route] = []

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Route:
        """
        Register a route.

        Args:
            path: URL pattern (e.g. /users/:id).
            handler: Callable taking an HTTPRequest, returning an HTTPResponse.
            method: HTTP method to restrict to; None accepts every method and
                    leaves method dispatch to the handler.
            name: Optional route name.
        """
        route = Route(path=path, method=method, handler=handler, name=name)
        self._routes.append(route)
        logger.debug(f"Registered route {route.method or 'ANY'} {route.path}")
        return route

    @staticmethod
    def _normalize(path: str) -> str:
        return path.rstrip("/") or "/"

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """First route whose method and pattern both accept the request."""
        path = self._normalize(path)

        for route in self._routes:
            if not route.accepts(method):
                continue
            params = route.capture(path)
            if params is not None:
                return RouteMatch(route=route, params=params)

        return None

    def get_allowed_methods(self, path: str) -> List[str]:
        """Methods registered for a path (feeds the Allow header on 405)."""
        path = self._normalize(path)
        return sorted({
            route.method for route in self._routes
            if route.method and route.capture(path) is not None
        })

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Dispatch a request.

        1. match → inject path_params → call the handler
        2. path known under other methods → 405
        3. otherwise → 404 {"error": "Not Found"}
        """
        match = self.match(request.method, request.path)
        if match:
            request.path_params = match.params
            return match.route.handler(request)

        allowed = self.get_allowed_methods(request.path)
        if allowed:
            return method_not_allowed(allowed)
        return not_found("Not Found")

    def describe(self) -> List[str]:
        """One "METHOD  /pattern" line per route, for the startup log."""
        return [f"{route.method or 'ANY':8} {route.path}" for route in self._routes]
