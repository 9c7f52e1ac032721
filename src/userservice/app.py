"""
Application factory: one repository, one users handler, routes and the
access log, assembled into an HTTPServer.

    server = create_app(ServerConfig(port=3001))
    server.run()

Passing a repository in lets a caller (or a test) keep a handle on the data
the server mutates.
"""

from typing import Optional

from .config import ServerConfig
from .handlers import UsersHandler
from .middleware import LoggingMiddleware
from .repository import UserRepository
from .server import HTTPServer


USERS_ROUTES = (
    ("/users", "users"),
    ("/users/:id", "user"),
    ("/users/:id/*rest", "user_subpath"),
    # "/users//x": empty id segment, handled as no id
    ("/users/*rest", "users_subpath"),
)


def create_app(
    config: Optional[ServerConfig] = None,
    repository: Optional[UserRepository] = None,
) -> HTTPServer:
    """
    Build a ready-to-run user service.

    Args:
        config: Server settings; ServerConfig() defaults when omitted.
        repository: Store to serve; a fresh empty one when omitted.

    Returns:
        The HTTPServer. Nothing is bound until run() is called.
    """
    server = HTTPServer(config)
    server.use(LoggingMiddleware())

    users = UsersHandler(repository if repository is not None else UserRepository())
    for pattern, name in USERS_ROUTES:
        server.router.add_route(pattern, users.handle, name=name)

    return server
