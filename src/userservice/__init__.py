"""
=============================================================================
USERSERVICE
=============================================================================

A small HTTP/1.1 JSON service managing an in-memory collection of users.

    GET    /users          list
    GET    /users/:id      fetch one
    POST   /users          create
    PUT    /users/:id      replace
    DELETE /users/:id      remove

Quick start:

    python -m userservice --port 3001

or from code:

    from userservice import ServerConfig, create_app
    create_app(ServerConfig(port=3001)).run()

=============================================================================
"""

__version__ = "1.0.0"

from .app import create_app
from .config import ServerConfig
from .models import User, UserDraft
from .repository import UserRepository
from .server import HTTPServer

__all__ = [
    "HTTPServer",
    "ServerConfig",
    "User",
    "UserDraft",
    "UserRepository",
    "create_app",
    "__version__",
]
