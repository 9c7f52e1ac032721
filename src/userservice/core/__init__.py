"""
Socket-level plumbing: the accept loop, per-connection request reading,
and the worker threads that service connections.
"""

from .connection import Connection, ConnectionState
from .socket_server import SocketServer
from .worker_pool import WorkerPool

__all__ = [
    "Connection",
    "ConnectionState",
    "SocketServer",
    "WorkerPool",
]
