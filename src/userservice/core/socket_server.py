"""
=============================================================================
TCP SOCKET SERVER
=============================================================================

The accept loop underneath HTTPServer.

    socket() → setsockopt() → bind() → listen() → accept() loop
                                                      │
                                                      ▼
                                         connection_handler(conn)
                                         (HTTPServer hands it to a worker)

The listening socket has a 1 second timeout so the loop wakes up regularly
and notices shutdown() even when nobody connects.

`address` reports what getsockname() returned after bind(), not what was
asked for.

=============================================================================
"""

import logging
import signal
import socket
import threading
from typing import Any, Callable, Dict, Optional, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


# accept() wakes this often to notice shutdown()
ACCEPT_POLL_INTERVAL = 1.0


class SocketServer:
    """
    Owns the listening socket and the accept loop.

        server = SocketServer(config)
        server.start(handle_connection)   # blocks until shutdown()
    """

    def __init__(self, config: ServerConfig):
        self.config = config
        self._listener: Optional[socket.socket] = None
        self._accepting = False
        self._bound: Optional[Tuple[str, int]] = None
        self._listening = threading.Event()
        self._previous_handlers: Dict[int, Any] = {}

    @property
    def is_running(self) -> bool:
        return self._accepting

    @property
    def address(self) -> Tuple[str, int]:
        """The (host, port) actually bound, or the configured one before start."""
        return self._bound or (self.config.host, self.config.port)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(
        self,
        connection_handler: Callable[[Connection], None],
        on_listening: Optional[Callable[[Tuple[str, int]], None]] = None,
    ):
        """
        Bind, listen and accept until shutdown() is called.

        Args:
            connection_handler: Called with every accepted Connection. It
                must not block for long; HTTPServer queues the connection
                for a worker and returns.
            on_listening: Called once with the bound (host, port) before the
                first accept.

        Raises:
            OSError: If the address cannot be bound.
        """
        self._listener = self._bind()
        self._bound = self._listener.getsockname()[:2]
        self._accepting = True
        self._install_signal_handlers()
        self._listening.set()
        logger.debug(f"Listening on {self._bound[0]}:{self._bound[1]}")

        try:
            if on_listening:
                on_listening(self._bound)
            self._serve(connection_handler)
        finally:
            self._close_listener()

    def shutdown(self):
        """Stop the accept loop. Idempotent and safe from any thread."""
        if self._accepting:
            logger.info("Stopping accept loop")
        self._accepting = False

    def wait_until_listening(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is bound and listening. True on success."""
        return self._listening.wait(timeout)

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _bind(self) -> socket.socket:
        host, port = self.config.host, self.config.port
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        listener.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        listener.settimeout(ACCEPT_POLL_INTERVAL)

        try:
            listener.bind((host, port))
            listener.listen(self.config.backlog)
        except OSError as e:
            logger.error(f"Cannot listen on {host}:{port}: {e}")
            listener.close()
            raise
        return listener

    def _serve(self, connection_handler: Callable[[Connection], None]):
        while self._accepting:
            try:
                client, peer = self._listener.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._accepting:
                    logger.error(f"accept() failed: {e}")
                break

            logger.debug(f"Connection from {peer[0]}:{peer[1]}")
            connection_handler(self._wrap(client, peer))

    def _wrap(self, client: socket.socket, peer: Tuple[str, int]) -> Connection:
        return Connection(
            socket=client,
            address=peer,
            buffer_size=self.config.buffer_size,
            timeout=self.config.timeout,
            keep_alive_timeout=self.config.keep_alive_timeout,
            max_request_size=self.config.max_request_size,
        )

    def _install_signal_handlers(self):
        """
        SIGINT (Ctrl+C) and SIGTERM (docker stop, systemd) stop the loop.

        signal.signal() only works on the main thread. When the server is run
        from a background thread (the tests do this) the handlers are skipped
        and shutdown() is the only way out.
        """
        if threading.current_thread() is not threading.main_thread():
            return

        def on_signal(signum, frame):
            logger.info(f"{signal.Signals(signum).name} received, shutting down")
            self.shutdown()

        for sig in (signal.SIGTERM, signal.SIGINT):
            self._previous_handlers[sig] = signal.signal(sig, on_signal)

    def _close_listener(self):
        for sig, handler in self._previous_handlers.items():
            signal.signal(sig, handler)
        self._previous_handlers.clear()

        if self._listener is not None:
            try:
                self._listener.close()
            except OSError:
                pass
            self._listener = None

        self._listening.clear()
        logger.debug("Listener closed")
