"""
=============================================================================
HTTP SERVER
=============================================================================

Ties the pieces together:

    SocketServer ──accept──► WorkerPool ──► _process_connection(conn)
                                                 │
                                read_request() ◄─┤  (concurrent, per worker)
                                parse()        ◄─┤
                                                 │
                            ┌────────────────────▼─────────────────────┐
                            │  with dispatch lock:                     │
                            │      middleware → router → handler       │
                            └────────────────────┬─────────────────────┘
                                                 │
                                send_response() ◄┘  then keep-alive or close

Reading and writing sockets happens on many workers at once, but only one
request at a time is ever inside the handler chain. Handlers and the
repository behind them can therefore mutate state without locks of their
own, and every operation is atomic with respect to every other.

Errors that never reach a handler:

    malformed request        → 400 (or 413 / 505) {"error": "<parser message>"}
    read timeout             → 408 {"error": "Request timeout"}
    worker queue full        → 503 {"error": "Server overloaded"}

Errors raised by a handler are logged with a traceback and answered with
500 {"error": "Internal Server Error"}; the connection stays usable.

=============================================================================
"""

import logging
import threading
from typing import Callable, Optional, Tuple

from .config import ServerConfig
from .core import Connection, ConnectionState, SocketServer, WorkerPool
from .http import (
    HTTPParseError,
    HTTPRequest,
    HTTPResponse,
    HTTPStatus,
    RequestParser,
    ResponseBuilder,
    Router,
    internal_error,
)
from .middleware import Middleware, MiddlewarePipeline


logger = logging.getLogger(__name__)


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class HTTPServer:
    """
    HTTP/1.1 server with a router and a middleware pipeline.

        server = HTTPServer(ServerConfig(port=3001))
        server.use(LoggingMiddleware())
        server.router.add_route("/users/:id", users.handle)
        server.run()                       # blocks until SIGINT/SIGTERM

    From another thread (tests):

        thread = threading.Thread(target=server.run, daemon=True)
        thread.start()
        server.wait_until_ready(5)
        ...
        server.shutdown()
    """

    def __init__(self, config: Optional[ServerConfig] = None):
        self.config = config or ServerConfig()
        self.config.validate()

        self._socket_server = SocketServer(self.config)
        self._worker_pool = WorkerPool(workers=self.config.workers)
        self._parser = RequestParser(max_request_size=self.config.max_request_size)

        self._router = Router()
        self._middleware = MiddlewarePipeline()

        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None
        self._dispatch_lock = threading.Lock()
        self._running = False

    # =========================================================================
    # CONFIGURATION
    # =========================================================================

    def use(self, middleware: Middleware) -> "HTTPServer":
        """Append middleware; the first one added runs first."""
        self._middleware.add(middleware)
        return self

    @property
    def router(self) -> Router:
        return self._router

    @property
    def address(self) -> Tuple[str, int]:
        """The (host, port) the server is bound to."""
        return self._socket_server.address

    @property
    def is_running(self) -> bool:
        return self._running and self._socket_server.is_running

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self, host: Optional[str] = None, port: Optional[int] = None):
        """
        Start serving. Blocks until shutdown() or a signal stops it.

        Args:
            host: Override config.host.
            port: Override config.port.
        """
        if host:
            self.config.host = host
        if port:
            self.config.port = port
        self.config.validate()

        self._setup_logging()
        self._handler = self._middleware.wrap(self._router.handle)
        self._worker_pool.start()
        self._running = True

        try:
            self._socket_server.start(
                self._handle_connection,
                on_listening=self._announce,
            )
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._stop()

    def shutdown(self):
        """Ask the accept loop to stop. Returns immediately; run() unwinds."""
        self._socket_server.shutdown()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the server is accepting connections."""
        return self._socket_server.wait_until_listening(timeout)

    def _setup_logging(self):
        level = self.config.log_level_number
        logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
        logging.getLogger("userservice").setLevel(level)

    def _announce(self, address: Tuple[str, int]):
        host, port = address
        logger.info(f"Server running at http://{host}:{port}")
        for line in self._router.describe():
            logger.debug(f"  {line}")

    def _stop(self):
        self._running = False
        self._worker_pool.shutdown(timeout=self.config.keep_alive_timeout + 1.0)
        logger.info("Server stopped")

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Called on the accept thread: hand the connection to a worker."""
        if not self._worker_pool.submit(self._process_connection, conn):
            logger.warning(
                f"[{conn.id}] Worker queue full ({self._worker_pool.busy_count} busy), "
                f"rejecting connection"
            )
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE, "Server overloaded")
            conn.close()

    def _process_connection(self, conn: Connection):
        """
        Keep-alive loop for one connection (runs on a worker).

            read → parse → dispatch → send → (next request | close)
        """
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT, "Request timeout")
                    break
                except HTTPParseError as e:
                    self._send_error(conn, HTTPStatus(e.status_code), str(e))
                    break

                if raw_request is None:
                    break

                try:
                    request = self._parser.parse(raw_request, conn.address)
                except HTTPParseError as e:
                    logger.debug(f"[{conn.id}] Bad request: {e}")
                    self._send_error(conn, HTTPStatus(e.status_code), str(e))
                    break

                conn.state = ConnectionState.PROCESSING
                response = self.dispatch(request)

                keep_alive = request.is_keep_alive and self.config.keep_alive
                if keep_alive:
                    response.headers.setdefault("Connection", "keep-alive")
                    response.headers.setdefault(
                        "Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}"
                    )
                else:
                    response.headers["Connection"] = "close"

                if not conn.send_response(response.to_bytes(self.config.server_name)):
                    break

                if not keep_alive:
                    break

                conn.set_keep_alive()

    def dispatch(self, request: HTTPRequest) -> HTTPResponse:
        """
        Run one request through middleware and router under the dispatch lock.

        Never raises: an exception from the chain becomes a 500.
        """
        handler = self._handler or self._middleware.wrap(self._router.handle)

        with self._dispatch_lock:
            try:
                return handler(request)
            except Exception as e:
                logger.exception(f"Handler error on {request.method} {request.path}: {e}")
                return internal_error()

    def _send_error(self, conn: Connection, status: HTTPStatus, message: str):
        """Error response for failures before dispatch; always closes."""
        response = (ResponseBuilder()
            .status(status)
            .json({"error": message})
            .close_connection()
            .build())
        conn.send_response(response.to_bytes(self.config.server_name))
