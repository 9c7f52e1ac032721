"""
pytest configuration and fixtures.
"""

import http.client
import json
import socket
import threading
from typing import Any, Generator, Optional

import pytest

from userservice import ServerConfig, UserRepository, create_app
from userservice.handlers import UsersHandler
from userservice.server import HTTPServer


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample HTTP GET request."""
    return (
        b"GET /users/1?verbose=1 HTTP/1.1\r\n"
        b"Host: localhost:3001\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: application/json\r\n"
        b"Connection: keep-alive\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample HTTP POST request with JSON body."""
    body = b'{"name": "Ana", "email": "ana@example.com", "dateOfBirth": "1990-01-01"}'
    return (
        b"POST /users HTTP/1.1\r\n"
        b"Host: localhost:3001\r\n"
        b"Content-Type: application/json\r\n"
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"Connection: close\r\n"
        b"\r\n"
    ) + body


@pytest.fixture
def repository() -> UserRepository:
    """A fresh, empty repository per test."""
    return UserRepository()


@pytest.fixture
def handler(repository: UserRepository) -> UsersHandler:
    return UsersHandler(repository)


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class ClientResponse:
    """What a test needs from an HTTP response."""

    def __init__(self, status: int, headers: dict, body: bytes):
        self.status = status
        self.headers = headers
        self.body = body

    @property
    def json(self) -> Any:
        return json.loads(self.body.decode("utf-8"))


class TestServer:
    """Runs a user service on a background thread."""

    __test__ = False

    def __init__(self, server: HTTPServer, repository: UserRepository):
        self.server = server
        self.repository = repository
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        self._thread = threading.Thread(target=self.server.run, daemon=True)
        self._thread.start()
        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def stop(self):
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)

    def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        headers: Optional[dict] = None,
    ) -> ClientResponse:
        """One request on a fresh connection via http.client."""
        if body is not None and not isinstance(body, bytes):
            body = json.dumps(body).encode("utf-8")

        conn = http.client.HTTPConnection("127.0.0.1", self.port, timeout=5.0)
        try:
            conn.request(method, path, body=body, headers=headers or {})
            response = conn.getresponse()
            return ClientResponse(
                status=response.status,
                headers={k.lower(): v for k, v in response.getheaders()},
                body=response.read(),
            )
        finally:
            conn.close()

    def send_raw(self, data: bytes, timeout: float = 5.0) -> bytes:
        """Write raw bytes and read until the server closes the connection."""
        with socket.create_connection(("127.0.0.1", self.port), timeout=timeout) as s:
            s.sendall(data)
            chunks = []
            while True:
                try:
                    chunk = s.recv(4096)
                except socket.timeout:
                    break
                if not chunk:
                    break
                chunks.append(chunk)
            return b"".join(chunks)


@pytest.fixture
def test_server(free_port: int) -> Generator[TestServer, None, None]:
    """A running user service with its own empty repository."""
    repository = UserRepository()
    server = create_app(
        ServerConfig(
            host="127.0.0.1",
            port=free_port,
            workers=4,
            timeout=2.0,
            keep_alive_timeout=1.0,
            log_level="WARNING",
        ),
        repository=repository,
    )

    running = TestServer(server, repository)
    running.start()

    yield running

    running.stop()
