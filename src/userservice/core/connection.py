"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket and turns the TCP byte stream back into
whole HTTP requests.

TCP does not preserve message boundaries. A single PUT may arrive as

    recv() → b"PUT /users/1 HTTP/1.1\\r\\nContent-Le"
    recv() → b"ngth: 61\\r\\n\\r\\n{\\"name\\":\\"Ana\\""
    recv() → b",\\"email\\": ...}"

so the Connection buffers until it holds the complete message:

    ┌──────────────────────────────────────────────────────────────────┐
    │  1. recv() until the buffer contains \\r\\n\\r\\n (end of headers)   │
    │  2. look at the framing headers                                  │
    │       Content-Length: N       → recv() until N body bytes        │
    │       Transfer-Encoding: chunked → recv() until the 0-size chunk │
    │  3. cut exactly one request off the front of the buffer          │
    │     (anything after it is the next pipelined request)            │
    └──────────────────────────────────────────────────────────────────┘

Only the worker that owns this connection waits on these reads, so a slow
client never holds up anybody else.

Timeouts:

    first request on the connection   ServerConfig.timeout        → 408
    later keep-alive requests         ServerConfig.keep_alive_timeout
                                      → connection closed quietly

=============================================================================
"""

import logging
import re
import socket
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..http.request import HTTPParseError


logger = logging.getLogger(__name__)


HEADER_TERMINATOR = b"\r\n\r\n"

_CONTENT_LENGTH = re.compile(rb"^content-length:\s*(\S*)\s*$", re.IGNORECASE | re.MULTILINE)
_CHUNKED = re.compile(rb"^transfer-encoding:.*chunked", re.IGNORECASE | re.MULTILINE)


class ConnectionState(Enum):
    """Where a connection is in its lifecycle."""

    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The accepted client socket.
        address: Peer (ip, port).
        id: Short id used to tag log lines.
        state: Current ConnectionState.
        requests_handled: Requests read so far on this connection.
    """

    socket: socket.socket
    address: tuple[str, int]
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: float = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read exactly one complete HTTP request off the socket.

        Returns:
            The request bytes (headers and framed body), or None when the
            client closed the connection or went idle between keep-alive
            requests.

        Raises:
            TimeoutError: The first request did not arrive in time.
            HTTPParseError: The request grew past max_request_size (413).
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while HEADER_TERMINATOR not in self._buffer:
                if not self._fill():
                    if self._buffer:
                        # Headers never finished; let the parser say so.
                        return self._take(len(self._buffer))
                    return None

            header_end = self._buffer.find(HEADER_TERMINATOR)
            header_section = self._buffer[:header_end]
            body_start = header_end + len(HEADER_TERMINATOR)

            if _CHUNKED.search(header_section):
                request_end = self._read_chunked(body_start)
            else:
                request_end = body_start + self._content_length(header_section)
                while len(self._buffer) < request_end:
                    if not self._fill():
                        break  # closed mid-body; the parser reports it

            self.requests_handled += 1
            return self._take(min(request_end, len(self._buffer)))

        except socket.timeout:
            if self.requests_handled > 0 and not self._buffer:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request timeout")

        finally:
            if self.state != ConnectionState.CLOSED:
                self.socket.settimeout(self.timeout)

    def _fill(self) -> bool:
        """recv() once into the buffer. False means the peer is gone."""
        try:
            chunk = self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return False

        if not chunk:
            return False

        self._buffer += chunk
        self.last_activity = time.time()

        if len(self._buffer) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: more than {self.max_request_size} bytes",
                status_code=413,
            )
        return True

    def _take(self, length: int) -> bytes:
        data, self._buffer = self._buffer[:length], self._buffer[length:]
        return data

    @staticmethod
    def _content_length(header_section: bytes) -> int:
        """
        Content-Length from the raw headers, 0 when absent.

        A garbage value also reads as 0 here; RequestParser rejects it.
        """
        match = _CONTENT_LENGTH.search(header_section)
        if not match:
            return 0
        try:
            return max(int(match.group(1)), 0)
        except ValueError:
            return 0

    def _read_chunked(self, body_start: int) -> int:
        """
        Keep reading until the terminating zero-size chunk has arrived.

        Returns the offset just past the end of the chunked body.
        """
        pos = body_start

        while True:
            line_end = self._buffer.find(b"\r\n", pos)
            while line_end == -1:
                if not self._fill():
                    return len(self._buffer)
                line_end = self._buffer.find(b"\r\n", pos)

            size_field = self._buffer[pos:line_end].split(b";", 1)[0].strip()
            try:
                size = int(size_field, 16)
            except ValueError:
                return len(self._buffer)  # RequestParser reports the bad size

            if size == 0:
                trailer_end = self._buffer.find(HEADER_TERMINATOR, line_end)
                while trailer_end == -1:
                    if not self._fill():
                        return len(self._buffer)
                    trailer_end = self._buffer.find(HEADER_TERMINATOR, line_end)
                return trailer_end + len(HEADER_TERMINATOR)

            chunk_end = line_end + 2 + size + 2
            while len(self._buffer) < chunk_end:
                if not self._fill():
                    return len(self._buffer)
            pos = chunk_end

    # =========================================================================
    # WRITING / CLOSING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        sendall() the serialized response.

        Returns:
            False if the client disappeared before it was sent.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
            self.last_activity = time.time()
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    def set_keep_alive(self):
        self.state = ConnectionState.KEEP_ALIVE

    def close(self):
        """
        Half-close, drain what the client still sends, then release the fd.

        Safe to call more than once.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
