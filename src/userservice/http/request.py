"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

Turns the raw bytes a Connection accumulated into an HTTPRequest.

    Raw bytes (one complete request)
          │
          ▼
    ┌───────────────────────────────────────────────────────────────────┐
    │  RequestParser.parse()                                            │
    │                                                                   │
    │  1. size check            → 413 if over max_request_size          │
    │  2. split at \r\n\r\n     → header section / body                  │
    │  3. request line          → METHOD SP TARGET SP HTTP/x.y           │
    │  4. headers               → lowercase names, duplicates joined     │
    │  5. body framing          → Content-Length or chunked              │
    └───────────────────────────────────────────────────────────────────┘
          │
          ▼
    HTTPRequest(method="PUT", path="/users/1", body=b'{"name": ...}')

The parser does not judge the method. Any token is accepted here, and the
route handler answers 405 for the ones it does not serve, so "PATCH /users/1"
and "FOO /users/1" get the same JSON error body.

The request target is split at "?" and the query string is dropped. The path
is NOT percent-decoded: "/users/%31" reaches the handler with id "%31", which
does not parse as a number and therefore reads as an unknown user.

=============================================================================
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Optional


class HTTPParseError(Exception):
    """
    Raised when the bytes on the wire are not a valid HTTP/1.x request.

    Carries the status code the server should answer with. The server turns
    it into a JSON error response and closes the connection.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Attributes:
        method:         Request method, as sent (GET, POST, PATCH, ...).
        path:           Path without the query string, not percent-decoded.
        version:        "HTTP/1.1" or "HTTP/1.0".
        headers:        Header dict with lowercase names.
        query:          Raw query string (logged, never interpreted).
        body:           De-framed body bytes.
        path_params:    Filled in by the Router ({"id": "42"}).
        client_address: (ip, port) of the peer.
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    query: str = ""
    body: bytes = b""
    path_params: Dict[str, str] = field(default_factory=dict)
    client_address: tuple[str, int] = ("", 0)

    @property
    def content_type(self) -> Optional[str]:
        """Content-Type without parameters ("application/json")."""
        ct = self.headers.get("content-type", "")
        return ct.split(";")[0].strip().lower() or None

    @property
    def content_length(self) -> int:
        """Content-Length as an integer, 0 when absent or garbage."""
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def is_keep_alive(self) -> bool:
        """
        Whether the connection stays open after this request.

        HTTP/1.1 keeps alive unless the client says "Connection: close";
        HTTP/1.0 closes unless the client says "Connection: keep-alive".
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Parses one complete request worth of bytes into an HTTPRequest.

    The Connection is responsible for reading exactly one request off the
    socket (headers plus the framed body). The parser only interprets it.
    """

    # Method is any RFC 7230 token in upper case; the handler decides support.
    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    def __init__(self, max_request_size: int = 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw request bytes.

        Args:
            data: One complete request (headers + body).
            client_address: Peer (ip, port), kept for access logging.

        Returns:
            The parsed HTTPRequest.

        Raises:
            HTTPParseError: If the request is oversized or malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413,
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("latin-1")
        raw_body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, query, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        if "chunked" in headers.get("transfer-encoding", "").lower():
            body = self._decode_chunked(raw_body)
        else:
            body = self._slice_body(raw_body, headers)

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query=query,
            body=body,
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> tuple[str, str, str, str]:
        """
        Split "METHOD SP TARGET SP VERSION" into (method, path, query, version).
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line}")

        method, target, version = match.groups()

        if version not in self.SUPPORTED_VERSIONS:
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505,
            )

        target = target.split("#", 1)[0]
        path, _, query = target.partition("?")
        return method, path or "/", query, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse header lines into a dict keyed by lowercase name.

        Repeated headers are joined with ", " per RFC 7230 §3.2.2.
        Obsolete line folding (continuation lines starting with SP/HT) is
        appended to the previous header. Lines without a colon are skipped.
        """
        headers: Dict[str, str] = {}
        current_name: Optional[str] = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name = match.group(1).strip().lower()
            value = match.group(2).strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers

    def _slice_body(self, raw_body: bytes, headers: Dict[str, str]) -> bytes:
        """Take exactly Content-Length bytes of body."""
        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")

        if content_length < 0:
            raise HTTPParseError("Invalid Content-Length header")

        if len(raw_body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, "
                f"got {len(raw_body)}"
            )
        return raw_body[:content_length]

    def _decode_chunked(self, raw_body: bytes) -> bytes:
        """
        Reassemble a chunked transfer-coded body.

            5\r\nhello\r\n6\r\n world\r\n0\r\n\r\n  →  b"hello world"

        Chunk extensions (";name=value") are ignored, as are trailers.
        """
        body = bytearray()
        pos = 0

        while True:
            line_end = raw_body.find(b"\r\n", pos)
            if line_end == -1:
                raise HTTPParseError("Incomplete chunked body")

            size_field = raw_body[pos:line_end].split(b";", 1)[0].strip()
            try:
                size = int(size_field, 16)
            except ValueError:
                raise HTTPParseError(f"Invalid chunk size: {size_field!r}")

            pos = line_end + 2
            if size == 0:
                return bytes(body)

            if len(raw_body) < pos + size + 2:
                raise HTTPParseError("Incomplete chunked body")

            body += raw_body[pos:pos + size]
            pos += size + 2


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 1024 * 1024
) -> HTTPRequest:
    """Parse one request with a throwaway RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
