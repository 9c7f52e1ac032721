"""
=============================================================================
HTTP RESPONSE BUILDING
=============================================================================

Every response the user service sends is JSON:

    HTTP/1.1 201 Created\r\n
    Content-Type: application/json\r\n
    Content-Length: 83\r\n
    Date: Sun, 18 Oct 2026 12:00:00 GMT\r\n
    Server: userservice/1.0\r\n
    \r\n
    {"id":1,"name":"Ana","email":"ana@example.com","dateOfBirth":"1990-..."}

HTTPResponse is the plain container; ResponseBuilder is the fluent way to
fill one in; the module-level helpers (ok, created, not_found, ...) cover the
one-liners handlers actually write.

Error responses always have the shape {"error": "<message>"} and nothing else.

=============================================================================
"""

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Union

from .status_codes import HTTPStatus


JSON_CONTENT_TYPE = "application/json"
DEFAULT_SERVER_NAME = "userservice/1.0"

# json.loads joins valid pairs, so any surrogate left in a str is unpaired
_LONE_SURROGATE = re.compile(r"[\ud800-\udfff]")


def _escape_code_unit(match: "re.Match[str]") -> str:
    return f"\\u{ord(match.group()):04x}"


@dataclass
class HTTPResponse:
    """
    An HTTP response waiting to be serialized.

    Content-Length, Date and Server are filled in by to_bytes() when the
    handler did not set them.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    @property
    def json(self) -> Any:
        """Decode the body back into Python data (used by tests and logs)."""
        return json.loads(self.body.decode("utf-8")) if self.body else None

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def to_bytes(self, server_name: str = DEFAULT_SERVER_NAME) -> bytes:
        """
        Serialize status line, headers and body for socket.sendall().
        """
        response_headers = dict(self.headers)
        response_headers.setdefault("Content-Length", str(len(self.body)))
        response_headers.setdefault("Date", format_http_date(datetime.now(timezone.utc)))
        response_headers.setdefault("Server", server_name)

        lines = [self.status_line]
        lines.extend(f"{name}: {value}" for name, value in response_headers.items())
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("latin-1") + b"\r\n"
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTPResponse.

        response = (ResponseBuilder()
            .status(HTTPStatus.CREATED)
            .json(user.to_dict())
            .header("Location", "/users/1")
            .build())
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        self._headers.update(headers)
        return self

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def json(self, data: Any) -> "ResponseBuilder":
        """
        Serialize data as compact JSON and mark the response application/json.

        Non-ASCII text is emitted as UTF-8 rather than \\u escapes. Unpaired
        surrogates have no UTF-8 form and stay escaped, as JSON.stringify does.
        """
        text = json.dumps(data, ensure_ascii=False, separators=(",", ":"))
        self._body = _LONE_SURROGATE.sub(_escape_code_unit, text).encode("utf-8")
        self._headers["Content-Type"] = JSON_CONTENT_TYPE
        return self

    def close_connection(self) -> "ResponseBuilder":
        """Tell the client this is the last response on the connection."""
        self._headers["Connection"] = "close"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
        )


def format_http_date(dt: datetime) -> str:
    """
    Format a UTC datetime as an RFC 7231 HTTP-date.

    Example: "Sun, 18 Oct 2026 12:00:00 GMT"
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
#     return ok(user.to_dict())
#     return created(user.to_dict(), location=f"/users/{user.id}")
#     return not_found("User not found")
#
# =============================================================================

def json_response(status: HTTPStatus, data: Any) -> HTTPResponse:
    """Any status with a JSON body."""
    return ResponseBuilder().status(status).json(data).build()


def error_response(status: HTTPStatus, message: str) -> HTTPResponse:
    """The single error shape: {"error": message}."""
    return json_response(status, {"error": message})


def ok(data: Any) -> HTTPResponse:
    """200 OK with a JSON body."""
    return json_response(HTTPStatus.OK, data)


def created(data: Any, location: Optional[str] = None) -> HTTPResponse:
    """201 Created with a JSON body and, optionally, a Location header."""
    builder = ResponseBuilder().status(HTTPStatus.CREATED).json(data)
    if location:
        builder.header("Location", location)
    return builder.build()


def bad_request(message: str = "Bad Request") -> HTTPResponse:
    return error_response(HTTPStatus.BAD_REQUEST, message)


def not_found(message: str = "Not Found") -> HTTPResponse:
    return error_response(HTTPStatus.NOT_FOUND, message)


def method_not_allowed(allowed_methods: Optional[Iterable[str]] = None) -> HTTPResponse:
    """
    405 Method Not Allowed.

    RFC 7231 wants an Allow header listing what the resource does support;
    the body stays the plain error shape.
    """
    response = error_response(HTTPStatus.METHOD_NOT_ALLOWED, "Method Not Allowed")
    if allowed_methods:
        response.set_header("Allow", ", ".join(allowed_methods))
    return response


def internal_error(message: str = "Internal Server Error") -> HTTPResponse:
    """500. Keep the message generic; details go to the log."""
    return error_response(HTTPStatus.INTERNAL_SERVER_ERROR, message)
