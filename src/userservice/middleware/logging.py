"""
=============================================================================
ACCESS LOG MIDDLEWARE
=============================================================================

One line per request on the "userservice.access" logger:

    text:  127.0.0.1 - - [18/Oct/2026:12:00:00 +0000] "POST /users" 201 83 0.41ms
    json:  {"request_id": "9f1c2a7b", "method": "POST", "path": "/users", ...}

Every response also gets an X-Request-ID header carrying the id that was
logged, so a client report can be matched to its log line.

Register it first so the timing covers the whole chain and requests answered
early by later middleware are still logged.

=============================================================================
"""

import json
import logging
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Iterable, Optional

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from .base import Middleware, NextHandler


logger = logging.getLogger("userservice.access")


@dataclass
class RequestLog:
    """A single access log entry."""

    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    @classmethod
    def capture(
        cls,
        request_id: str,
        request: HTTPRequest,
        response: HTTPResponse,
        duration_ms: float,
    ) -> "RequestLog":
        return cls(
            request_id=request_id,
            method=request.method,
            path=request.path,
            query=request.query,
            client_ip=request.client_address[0],
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

    def to_dict(self) -> dict:
        entry = asdict(self)
        entry["duration_ms"] = round(self.duration_ms, 2)
        return entry

    def to_text(self) -> str:
        """Apache-style line."""
        target = f"{self.path}?{self.query}" if self.query else self.path
        return (
            f'{self.client_ip or "-"} - - [{self.timestamp}] '
            f'"{self.method} {target}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms'
        )


class LoggingMiddleware(Middleware):
    """
    Request timing, access logging and X-Request-ID.

        server.use(LoggingMiddleware())                    # text lines
        server.use(LoggingMiddleware(log_format="json"))   # JSON lines
    """

    FORMATS = ("text", "json")

    def __init__(
        self,
        log_format: str = "text",
        include_request_id: bool = True,
        log_level: int = logging.INFO,
        skip_paths: Optional[Iterable[str]] = None,
    ):
        if log_format not in self.FORMATS:
            raise ValueError(f"Unknown log format: {log_format}")

        self.log_format = log_format
        self.include_request_id = include_request_id
        self.log_level = log_level
        self.skip_paths = frozenset(skip_paths or ())

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = uuid.uuid4().hex[:8]
        started = time.perf_counter()

        try:
            response = next(request)
        except Exception as e:
            logger.error(
                f"[{request_id}] {request.method} {request.path} raised "
                f"{type(e).__name__}: {e} after {self._elapsed_ms(started):.2f}ms"
            )
            raise

        if request.path not in self.skip_paths:
            self._emit(RequestLog.capture(request_id, request, response, self._elapsed_ms(started)))

        if self.include_request_id:
            response.set_header("X-Request-ID", request_id)
        return response

    def _emit(self, entry: RequestLog):
        if self.log_format == "json":
            message = json.dumps(entry.to_dict())
        else:
            message = entry.to_text()
        logger.log(self.log_level, message)

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return (time.perf_counter() - started) * 1000
