"""
HTTP/1.1 message handling: parsing requests, building JSON responses,
status codes and path routing.
"""

from .request import HTTPParseError, HTTPRequest, RequestParser, parse_request
from .response import (
    HTTPResponse,
    ResponseBuilder,
    bad_request,
    created,
    error_response,
    internal_error,
    json_response,
    method_not_allowed,
    not_found,
    ok,
)
from .router import Route, RouteMatch, Router
from .status_codes import HTTPStatus

__all__ = [
    "HTTPParseError",
    "HTTPRequest",
    "RequestParser",
    "parse_request",
    "HTTPResponse",
    "ResponseBuilder",
    "json_response",
    "error_response",
    "ok",
    "created",
    "bad_request",
    "not_found",
    "method_not_allowed",
    "internal_error",
    "Route",
    "RouteMatch",
    "Router",
    "HTTPStatus",
]
