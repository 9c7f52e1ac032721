"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The subset of RFC 7231 status codes the user service can emit, with their
reason phrases.

    ┌──────┬──────────────────────────┬──────────────────────────────────┐
    │ Code │ Phrase                   │ Emitted when                     │
    ├──────┼──────────────────────────┼──────────────────────────────────┤
    │ 200  │ OK                       │ list / get / replace / delete    │
    │ 201  │ Created                  │ POST /users succeeded            │
    │ 400  │ Bad Request              │ bad body, bad fields, missing id │
    │ 404  │ Not Found                │ unknown route or unknown user    │
    │ 405  │ Method Not Allowed       │ unsupported method on /users     │
    │ 408  │ Request Timeout          │ client stalled mid-request       │
    │ 413  │ Payload Too Large        │ request over max_request_size    │
    │ 500  │ Internal Server Error    │ handler raised unexpectedly      │
    │ 503  │ Service Unavailable      │ worker queue is full             │
    │ 505  │ HTTP Version Not Supp... │ anything but HTTP/1.0 or 1.1     │
    └──────┴──────────────────────────┴──────────────────────────────────┘

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    IntEnum, so members compare equal to plain integers:

        >>> HTTPStatus.CREATED == 201
        True
        >>> HTTPStatus.CREATED.phrase
        'Created'
    """

    # 2xx SUCCESS
    OK = 200
    CREATED = 201

    # 4xx CLIENT ERRORS
    BAD_REQUEST = 400
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    REQUEST_TIMEOUT = 408
    PAYLOAD_TOO_LARGE = 413

    # 5xx SERVER ERRORS
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503
    HTTP_VERSION_NOT_SUPPORTED = 505

    @property
    def phrase(self) -> str:
        """
        Reason phrase for the status line.

            HTTP/1.1 404 Not Found
                     ─── ─────────
                      │      └── phrase
                      └───────── code
        """
        return _STATUS_PHRASES.get(self, "Unknown")


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.CREATED: "Created",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.METHOD_NOT_ALLOWED: "Method Not Allowed",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
