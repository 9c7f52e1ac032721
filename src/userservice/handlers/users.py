"""
=============================================================================
USERS RESOURCE HANDLER
=============================================================================

One handler object serves every /users path and dispatches on the method:

    ┌────────┬───────────────────────────┬────────────────────────────────┐
    │ Method │ /users                    │ /users/:id                     │
    ├────────┼───────────────────────────┼────────────────────────────────┤
    │ GET    │ 200 [user, ...]           │ 200 user │ 404 User not found  │
    │ POST   │ 201 user                  │ same, the id is ignored        │
    │ PUT    │ 400 Missing user ID       │ 200 user │ 404 │ 400 body    │
    │ DELETE │ 400 Missing user ID       │ 200 deleted user │ 404        │
    │ other  │ 405 Method Not Allowed    │ 405 Method Not Allowed         │
    └────────┴───────────────────────────┴────────────────────────────────┘

Bodies go through parse_user_draft() and the result picks the response:

    MalformedBody  → 400 {"error": "Invalid data format"}
    InvalidDraft   → 400 {"error": "Invalid user data"}
    ParsedDraft    → carry on

PUT checks, in order: id present, user exists, body is JSON, fields valid.

Ids are read the way JavaScript's parseInt(s, 10) reads them: leading
whitespace, optional sign, then as many digits as there are. "12abc" is 12;
"abc" has no number at all and so names no user (404, not 400).

=============================================================================
"""

import logging
import re
from typing import Callable, Dict, Optional

from ..http.request import HTTPRequest
from ..http.response import (
    HTTPResponse,
    bad_request,
    created,
    method_not_allowed,
    not_found,
    ok,
)
from ..models import InvalidDraft, MalformedBody, ParseResult, parse_user_draft
from ..repository import UserRepository


logger = logging.getLogger(__name__)


SUPPORTED_METHODS = ("GET", "POST", "PUT", "DELETE")

INVALID_DATA_FORMAT = "Invalid data format"
INVALID_USER_DATA = "Invalid user data"
MISSING_USER_ID = "Missing user ID"
USER_NOT_FOUND = "User not found"

_LEADING_INTEGER = re.compile(r"\s*([+-]?)0*([0-9]+)")

# Far past any id the counter can reach; longer digit runs name no user.
MAX_ID_DIGITS = 18


def parse_user_id(raw: Optional[str]) -> Optional[int]:
    """
    Leading integer of a path segment, or None if it has none.

        >>> parse_user_id("42"), parse_user_id(" 7x"), parse_user_id("1.5")
        (42, 7, 1)
        >>> parse_user_id("abc") is None
        True
    """
    if not raw:
        return None
    match = _LEADING_INTEGER.match(raw)
    if match is None:
        return None

    sign, digits = match.groups()
    if len(digits) > MAX_ID_DIGITS:
        return None
    return int(sign + digits)


class UsersHandler:
    """
    CRUD over a UserRepository.

        repository = UserRepository()
        users = UsersHandler(repository)
        router.add_route("/users", users.handle)
        router.add_route("/users/:id", users.handle)
    """

    def __init__(self, repository: UserRepository):
        self.repository = repository
        self._dispatch: Dict[str, Callable[[HTTPRequest, Optional[str]], HTTPResponse]] = {
            "GET": self.get,
            "POST": self.post,
            "PUT": self.put,
            "DELETE": self.delete,
        }

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """Route entry point: pick the method handler, or 405."""
        action = self._dispatch.get(request.method)
        if action is None:
            return method_not_allowed(SUPPORTED_METHODS)

        # An empty id segment ("/users//x") counts as no id.
        raw_id = request.path_params.get("id") or None
        return action(request, raw_id)

    # =========================================================================
    # METHODS
    # =========================================================================

    def get(self, request: HTTPRequest, raw_id: Optional[str]) -> HTTPResponse:
        if raw_id is None:
            return ok([user.to_dict() for user in self.repository.list()])

        user = self._find(raw_id)
        if user is None:
            return not_found(USER_NOT_FOUND)
        return ok(user.to_dict())

    def post(self, request: HTTPRequest, raw_id: Optional[str]) -> HTTPResponse:
        result = parse_user_draft(request.body)
        error = self._draft_error(result)
        if error is not None:
            return error

        user = self.repository.create(result.draft)
        logger.info(f"Created user {user.id}")
        return created(user.to_dict(), location=f"/users/{user.id}")

    def put(self, request: HTTPRequest, raw_id: Optional[str]) -> HTTPResponse:
        if raw_id is None:
            return bad_request(MISSING_USER_ID)

        user = self._find(raw_id)
        if user is None:
            return not_found(USER_NOT_FOUND)

        result = parse_user_draft(request.body)
        error = self._draft_error(result)
        if error is not None:
            return error

        self.repository.update(user.id, result.draft)
        logger.info(f"Updated user {user.id}")
        return ok(user.to_dict())

    def delete(self, request: HTTPRequest, raw_id: Optional[str]) -> HTTPResponse:
        if raw_id is None:
            return bad_request(MISSING_USER_ID)

        user_id = parse_user_id(raw_id)
        user = self.repository.delete(user_id) if user_id is not None else None
        if user is None:
            logger.debug(f"Delete of unknown user {raw_id!r}")
            return not_found(USER_NOT_FOUND)

        logger.info(f"Deleted user {user.id}")
        return ok(user.to_dict())

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _find(self, raw_id: str):
        user_id = parse_user_id(raw_id)
        user = self.repository.get(user_id) if user_id is not None else None
        if user is None:
            logger.debug(f"Unknown user {raw_id!r}")
        return user

    @staticmethod
    def _draft_error(result: ParseResult) -> Optional[HTTPResponse]:
        """400 response for a body that did not parse, else None."""
        if isinstance(result, MalformedBody):
            logger.debug(f"Malformed user body: {result.reason}")
            return bad_request(INVALID_DATA_FORMAT)

        if isinstance(result, InvalidDraft):
            logger.debug(f"Invalid user data in fields: {', '.join(result.fields)}")
            return bad_request(INVALID_USER_DATA)

        return None
