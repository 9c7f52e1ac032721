"""
=============================================================================
USER MODELS
=============================================================================

    request body (bytes)
          │  parse_user_draft()
          ▼
    ┌────────────────┬───────────────────┬──────────────────────────────┐
    │ MalformedBody  │ InvalidDraft      │ ParsedDraft(draft=UserDraft) │
    │ not JSON       │ JSON, bad fields  │ validated, immutable         │
    └────────────────┴───────────────────┴──────────────┬───────────────┘
                                                        │ repository
                                                        ▼
                                                      User (record)

A UserDraft is what a client may set: name, email and dateOfBirth. The id
is never part of it. User is the stored record, mutable so a replace can
overwrite it in place while keeping its id.

Body parsing returns one of the three result values instead of raising, and
the handler maps each to a response.

=============================================================================
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from .validators import format_timestamp, is_valid_email, parse_date


logger = logging.getLogger(__name__)


class UserDraft(BaseModel, frozen=True):
    """
    Validated client input for create and replace.

    Fields must already have the right JSON type: strict mode means a
    number is not accepted as a name. Unknown keys are dropped.

        >>> UserDraft.model_validate(
        ...     {"name": "Ana", "email": "ana@example.com", "dateOfBirth": "1990-01-01"}
        ... ).date_of_birth.year
        1990
    """

    model_config = {"strict": True, "extra": "ignore"}

    name: str
    email: str
    date_of_birth: datetime = Field(..., alias="dateOfBirth")

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        if not is_valid_email(value):
            raise ValueError("not a valid email address")
        return value

    @field_validator("date_of_birth", mode="before")
    @classmethod
    def _parse_date_of_birth(cls, value: Any) -> datetime:
        if not isinstance(value, str):
            raise ValueError("dateOfBirth must be a string")
        parsed = parse_date(value)
        if parsed is None:
            raise ValueError("not a valid date")
        return parsed


@dataclass
class User:
    """A stored user record."""

    id: int
    name: str
    email: str
    date_of_birth: datetime

    @classmethod
    def from_draft(cls, user_id: int, draft: UserDraft) -> "User":
        return cls(
            id=user_id,
            name=draft.name,
            email=draft.email,
            date_of_birth=draft.date_of_birth,
        )

    def apply(self, draft: UserDraft) -> None:
        """Overwrite every client-settable field; the id stays."""
        self.name = draft.name
        self.email = draft.email
        self.date_of_birth = draft.date_of_birth

    def to_dict(self) -> dict:
        """Wire shape: {"id", "name", "email", "dateOfBirth"}."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "dateOfBirth": format_timestamp(self.date_of_birth),
        }


# =============================================================================
# BODY PARSE RESULTS
# =============================================================================

@dataclass(frozen=True)
class ParsedDraft:
    draft: UserDraft


@dataclass(frozen=True)
class MalformedBody:
    """The body is not JSON at all (or not UTF-8), or is an empty JSON value."""

    reason: str = ""


@dataclass(frozen=True)
class InvalidDraft:
    """JSON, but not a usable user; `fields` names what failed."""

    fields: tuple[str, ...] = ()


ParseResult = Union[ParsedDraft, MalformedBody, InvalidDraft]


def _reject_constant(name: str) -> Any:
    # Python's json accepts NaN/Infinity; JSON proper does not.
    raise ValueError(f"Invalid JSON constant: {name}")


def parse_user_draft(body: bytes) -> ParseResult:
    """
    Decode and validate a create/replace request body.

    Returns:
        MalformedBody   body is not UTF-8 JSON (empty included), or is one of
                        the empty values null, false, 0 and ""
        InvalidDraft    JSON that is not an object, or with bad fields
        ParsedDraft     everything checks out
    """
    try:
        data = json.loads(body.decode("utf-8"), parse_constant=_reject_constant)
    except (UnicodeDecodeError, ValueError) as e:
        return MalformedBody(reason=str(e))

    # {} and [] still count as values and fail field validation below
    if not data and not isinstance(data, (dict, list)):
        return MalformedBody(reason=f"empty JSON value: {data!r}")

    if not isinstance(data, dict):
        return InvalidDraft(fields=("body",))

    try:
        return ParsedDraft(draft=UserDraft.model_validate(data))
    except ValidationError as e:
        failed = dict.fromkeys(
            str(error["loc"][0]) if error["loc"] else "body"
            for error in e.errors()
        )
        return InvalidDraft(fields=tuple(failed))
