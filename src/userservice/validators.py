"""
=============================================================================
FIELD VALIDATORS
=============================================================================

Pure checks for the two user fields that have a grammar.

EMAIL
    local@domain, where

        local   dot-separated runs of  -!#$%&'*+/0-9=?A-Z^_`a-z{|}~
                at most 64 characters
        domain  dot-separated labels of 1-63 letters, digits or hyphens,
                never starting or ending with a hyphen
        whole   at most 254 characters

    The pattern is anchored with \\Z, so "a@b.com\\n" is rejected.

DATE OF BIRTH
    Anything datetime.fromisoformat() understands, plus the reduced forms
    YYYY and YYYY-MM:

        1990                         1990-01-01, midnight UTC
        1990-03                      1990-03-01, midnight UTC
        1990-01-01                   midnight UTC
        1990-01-01T08:30             taken as UTC
        1990-01-01T08:30:00.250Z     UTC
        1990-01-01T08:30:00+02:00    converted to UTC

    Timestamps are kept timezone-aware in UTC and written back out as
    "1990-01-01T00:00:00.000Z".

=============================================================================
"""

import re
from datetime import date, datetime, time, timezone
from typing import Optional


_EMAIL_ATOM = r"[-!#$%&'*+/0-9=?A-Z^_`a-z{|}~]+"
_DOMAIN_LABEL = r"[A-Za-z0-9]([A-Za-z0-9-]{0,61}[A-Za-z0-9])?"

EMAIL_PATTERN = re.compile(
    r"(?=.{1,254}\Z)"
    r"(?=.{1,64}@)"
    rf"{_EMAIL_ATOM}(\.{_EMAIL_ATOM})*"
    rf"@{_DOMAIN_LABEL}(\.{_DOMAIN_LABEL})*"
    r"\Z"
)


def is_valid_email(email: str) -> bool:
    """True if the whole string is an address under the grammar above."""
    return EMAIL_PATTERN.match(email) is not None


# ISO-8601 reduced precision: a year, or a year and month
_YEAR_MONTH = re.compile(r"([0-9]{4})(?:-([0-9]{2}))?\Z")


def parse_date(value: str) -> Optional[datetime]:
    """
    Parse an ISO-8601 date or date-time into an aware UTC datetime.

    Returns:
        The instant, or None if the string is not a date.

        >>> parse_date("1990-01-01")
        datetime.datetime(1990, 1, 1, 0, 0, tzinfo=datetime.timezone.utc)
        >>> parse_date("1990-03")
        datetime.datetime(1990, 3, 1, 0, 0, tzinfo=datetime.timezone.utc)
        >>> parse_date("not-a-date") is None
        True
    """
    text = value.strip()
    if not text:
        return None

    try:
        partial = _YEAR_MONTH.match(text)
        if partial:
            year, month = partial.groups()
            return datetime(int(year), int(month or 1), 1, tzinfo=timezone.utc)

        if "T" in text or " " in text:
            parsed = datetime.fromisoformat(text)
        else:
            parsed = datetime.combine(date.fromisoformat(text), time())
    except ValueError:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)

    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError:
        # e.g. 0001-01-01T00:00+05:00 lands before year 1
        return None


def is_valid_date(value: str) -> bool:
    """True if parse_date() yields an instant."""
    return parse_date(value) is not None


def format_timestamp(moment: datetime) -> str:
    """
    ISO-8601 UTC with millisecond precision and a Z suffix.

        >>> format_timestamp(datetime(1990, 1, 1, tzinfo=timezone.utc))
        '1990-01-01T00:00:00.000Z'
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.replace(tzinfo=None).isoformat(timespec="milliseconds") + "Z"
