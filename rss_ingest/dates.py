"""Permissive date parsing for feed timestamps."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Optional

logger = logging.getLogger(__name__)

# Named zones that show up in RSS pubDate values, mapped to RFC 2822 offsets.
NAMED_ZONE_OFFSETS = (
    ("GMT", "+0000"),
    ("EST", "-0500"),
    ("EDT", "-0400"),
    ("CST", "-0600"),
    ("CDT", "-0500"),
    ("MST", "-0700"),
    ("MDT", "-0600"),
    ("PST", "-0800"),
    ("PDT", "-0700"),
    ("UTC", "+0000"),
)

NAIVE_FORMATS = (
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%SZ",
    "%d %b %Y %H:%M:%S",
    "%d %B %Y %H:%M:%S",
    "%a, %d %b %Y %H:%M:%S",
    "%d/%m/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M:%S",
)

DATE_ONLY_FORMAT = "%Y-%m-%d"

# "[Day,] DD Mon YYYY HH:MM[:SS] ZONE" where ZONE is numeric or a name.
_RFC2822_SHAPE = re.compile(
    r"^(?:[A-Za-z]{3},\s*)?\d{1,2}\s+[A-Za-z]{3}\s+\d{2,4}\s+"
    r"\d{1,2}:\d{2}(?::\d{2})?\s*(?:[+-]\d{4}|[A-Za-z]{1,5})$"
)


def _to_utc(value: datetime) -> datetime:
    """Convert to UTC, clamping to the representable range at the year edges."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    try:
        return value.astimezone(timezone.utc)
    except OverflowError:
        # A negative offset pushes past datetime.max, a positive one below datetime.min.
        edge = datetime.max if value.utcoffset() < timedelta(0) else datetime.min
        logger.debug("Clamping out-of-range date %s to %s", value, edge)
        return edge.replace(tzinfo=timezone.utc)


def _parse_rfc3339(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return None
    return _to_utc(parsed)


def _parse_rfc2822(value: str) -> Optional[datetime]:
    if not _RFC2822_SHAPE.match(value):
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError, OverflowError):
        return None
    return _to_utc(parsed)


def _replace_named_zones(value: str) -> str:
    for name, offset in NAMED_ZONE_OFFSETS:
        value = value.replace(name, offset)
    return value


def _parse_naive(value: str) -> Optional[datetime]:
    for fmt in NAIVE_FORMATS:
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def _parse_date_only(value: str) -> Optional[datetime]:
    try:
        return datetime.strptime(value, DATE_ONLY_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def parse_date(value: Optional[str]) -> Optional[datetime]:
    """Parse a feed date string into a UTC datetime.

    Tries RFC 3339, RFC 2822, RFC 2822 with named zones rewritten to
    offsets, a list of naive layouts read as UTC, then a bare date. Returns
    ``None`` when nothing matches; never raises.
    """
    if not value:
        return None
    text = value.strip()
    if not text:
        return None

    parsed = _parse_rfc3339(text)
    if parsed is not None:
        return parsed

    parsed = _parse_rfc2822(text)
    if parsed is not None:
        return parsed

    normalized = _replace_named_zones(text)
    if normalized != text:
        parsed = _parse_rfc2822(normalized)
        if parsed is not None:
            return parsed

    parsed = _parse_naive(text)
    if parsed is not None:
        return parsed

    parsed = _parse_date_only(text)
    if parsed is None:
        logger.debug("Unrecognised date value: %r", text)
    return parsed
