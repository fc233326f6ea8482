"""Generic event-driven feed parser."""

from __future__ import annotations

import logging
from typing import Union

from .detector import detect_format
from .dialects import DIALECTS, Dialect, ParserState
from .errors import MissingFieldError, UnknownFormatError
from .models import Feed
from .xmlstream import EventKind, iter_events

logger = logging.getLogger(__name__)


def parse_with_dialect(
    data: Union[bytes, str], feed_url: str, dialect: Dialect
) -> Feed:
    """Parse ``data`` with an explicit dialect table.

    Raises ``MalformedXmlError`` for ill-formed input and
    ``MissingFieldError`` when no feed title was found.
    """
    state = ParserState(feed=Feed(title="", link="", feed_url=feed_url))

    for event in iter_events(data):
        if event.kind is EventKind.START:
            dialect.start_element(state, event)
            state.tag = event.local_name
            state.qualified_tag = event.name
        elif event.kind is EventKind.END:
            dialect.end_element(state, event)
            state.tag = ""
            state.qualified_tag = ""
        else:
            dialect.handle_text(state, event.text)

    feed = state.feed
    if not feed.title:
        raise MissingFieldError("title")

    logger.debug(
        "Parsed %s feed %s with %d entries",
        dialect.format.value,
        feed_url,
        len(feed.entries),
    )
    return feed


def parse(data: Union[bytes, str], feed_url: str) -> Feed:
    """Detect the dialect of ``data`` and parse it into a canonical ``Feed``."""
    feed_format = detect_format(data)
    if feed_format is None:
        raise UnknownFormatError()
    return parse_with_dialect(data, feed_url, DIALECTS[feed_format])
