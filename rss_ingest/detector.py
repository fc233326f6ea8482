"""Feed dialect detection from the root element."""

from __future__ import annotations

import logging
from typing import Optional, Union

from .errors import MalformedXmlError
from .models import FeedFormat
from .xmlstream import EventKind, iter_events

logger = logging.getLogger(__name__)

ROOT_FORMATS = {
    "rss": FeedFormat.RSS2,
    "RDF": FeedFormat.RSS1,
    "feed": FeedFormat.ATOM,
}


def detect_format(data: Union[bytes, str]) -> Optional[FeedFormat]:
    """Return the dialect named by the first element, or ``None``."""
    try:
        for event in iter_events(data):
            if event.kind is EventKind.START:
                detected = ROOT_FORMATS.get(event.local_name)
                logger.debug(
                    "Root element <%s> detected as %s", event.name, detected
                )
                return detected
    except MalformedXmlError as exc:
        logger.debug("Format detection hit malformed XML: %s", exc)
    return None
