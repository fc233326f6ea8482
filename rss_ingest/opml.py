"""OPML subscription list parsing."""

from __future__ import annotations

import logging
from typing import List
from xml.etree import ElementTree as ET

logger = logging.getLogger(__name__)


def parse_opml(path: str) -> List[str]:
    """Return the ``xmlUrl`` of every outline, nested ones included, in document order."""
    logger.info("Loading OPML subscriptions from %s", path)
    tree = ET.parse(path)
    body = tree.getroot().find("body")
    if body is None:
        raise ValueError(f"{path} is missing the <body> section.")

    feed_urls: List[str] = []

    def walk(outline: ET.Element) -> None:
        feed_url = (outline.attrib.get("xmlUrl") or "").strip()
        if feed_url:
            feed_urls.append(feed_url)
            logger.debug("Found feed '%s'", feed_url)
        for child in outline.findall("outline"):
            walk(child)

    for outline in body.findall("outline"):
        walk(outline)

    logger.info("Loaded %d feeds from %s", len(feed_urls), path)
    return feed_urls
