"""Feed autodiscovery from arbitrary web pages."""

from __future__ import annotations

import logging
from typing import List
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .errors import DiscoveryError, TransportError
from .fetching import HttpClient
from .models import DiscoveredFeed

logger = logging.getLogger(__name__)

COMMON_FEED_PATHS = (
    "/feed",
    "/rss",
    "/rss.xml",
    "/feed.xml",
    "/atom.xml",
    "/index.xml",
    "/blog/feed",
    "/blog/rss",
    "/?feed=rss2",
)

FEED_BODY_PREFIXES = ("<?xml", "<rss", "<feed", "<rdf:RDF")
FEED_LINK_TYPES = ("rss", "atom", "feed")


def is_feed_content_type(content_type: str) -> bool:
    """True for XML, RSS, Atom or feed media types; XHTML pages are excluded."""
    value = (content_type or "").lower()
    if "xhtml" in value:
        return False
    return any(marker in value for marker in ("xml", "rss", "atom", "feed"))


def looks_like_feed(body: str) -> bool:
    return body.lstrip().startswith(FEED_BODY_PREFIXES)


def find_feed_links(html: str, base_url: str) -> List[DiscoveredFeed]:
    """Collect ``<link rel="alternate">`` feed references in document order."""
    soup = BeautifulSoup(html, "html.parser")
    found: List[DiscoveredFeed] = []
    for element in soup.find_all("link"):
        if element.get("rel") != ["alternate"]:
            continue
        link_type = (element.get("type") or "").lower()
        href = (element.get("href") or "").strip()
        if not href:
            continue
        if any(marker in link_type for marker in FEED_LINK_TYPES):
            found.append(DiscoveredFeed(url=urljoin(base_url, href)))
    return found


def probe_common_paths(url: str, client: HttpClient) -> List[DiscoveredFeed]:
    """HEAD each well-known feed path and stop at the first feed response."""
    for path in COMMON_FEED_PATHS:
        candidate = urljoin(url, path)
        try:
            response = client.head(candidate)
        except TransportError as exc:
            logger.debug("Probe %s failed: %s", candidate, exc)
            continue
        content_type = response.headers.get("Content-Type", "")
        if response.ok and is_feed_content_type(content_type):
            logger.debug("Probe %s matched (%s)", candidate, content_type)
            return [DiscoveredFeed(url=candidate)]
        logger.debug(
            "Probe %s rejected: status=%s type=%r",
            candidate,
            response.status_code,
            content_type,
        )
    return []


def discover(url: str, client: HttpClient) -> List[DiscoveredFeed]:
    """Resolve ``url`` to one or more feed URLs.

    The URL itself is returned when it already serves a feed. Otherwise the
    page's alternate links are used, and failing that a fixed list of common
    paths is probed. Raises ``DiscoveryError`` when nothing is found and
    ``TransportError`` when the page itself cannot be fetched.
    """
    response = client.get(url)
    content_type = response.headers.get("Content-Type", "")
    body = response.text

    if is_feed_content_type(content_type) or looks_like_feed(body):
        logger.info("%s is already a feed", url)
        return [DiscoveredFeed(url=url)]

    feeds = find_feed_links(body, url)
    if feeds:
        logger.info("Found %d feed link(s) on %s", len(feeds), url)
        return feeds

    feeds = probe_common_paths(url, client)
    if feeds:
        logger.info("Found feed at %s by probing", feeds[0].url)
        return feeds

    raise DiscoveryError(f"No feed found at {url}. Try providing the direct feed URL.")
