"""Best-effort favicon lookup for a feed's site."""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from .errors import TransportError
from .fetching import HttpClient

logger = logging.getLogger(__name__)

ICON_RELS = ("icon", "shortcut icon", "apple-touch-icon")


def _icon_href(soup: BeautifulSoup, rel: str) -> Optional[str]:
    wanted = rel.split()
    for element in soup.find_all("link"):
        rels = [value.lower() for value in element.get("rel") or []]
        if rels == wanted and element.get("href"):
            return element["href"]
    return None


def resolve_favicon(site_url: str, client: HttpClient) -> Optional[str]:
    """Return an icon URL for ``site_url`` or ``None``; never raises."""
    parts = urlparse(site_url)
    if not parts.scheme or not parts.netloc:
        return None

    default_icon = f"{parts.scheme}://{parts.netloc}/favicon.ico"
    try:
        if client.head(default_icon).ok:
            return default_icon
        response = client.get(site_url)
    except TransportError as exc:
        logger.debug("Favicon lookup for %s failed: %s", site_url, exc)
        return None

    soup = BeautifulSoup(response.text, "html.parser")
    for rel in ICON_RELS:
        href = _icon_href(soup, rel)
        if href:
            return urljoin(site_url, href)

    logger.debug("No favicon found for %s", site_url)
    return None
