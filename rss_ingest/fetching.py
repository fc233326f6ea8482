"""HTTP access for feed fetching, discovery probes and favicon lookups."""

from __future__ import annotations

import logging
from typing import Optional

import requests

from .errors import TransportError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15.0
DEFAULT_USER_AGENT = "rss-ingest/0.1"


class HttpClient:
    """Thin wrapper over a ``requests.Session`` with a fixed timeout and agent.

    Every ``requests`` failure is re-raised as ``TransportError``. No retries
    are attempted; the timeout is the only bound on a call.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self.session = session if session is not None else requests.Session()
        self.session.headers["User-Agent"] = user_agent

    def _request(self, method: str, url: str) -> requests.Response:
        logger.debug("%s %s", method, url)
        try:
            return self.session.request(
                method, url, timeout=self.timeout, allow_redirects=True
            )
        except requests.RequestException as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc

    def get(self, url: str) -> requests.Response:
        return self._request("GET", url)

    def head(self, url: str) -> requests.Response:
        return self._request("HEAD", url)

    def fetch_bytes(self, url: str) -> bytes:
        """GET ``url`` and return the body, raising on a non-2xx status."""
        logger.info("Fetching %s", url)
        response = self.get(url)
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise TransportError(f"GET {url} failed: {exc}") from exc
        return response.content

    def close(self) -> None:
        self.session.close()
