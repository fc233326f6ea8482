from typing import Callable, Dict, List, Tuple, Union

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from rss_ingest.db import Database
from rss_ingest.fetching import HttpClient


def make_response(
    url: str,
    body: Union[bytes, str] = b"",
    status: int = 200,
    content_type: str = "text/html; charset=utf-8",
) -> requests.Response:
    """Build a real ``requests.Response`` without touching the network."""
    response = requests.Response()
    response.status_code = status
    response._content = body.encode("utf-8") if isinstance(body, str) else body
    response.headers = CaseInsensitiveDict()
    if content_type:
        response.headers["Content-Type"] = content_type
    response.url = url
    response.encoding = "utf-8"
    return response


Route = Union[requests.Response, Exception, Callable[[], requests.Response]]


class FakeSession:
    """Stands in for ``requests.Session``; unknown URLs answer 404."""

    def __init__(self) -> None:
        self.headers: Dict[str, str] = {}
        self.routes: Dict[Tuple[str, str], Route] = {}
        self.calls: List[Tuple[str, str]] = []
        self.timeouts: List[float] = []
        self.closed = False

    def add(self, url, body="", status=200, content_type="text/html; charset=utf-8", method="GET"):
        self.routes[(method, url)] = make_response(url, body, status, content_type)

    def add_route(self, url, route: Route, method="GET"):
        self.routes[(method, url)] = route

    def fail(self, url, exc=None, method="GET"):
        self.routes[(method, url)] = exc or requests.ConnectionError(f"cannot reach {url}")

    def request(self, method, url, timeout=None, allow_redirects=True):
        self.calls.append((method, url))
        self.timeouts.append(timeout)
        route = self.routes.get((method, url))
        if route is None:
            return make_response(url, b"", 404, content_type=None)
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route()
        return route

    def close(self):
        self.closed = True


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def http_client(fake_session):
    return HttpClient(timeout=5.0, session=fake_session)


@pytest.fixture
def database(tmp_path):
    database = Database.from_url(f"sqlite:///{tmp_path / 'test.db'}")
    yield database
    database.close()
