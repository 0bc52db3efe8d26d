from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import replace

import httpx
import pytest

from flowcore_catalog.config.config import CrawlerSettings

BASE_URL = "https://catalog.test"

LOGIN_PAGE = """
<html><body>
  <form action="/login" method="post">
    <input name="username" value="">
    <input name="password" type="password" value="">
  </form>
  <a href="/demo-login" class="btn">Demo Login</a>
</body></html>
"""

Handler = Callable[[httpx.Request], httpx.Response]


class FakeSite:
    """In-memory stand-in for the source site, served through ``httpx.MockTransport``.

    Routes are keyed by method plus raw path (query included); a route
    registered without a query also answers any query on that path.
    """

    def __init__(self) -> None:
        self._routes: dict[tuple[str, str], Handler] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        path: str,
        body: str = "",
        *,
        status: int = 200,
        method: str = "GET",
        headers: dict[str, str] | None = None,
    ) -> None:
        def _respond(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status, text=body, headers=headers)

        self._routes[(method, path)] = _respond

    def add_handler(self, path: str, handler: Handler, *, method: str = "GET") -> None:
        self._routes[(method, path)] = handler

    def redirect(self, path: str, location: str, *, set_cookie: str | None = None) -> None:
        headers = {"Location": location}
        if set_cookie:
            headers["Set-Cookie"] = set_cookie
        self.add(path, status=302, headers=headers)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        # Every request suspends, like a real network round trip.
        await asyncio.sleep(0)
        self.requests.append(request)
        raw = request.url.raw_path.decode()
        handler = self._routes.get((request.method, raw)) or self._routes.get(
            (request.method, request.url.path)
        )
        if handler is None:
            return httpx.Response(404, text="not found")
        return handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def hits(self, path: str, method: str = "GET") -> int:
        """Requests whose raw path (query included) equals ``path``."""
        return sum(
            1
            for request in self.requests
            if request.method == method and request.url.raw_path.decode() == path
        )

    def paths(self) -> list[str]:
        return [request.url.raw_path.decode() for request in self.requests]


@pytest.fixture
def settings() -> CrawlerSettings:
    return CrawlerSettings(
        base_url=BASE_URL,
        request_timeout=5.0,
        max_auth_retries=3,
        auth_backoff_seconds=0.0,
        request_delay=0.0,
        enrich_batch_pause=0.0,
        directory_probe_paths=(),
    )


@pytest.fixture
def make_settings(settings: CrawlerSettings) -> Callable[..., CrawlerSettings]:
    def _make(**overrides) -> CrawlerSettings:
        return replace(settings, **overrides)

    return _make


@pytest.fixture
def site() -> FakeSite:
    return FakeSite()


@pytest.fixture
def demo_site(site: FakeSite) -> FakeSite:
    """A site whose demo login sets a cookie and whose listing is reachable."""

    site.add("/login", LOGIN_PAGE)
    site.redirect("/demo-login", "/m", set_cookie="catalog_session=abc123; Path=/")
    site.add("/m", "<html><body><p>empty listing</p></body></html>")
    return site
