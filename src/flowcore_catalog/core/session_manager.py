"""Authenticated HTTP session for the source site."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httpx

from flowcore_catalog.config.config import CrawlerSettings, default_headers
from flowcore_catalog.core.login_strategies import (
    LoginAction,
    LoginContext,
    find_login_action,
)
from flowcore_catalog.utils.errors import (
    AuthenticationError,
    classify_crawl_exception,
    is_authorization_status,
    transport_error_from,
)
from flowcore_catalog.utils.html_query import Document
from flowcore_catalog.utils.logger import session_logger
from flowcore_catalog.utils.structured_logging import log_http_event


@dataclass
class SessionState:
    """Authentication bookkeeping for the shared client."""

    authenticated: bool = False
    last_auth_time: float | None = None
    auth_retry_count: int = 0

    def is_expired(self, ttl: float, now: float | None = None) -> bool:
        """Check if the session is missing or older than ``ttl`` seconds."""
        if not self.authenticated or self.last_auth_time is None:
            return True
        current = time.time() if now is None else now
        return current - self.last_auth_time > ttl

    def mark_authenticated(self, now: float) -> None:
        self.authenticated = True
        self.last_auth_time = now
        self.auth_retry_count = 0

    def mark_failed(self) -> int:
        """Increment failure count and return current count."""
        self.authenticated = False
        self.auth_retry_count += 1
        return self.auth_retry_count

    def clear(self) -> None:
        self.authenticated = False
        self.last_auth_time = None
        self.auth_retry_count = 0


class SessionManager:
    """Owns the cookie store and client used for every request to the source.

    Walkers receive the client through :meth:`get_client` and never build
    their own, so cookies set by the demo-login handshake apply everywhere.
    """

    def __init__(
        self,
        settings: CrawlerSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._clock = clock
        self._client: httpx.AsyncClient | None = None
        self._auth_lock = asyncio.Lock()
        self.state = SessionState()

    @property
    def settings(self) -> CrawlerSettings:
        return self._settings

    @property
    def ttl_seconds(self) -> float:
        return self._settings.session_ttl_minutes * 60.0

    def _build_client(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(self._settings.request_timeout)
        limits = httpx.Limits(
            max_connections=10,
            max_keepalive_connections=5,
            keepalive_expiry=30.0,
        )
        return httpx.AsyncClient(
            headers=default_headers(self._settings),
            timeout=timeout,
            limits=limits,
            follow_redirects=True,
            max_redirects=10,
            transport=self._transport,
        )

    def get_client(self) -> httpx.AsyncClient:
        """Return the shared client, creating it (and its cookie store) lazily."""
        if self._client is None:
            self._client = self._build_client()
        return self._client

    def cookie_names(self) -> list[str]:
        if self._client is None:
            return []
        return sorted({cookie.name for cookie in self._client.cookies.jar})

    def status(self) -> dict[str, Any]:
        last_auth = self.state.last_auth_time
        return {
            "authenticated": self.state.authenticated,
            "last_auth_time": (
                datetime.fromtimestamp(last_auth, tz=timezone.utc).isoformat()
                if last_auth is not None
                else None
            ),
            "auth_retry_count": self.state.auth_retry_count,
            "cookies": self.cookie_names(),
        }

    def mark_stale(self) -> None:
        """Force a fresh handshake on next use after a 401/403."""
        if self.state.authenticated:
            session_logger.warning("[AUTH] Authorization failure observed, session marked stale")
        self.state.authenticated = False

    async def fetch(
        self,
        url: str,
        *,
        phase: str,
        provenance: str | None = None,
        logger: logging.Logger | None = None,
    ) -> httpx.Response:
        """GET ``url`` through the shared client.

        httpx failures are wrapped in :class:`TransportError`; the response is
        returned whatever its status so callers decide what is fatal.
        """
        target_logger = logger or session_logger
        try:
            response = await self.get_client().get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            log_http_event(
                logging.WARNING,
                logger=target_logger,
                phase=phase,
                url=url,
                provenance=provenance,
                is_success=False,
                message=str(exc) or exc.__class__.__name__,
                extra={"error": classify_crawl_exception(exc).value},
            )
            raise transport_error_from(exc, url) from exc

        if is_authorization_status(response.status_code):
            self.mark_stale()
        log_http_event(
            logging.INFO if response.is_success else logging.WARNING,
            logger=target_logger,
            phase=phase,
            url=url,
            status_code=response.status_code,
            provenance=provenance,
            is_success=response.is_success,
        )
        return response

    async def _perform(self, action: LoginAction, attempt: int) -> None:
        client = self.get_client()
        if action.is_form and action.method == "POST":
            response = await client.post(action.url, data=action.data)
        elif action.is_form:
            response = await client.get(action.url, params=action.data)
        else:
            response = await client.get(action.url)

        log_http_event(
            logging.INFO if response.is_success else logging.WARNING,
            logger=session_logger,
            phase=f"login.{action.strategy}",
            url=action.url,
            status_code=response.status_code,
            attempt=attempt,
            is_success=response.is_success,
            extra={"final_url": str(response.url)} if str(response.url) != action.url else None,
        )

    async def _login_sequence(self, attempt: int) -> None:
        client = self.get_client()
        login_url = self._settings.login_url

        login_page = await client.get(login_url)
        log_http_event(
            logging.INFO,
            logger=session_logger,
            phase="login.page",
            url=login_url,
            status_code=login_page.status_code,
            attempt=attempt,
            is_success=login_page.is_success,
        )

        ctx = LoginContext(
            page=Document.parse(login_page.content),
            client=client,
            settings=self._settings,
        )
        action = await find_login_action(ctx)
        if action is not None:
            await self._perform(action, attempt)

        listing_url = self._settings.listing_url
        verification = await client.get(listing_url)
        log_http_event(
            logging.INFO if verification.is_success else logging.WARNING,
            logger=session_logger,
            phase="login.verify",
            url=listing_url,
            status_code=verification.status_code,
            attempt=attempt,
            is_success=verification.is_success,
        )
        if not verification.is_success:
            raise AuthenticationError(
                f"Listing page returned status: {verification.status_code}",
                attempts=attempt,
            )

    async def authenticate(self) -> bool:
        """Run the demo-login handshake, retrying with linear backoff.

        Raises :class:`AuthenticationError` once ``max_auth_retries`` attempts
        have failed.
        """
        max_attempts = max(self._settings.max_auth_retries, 1)
        self.state.auth_retry_count = 0

        while True:
            attempt = self.state.auth_retry_count + 1
            session_logger.info("[AUTH] Authentication attempt %d/%d", attempt, max_attempts)
            try:
                await self._login_sequence(attempt)
            except (AuthenticationError, httpx.HTTPError, httpx.InvalidURL) as exc:
                failures = self.state.mark_failed()
                session_logger.warning(
                    "[AUTH] Attempt %d failed (%s): %s",
                    attempt,
                    classify_crawl_exception(exc).value,
                    exc,
                )
                if failures >= max_attempts:
                    raise AuthenticationError(
                        f"Authentication failed after {failures} attempts: {exc}",
                        attempts=failures,
                    ) from exc
                await asyncio.sleep(self._settings.auth_backoff_seconds * failures)
                continue

            self.state.mark_authenticated(self._clock())
            session_logger.info("[AUTH] Authentication successful on attempt %d", attempt)
            return True

    async def ensure_authenticated(self) -> bool:
        """Authenticate unless a fresh session already exists."""
        if not self.state.is_expired(self.ttl_seconds, now=self._clock()):
            return True
        async with self._auth_lock:
            # Another waiter may have finished the handshake meanwhile.
            if not self.state.is_expired(self.ttl_seconds, now=self._clock()):
                return True
            return await self.authenticate()

    async def reset(self) -> None:
        """Drop cookies and client, forcing a fresh handshake on next use."""
        client, self._client = self._client, None
        self.state.clear()
        session_logger.info("[AUTH] Session reset")
        if client is not None:
            await client.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


__all__ = ["SessionManager", "SessionState"]
