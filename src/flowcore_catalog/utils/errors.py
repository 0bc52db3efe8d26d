"""Error taxonomy for the catalog crawler and helpers for classifying failures."""

from __future__ import annotations

import asyncio
from enum import Enum

import httpx


class CatalogError(Exception):
    """Base class for every error raised by the crawler core."""


class AuthenticationError(CatalogError):
    """The login sequence exhausted its retry budget or failed verification."""

    def __init__(self, message: str, *, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts


class TransportError(CatalogError):
    """Timeout, connection failure, or non-2xx status on a fatal fetch."""

    def __init__(self, message: str, *, url: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class AuthorizationDuringCrawl(TransportError):
    """A 401/403 observed while the crawl was already authenticated."""


class CrawlError(str, Enum):
    """Categorised failure kinds used to tag log lines."""

    TIMEOUT = "timeout"
    CONNECTION = "connection"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    RATE_LIMIT = "rate_limit"
    TEMPORARY = "temporary"
    UNKNOWN = "unknown"


AUTHORIZATION_STATUSES = frozenset({401, 403})


def is_authorization_status(status_code: int | None) -> bool:
    return status_code in AUTHORIZATION_STATUSES


def classify_status(status_code: int) -> CrawlError:
    if status_code == 404:
        return CrawlError.NOT_FOUND
    if status_code in AUTHORIZATION_STATUSES:
        return CrawlError.UNAUTHORIZED
    if status_code == 429:
        return CrawlError.RATE_LIMIT
    if 500 <= status_code < 600:
        return CrawlError.TEMPORARY
    return CrawlError.UNKNOWN


def classify_crawl_exception(exc: BaseException) -> CrawlError:
    """Best-effort mapping from arbitrary exceptions to :class:`CrawlError`."""

    status = _extract_status_code(exc)
    if status is not None:
        return classify_status(status)
    if isinstance(exc, (asyncio.TimeoutError, httpx.TimeoutException)):
        return CrawlError.TIMEOUT
    if isinstance(exc, httpx.RequestError):
        return CrawlError.CONNECTION
    return CrawlError.UNKNOWN


def _extract_status_code(exc: BaseException) -> int | None:
    if isinstance(exc, TransportError):
        return exc.status_code
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    return None


def raise_for_listing_status(response: httpx.Response) -> None:
    """Raise the crawl-fatal error matching ``response`` when it is not 2xx."""

    if response.is_success:
        return
    url = str(response.request.url) if response.request is not None else None
    status = response.status_code
    if is_authorization_status(status):
        raise AuthorizationDuringCrawl(
            f"Listing page returned status: {status}", url=url, status_code=status
        )
    raise TransportError(f"Listing page returned status: {status}", url=url, status_code=status)


def transport_error_from(exc: httpx.HTTPError | httpx.InvalidURL, url: str) -> TransportError:
    """Wrap an httpx failure raised while fetching ``url``."""

    kind = classify_crawl_exception(exc)
    return TransportError(f"Request to {url} failed ({kind.value}): {exc}", url=url)


__all__ = [
    "AuthenticationError",
    "AuthorizationDuringCrawl",
    "CatalogError",
    "CrawlError",
    "TransportError",
    "classify_crawl_exception",
    "classify_status",
    "is_authorization_status",
    "raise_for_listing_status",
    "transport_error_from",
]
