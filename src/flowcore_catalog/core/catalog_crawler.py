"""Crawler context: owns the session and the cache and runs crawl cycles."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Any

import httpx

from flowcore_catalog.config.config import CrawlerSettings
from flowcore_catalog.core.catalog_cache import CatalogCache
from flowcore_catalog.core.deduplicator import deduplicate
from flowcore_catalog.core.directory_walker import DirectoryWalker
from flowcore_catalog.core.listing_crawler import ListingCrawler
from flowcore_catalog.core.models import CrawlResult, Record
from flowcore_catalog.core.pagination_walker import PaginationWalker
from flowcore_catalog.core.session_manager import SessionManager
from flowcore_catalog.utils.errors import AuthenticationError, AuthorizationDuringCrawl
from flowcore_catalog.utils.logger import logger
from flowcore_catalog.utils.structured_logging import log_structured_event


class CatalogCrawler:
    """Single entry point used by the API layer and the scheduler.

    Construct one per process and share it. At most one crawl runs at a
    time; a :meth:`crawl` call arriving meanwhile gets the cached snapshot.
    """

    def __init__(
        self,
        settings: CrawlerSettings,
        *,
        session: SessionManager | None = None,
        cache: CatalogCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings
        self.session = session or SessionManager(settings, transport=transport)
        self.cache = cache or CatalogCache()
        self.listing = ListingCrawler(self.session)
        self.pagination = PaginationWalker(self.session)
        self.directories = DirectoryWalker(self.session)
        self._in_progress = False

    async def __aenter__(self) -> CatalogCrawler:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    async def crawl(self) -> CrawlResult:
        """Run one crawl cycle and publish its result.

        On failure the cached snapshot is left as it was and the error
        propagates.
        """
        if self._in_progress:
            logger.info("[CRAWL] Crawl already in progress, returning current snapshot")
            return self.cache.snapshot()

        self._in_progress = True
        try:
            result = await self._crawl_with_reauth()
            self.cache.swap(result)
            return result
        finally:
            self._in_progress = False

    async def _crawl_with_reauth(self) -> CrawlResult:
        try:
            return await self._run_once()
        except AuthorizationDuringCrawl as exc:
            logger.warning("[CRAWL] %s; resetting session and retrying once", exc)
            await self.session.reset()

        try:
            return await self._run_once()
        except AuthorizationDuringCrawl as exc:
            raise AuthenticationError(
                f"Authorization still failing after re-authentication: {exc}",
                attempts=2,
            ) from exc

    async def _run_once(self) -> CrawlResult:
        started = time.monotonic()
        await self.session.ensure_authenticated()

        listing = await self.listing.crawl()
        pagination_records: list[Record] = []
        if listing.page is not None:
            pagination_records = await self.pagination.walk(listing.page, listing.url)
        directory_records = await self.directories.walk()

        merged = deduplicate([*listing.records, *pagination_records, *directory_records])
        result = CrawlResult(records=tuple(merged), crawled_at=datetime.now(timezone.utc))

        log_structured_event(
            logging.INFO,
            category="crawl.summary",
            logger=logger,
            main=len(listing.records),
            pagination=len(pagination_records),
            directory=len(directory_records),
            merged=len(merged),
            duration_seconds=round(time.monotonic() - started, 3),
        )
        return result

    def get_snapshot(self) -> CrawlResult:
        return self.cache.snapshot()

    @property
    def last_crawl_time(self) -> datetime | None:
        return self.cache.last_crawl_time

    async def enrich(self, record: Record) -> Record:
        """Re-run detail-page enrichment for one known record, in place."""
        await self.session.ensure_authenticated()
        return await self.listing.enrich(record)

    async def authenticate(self) -> bool:
        return await self.session.authenticate()

    async def ensure_authenticated(self) -> bool:
        return await self.session.ensure_authenticated()

    async def reset(self) -> None:
        await self.session.reset()

    def status(self) -> dict[str, Any]:
        snapshot = self.cache.snapshot()
        return {
            "session": self.session.status(),
            "crawl_in_progress": self._in_progress,
            "last_crawl_time": snapshot.crawled_at.isoformat() if snapshot.crawled_at else None,
            "records": len(snapshot.records),
        }

    async def aclose(self) -> None:
        await self.session.aclose()


__all__ = ["CatalogCrawler"]
