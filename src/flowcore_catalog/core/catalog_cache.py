from __future__ import annotations

from datetime import datetime

from flowcore_catalog.core.models import CrawlResult


class CatalogCache:
    """Holds the last successful crawl result.

    Writers replace the whole snapshot reference; readers always see either
    the previous or the new :class:`CrawlResult`, never a partial merge.
    """

    def __init__(self, initial: CrawlResult | None = None) -> None:
        self._snapshot = initial or CrawlResult.empty()

    def snapshot(self) -> CrawlResult:
        return self._snapshot

    def swap(self, result: CrawlResult) -> CrawlResult:
        previous, self._snapshot = self._snapshot, result
        return previous

    @property
    def last_crawl_time(self) -> datetime | None:
        return self._snapshot.crawled_at


__all__ = ["CatalogCache"]
