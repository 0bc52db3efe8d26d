"""Primary listing page crawl and detail-page enrichment."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, field

from flowcore_catalog.core.models import Provenance, Record
from flowcore_catalog.core.node_selection import records_from_page
from flowcore_catalog.core.record_extractor import analyze_video_file, is_direct_media
from flowcore_catalog.core.session_manager import SessionManager
from flowcore_catalog.utils.batch_utils import chunked, polite_delay
from flowcore_catalog.utils.errors import (
    TransportError,
    classify_crawl_exception,
    raise_for_listing_status,
)
from flowcore_catalog.utils.html_query import Document, join_url
from flowcore_catalog.utils.logger import discovery_logger

DESCRIPTION_SELECTOR = ".description, .synopsis, .plot"
RATING_SELECTOR = ".rating, .imdb-rating"
GENRE_SELECTOR = ".genre, .genres"


@dataclass
class ListingResult:
    records: list[Record] = field(default_factory=list)
    page: Document | None = None
    url: str = ""


def needs_enrichment(record: Record) -> bool:
    return bool(record.detail_url) and not is_direct_media(record.detail_url)


class ListingCrawler:
    def __init__(self, session: SessionManager) -> None:
        self._session = session
        self._settings = session.settings

    async def crawl(self) -> ListingResult:
        """Fetch and extract the primary listing page.

        Raises :class:`TransportError` (or :class:`AuthorizationDuringCrawl`)
        when the page cannot be fetched or answers with a non-2xx status.
        """
        url = self._settings.listing_url
        response = await self._session.fetch(
            url,
            phase="listing",
            provenance=Provenance.MAIN.value,
            logger=discovery_logger,
        )
        raise_for_listing_status(response)

        page = Document.parse(response.content)
        records = records_from_page(page, self._settings, Provenance.MAIN, source_url=url)
        await self.enrich_all(records)
        discovery_logger.info("[LISTING] %d records from main listing %s", len(records), url)
        return ListingResult(records=records, page=page, url=str(response.url))

    async def enrich_all(self, records: Iterable[Record]) -> None:
        """Enrich records in fixed-size concurrent batches with a pause between."""

        candidates = [record for record in records if needs_enrichment(record)]
        if not candidates:
            return
        batches = chunked(candidates, self._settings.enrich_batch_size)
        for index, batch in enumerate(batches):
            await asyncio.gather(*(self.enrich(record) for record in batch))
            if index < len(batches) - 1:
                await polite_delay(self._settings.enrich_batch_pause)

    async def enrich(self, record: Record) -> Record:
        """Refresh ``record`` in place from its detail page.

        Failures are logged and leave the record untouched.
        """
        if not needs_enrichment(record):
            return record

        try:
            response = await self._session.fetch(
                record.detail_url,
                phase="enrich",
                provenance=record.provenance.value,
                logger=discovery_logger,
            )
        except TransportError as exc:
            discovery_logger.warning(
                "[ENRICH] Failed to fetch detail page for %r (%s)",
                record.title,
                classify_crawl_exception(exc.__cause__ or exc).value,
            )
            return record

        if not response.is_success:
            discovery_logger.warning(
                "[ENRICH] Detail page for %r returned status %d",
                record.title,
                response.status_code,
            )
            return record

        page = Document.parse(response.content)
        self._apply_detail_page(record, page, str(response.url))
        return record

    def _apply_detail_page(self, record: Record, page: Document, page_url: str) -> None:
        links = []
        seen: set[str] = set()
        for anchor in page.anchors():
            href = anchor.attr("href").strip()
            url = join_url(page_url, href)
            if not is_direct_media(url) or url in seen:
                continue
            seen.add(url)
            label = anchor.text()
            links.append(analyze_video_file(url, label or record.title, record.quality, label=label))

        if links:
            record.download_links = links
            mkv = next((link for link in links if link.format == "MKV"), None)
            if mkv is not None:
                record.is_mkv = True
                record.mkv_features = record.mkv_features or mkv.mkv_features

        description = page.select_one(DESCRIPTION_SELECTOR)
        if description is not None and description.text():
            record.description = description.text()

        rating = page.select_one(RATING_SELECTOR)
        if rating is not None and rating.text():
            record.rating = rating.text()

        for genre in page.select(GENRE_SELECTOR):
            if genre.text():
                record.genres.add(genre.text())

        discovery_logger.debug(
            "[ENRICH] %r: %d links, %d genres", record.title, len(links), len(record.genres)
        )


__all__ = ["ListingCrawler", "ListingResult", "needs_enrichment"]
