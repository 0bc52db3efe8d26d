"""Follow-up listing pages discovered from the primary page."""

from __future__ import annotations

import re
from urllib.parse import urldefrag

from flowcore_catalog.config.config import CrawlerSettings
from flowcore_catalog.core.models import Provenance, Record
from flowcore_catalog.core.node_selection import records_from_page
from flowcore_catalog.core.session_manager import SessionManager
from flowcore_catalog.utils.batch_utils import polite_delay
from flowcore_catalog.utils.errors import TransportError
from flowcore_catalog.utils.html_query import Document, join_url
from flowcore_catalog.utils.logger import discovery_logger

# Only the first selector that matches anything contributes links.
PAGINATION_SELECTORS: tuple[str, ...] = (
    'a[href*="page="]',
    'a[href*="p="]',
    ".pagination a",
    "a.page-link",
    "a.next",
    'a:-soup-contains("Next")',
    'a:-soup-contains(">")',
    'a[href*="/m/"]',
)

CATEGORY_MARKERS: tuple[str, ...] = (
    "/Hindi",
    "/English",
    "/Tamil",
    "/Bangla",
    "/2024",
    "/2025",
    "/genre/",
    "/category/",
)

MIN_NUMERIC_PAGE = 2
MAX_NUMERIC_PAGE = 5
_NUMERIC_TEXT_RE = re.compile(r"^\d+$")


def _usable_href(href: str) -> bool:
    return bool(href) and not href.startswith(("#", "javascript:", "mailto:"))


def pagination_links(page: Document) -> list[str]:
    for selector in PAGINATION_SELECTORS:
        nodes = page.select(selector)
        hrefs = [node.attr("href").strip() for node in nodes]
        hrefs = [href for href in hrefs if _usable_href(href)]
        if hrefs:
            discovery_logger.debug("[PAGINATION] %d links via %r", len(hrefs), selector)
            return list(dict.fromkeys(hrefs))
    return []


def category_links(page: Document) -> list[str]:
    """Language/year/genre links plus small numeric page links, in page order."""

    links: list[str] = []
    for anchor in page.anchors():
        href = anchor.attr("href").strip()
        if not _usable_href(href):
            continue
        if any(marker in href for marker in CATEGORY_MARKERS):
            links.append(href)
            continue
        text = anchor.text()
        if _NUMERIC_TEXT_RE.match(text) and MIN_NUMERIC_PAGE <= int(text) <= MAX_NUMERIC_PAGE:
            links.append(href)
    return list(dict.fromkeys(links))


def collect_page_urls(page: Document, page_url: str, limit: int) -> list[str]:
    """Ordered, de-duplicated absolute URLs to visit, category links first."""

    current = urldefrag(page_url).url
    urls: list[str] = []
    seen = {current}
    for href in category_links(page) + pagination_links(page):
        joined = join_url(page_url, href)
        if not joined:
            continue
        url = urldefrag(joined).url
        if url in seen:
            continue
        seen.add(url)
        urls.append(url)
    return urls[: max(limit, 0)]


class PaginationWalker:
    def __init__(self, session: SessionManager) -> None:
        self._session = session
        self._settings: CrawlerSettings = session.settings

    async def walk(self, page: Document, page_url: str) -> list[Record]:
        urls = collect_page_urls(page, page_url, self._settings.max_pagination_pages)
        discovery_logger.info("[PAGINATION] %d candidate pages from %s", len(urls), page_url)

        records: list[Record] = []
        visited = 0
        for url in urls:
            await polite_delay(self._settings.request_delay)
            try:
                response = await self._session.fetch(
                    url,
                    phase="pagination",
                    provenance=Provenance.PAGINATION.value,
                    logger=discovery_logger,
                )
            except TransportError as exc:
                discovery_logger.warning("[PAGINATION] Skipping %s: %s", url, exc)
                continue
            if not response.is_success:
                discovery_logger.warning(
                    "[PAGINATION] Skipping %s: status %d", url, response.status_code
                )
                continue

            page_records = records_from_page(
                Document.parse(response.content),
                self._settings,
                Provenance.PAGINATION,
                source_url=url,
            )
            visited += 1
            records.extend(page_records)

        discovery_logger.info(
            "[PAGINATION] Visited %d/%d pages, %d records", visited, len(urls), len(records)
        )
        return records


__all__ = [
    "PaginationWalker",
    "category_links",
    "collect_page_urls",
    "pagination_links",
]
