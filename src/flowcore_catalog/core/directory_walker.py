"""Speculative probing of well-known content directories."""

from __future__ import annotations

from flowcore_catalog.config.config import CrawlerSettings
from flowcore_catalog.core.models import Provenance, Record
from flowcore_catalog.core.record_extractor import (
    VIDEO_EXTENSIONS,
    extract_from_filename,
    is_direct_media,
    url_basename,
)
from flowcore_catalog.core.session_manager import SessionManager
from flowcore_catalog.utils.batch_utils import polite_delay
from flowcore_catalog.utils.errors import TransportError
from flowcore_catalog.utils.html_query import Document, join_url
from flowcore_catalog.utils.logger import discovery_logger


def _as_directory(url: str) -> str:
    return url if url.endswith("/") else url + "/"


def file_records(page: Document, directory_url: str) -> list[Record]:
    """Single-file records for every video link on a directory page."""

    records: list[Record] = []
    seen: set[str] = set()
    for anchor in page.anchors():
        href = anchor.attr("href").strip()
        file_url = join_url(_as_directory(directory_url), href)
        if not is_direct_media(file_url) or file_url in seen:
            continue
        seen.add(file_url)
        text = anchor.text()
        filename = text if text.lower().endswith(VIDEO_EXTENSIONS) else url_basename(file_url)
        records.append(extract_from_filename(filename, file_url))
    return records


def directory_links(page: Document) -> list[str]:
    """Hrefs that look like sub-directories: a slash, no dot, not a parent link."""

    hrefs: list[str] = []
    for anchor in page.select('a[href*="/"]'):
        href = anchor.attr("href").strip()
        if not href or "." in href or href == "/":
            continue
        hrefs.append(href)
    return list(dict.fromkeys(hrefs))


class DirectoryWalker:
    def __init__(self, session: SessionManager) -> None:
        self._session = session
        self._settings: CrawlerSettings = session.settings

    def _probe_url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return self._settings.base_url + "/" + path.lstrip("/")

    async def _fetch_directory(self, url: str) -> Document | None:
        try:
            response = await self._session.fetch(
                url,
                phase="directory",
                provenance=Provenance.DIRECTORY.value,
                logger=discovery_logger,
            )
        except TransportError as exc:
            discovery_logger.warning("[DIRECTORY] Probe %s failed: %s", url, exc)
            return None
        if not response.is_success:
            discovery_logger.debug("[DIRECTORY] %s not available (%d)", url, response.status_code)
            return None
        return Document.parse(response.content)

    async def _walk_subdirectories(self, page: Document, directory_url: str) -> list[Record]:
        subdirs = directory_links(page)
        if not subdirs or len(subdirs) >= self._settings.directory_subdir_cap:
            if subdirs:
                discovery_logger.info(
                    "[DIRECTORY] %s lists %d sub-directories, not recursing",
                    directory_url,
                    len(subdirs),
                )
            return []

        records: list[Record] = []
        for href in subdirs[: self._settings.directory_recurse_limit]:
            sub_url = join_url(_as_directory(directory_url), href)
            if not sub_url:
                continue
            sub_page = await self._fetch_directory(sub_url)
            if sub_page is None:
                continue
            records.extend(file_records(sub_page, sub_url))
        return records

    async def walk(self) -> list[Record]:
        records: list[Record] = []
        for index, path in enumerate(self._settings.directory_probe_paths):
            if index:
                await polite_delay(self._settings.request_delay)
            directory_url = self._probe_url(path)
            page = await self._fetch_directory(directory_url)
            if page is None:
                continue

            found = file_records(page, directory_url)
            found.extend(await self._walk_subdirectories(page, directory_url))
            discovery_logger.info("[DIRECTORY] %s: %d file records", directory_url, len(found))
            records.extend(found)

        discovery_logger.info("[DIRECTORY] %d records from directory probes", len(records))
        return records


__all__ = ["DirectoryWalker", "directory_links", "file_records"]
