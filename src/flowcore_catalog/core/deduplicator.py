"""Merge records gathered by every discovery path into one catalog."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from flowcore_catalog.core.models import DownloadLink, Record
from flowcore_catalog.core.record_extractor import UNKNOWN_QUALITY, url_basename
from flowcore_catalog.utils.logger import logger

_NON_WORD_RE = re.compile(r"[^\w\s]")

BACKFILL_FIELDS: tuple[str, ...] = (
    "poster_url",
    "description",
    "detail_url",
    "genres",
    "rating",
    "language",
)


def normalize_title(title: str) -> str:
    return _NON_WORD_RE.sub("", title.lower().strip())


def dedup_key(record: Record) -> str:
    """``normalized title _ year _ basename(first link)``; file names compare case-insensitively."""

    first_url = record.download_links[0].url if record.download_links else ""
    return f"{normalize_title(record.title)}_{record.year}_{url_basename(first_url).lower()}"


def _same_rendition(existing: DownloadLink, candidate: DownloadLink) -> bool:
    if existing.url == candidate.url:
        return True
    if not existing.quality or not existing.format or existing.quality == UNKNOWN_QUALITY:
        return False
    return existing.quality == candidate.quality and existing.format == candidate.format


def merge_links(links: list[DownloadLink], incoming: Iterable[DownloadLink]) -> int:
    """Append links from ``incoming`` not already represented; return how many were added."""

    added = 0
    for candidate in incoming:
        if any(_same_rendition(existing, candidate) for existing in links):
            continue
        links.append(candidate)
        added += 1
    return added


def _is_empty(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (set, list, dict)):
        return len(value) == 0
    return False


def merge_into(canonical: Record, other: Record) -> Record:
    """Fold ``other`` into ``canonical`` in place. The canonical id never changes."""

    merge_links(canonical.download_links, other.download_links)
    for name in BACKFILL_FIELDS:
        value = getattr(other, name)
        if _is_empty(getattr(canonical, name)) and not _is_empty(value):
            setattr(canonical, name, set(value) if isinstance(value, set) else value)
    if other.is_mkv and not canonical.is_mkv:
        canonical.is_mkv = True
        canonical.mkv_features = canonical.mkv_features or other.mkv_features
    return canonical


@dataclass
class Deduplicator:
    """Keeps the first record per key and merges later ones into it."""

    _canonical: dict[str, Record] = field(default_factory=dict, init=False, repr=False)
    _order: list[Record] = field(default_factory=list, init=False, repr=False)
    merged: int = 0

    def add(self, record: Record) -> Record:
        key = dedup_key(record)
        existing = self._canonical.get(key)
        if existing is None:
            self._canonical[key] = record
            self._order.append(record)
            return record
        self.merged += 1
        return merge_into(existing, record)

    def extend(self, records: Iterable[Record]) -> None:
        for record in records:
            self.add(record)

    @property
    def records(self) -> list[Record]:
        return list(self._order)


def deduplicate(records: Iterable[Record]) -> list[Record]:
    """Canonical records in first-seen order."""

    dedup = Deduplicator()
    dedup.extend(records)
    result = dedup.records
    logger.info("[DEDUP] %d unique records (%d merged)", len(result), dedup.merged)
    return result


__all__ = [
    "Deduplicator",
    "dedup_key",
    "deduplicate",
    "merge_into",
    "merge_links",
    "normalize_title",
]
