"""Shared models for the catalog core."""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Provenance(str, Enum):
    """Discovery path that produced a record."""

    MAIN = "main"
    PAGINATION = "pagination"
    DIRECTORY = "directory"


@dataclass
class MkvFeatures:
    """Advisory track hints guessed from a Matroska file name."""

    has_subtitles: bool = False
    audio_tracks: list[str] = field(default_factory=list)
    multi_audio: bool = False
    video_codec: str = ""
    audio_codec: str = ""
    resolution: str = ""
    hdr: bool = False


@dataclass
class DownloadLink:
    url: str
    quality: str = ""
    format: str = ""
    label: str = ""
    filename: str = ""
    mkv_features: MkvFeatures | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        if self.mkv_features is None:
            payload.pop("mkv_features")
        return payload


def new_record_id() -> str:
    return f"rec_{uuid.uuid4().hex}"


@dataclass
class Record:
    """Candidate or merged catalog entry.

    ``id`` is assigned once when the record is extracted and never changes,
    including when later duplicates are merged into it.
    """

    title: str
    id: str = field(default_factory=new_record_id)
    year: str = ""
    language: str = ""
    quality: str = ""
    size_label: str = ""
    poster_url: str = ""
    detail_url: str = ""
    description: str = ""
    genres: set[str] = field(default_factory=set)
    rating: str = ""
    download_links: list[DownloadLink] = field(default_factory=list)
    provenance: Provenance = Provenance.MAIN
    is_mkv: bool = False
    mkv_features: MkvFeatures | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "year": self.year,
            "language": self.language,
            "quality": self.quality,
            "size_label": self.size_label,
            "poster_url": self.poster_url,
            "detail_url": self.detail_url,
            "description": self.description,
            "genres": sorted(self.genres),
            "rating": self.rating,
            "download_links": [link.to_dict() for link in self.download_links],
            "provenance": self.provenance.value,
            "is_mkv": self.is_mkv,
            "mkv_features": asdict(self.mkv_features) if self.mkv_features else None,
        }


@dataclass(frozen=True)
class CrawlResult:
    """Immutable snapshot produced by one crawl."""

    records: tuple[Record, ...] = ()
    crawled_at: datetime | None = None

    @classmethod
    def empty(cls) -> CrawlResult:
        return cls()

    def to_dict(self) -> dict[str, Any]:
        return {
            "crawled_at": self.crawled_at.isoformat() if self.crawled_at else None,
            "total": len(self.records),
            "records": [record.to_dict() for record in self.records],
        }


__all__ = [
    "CrawlResult",
    "DownloadLink",
    "MkvFeatures",
    "Provenance",
    "Record",
    "new_record_id",
]
