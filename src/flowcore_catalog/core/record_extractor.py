"""Field extraction heuristics for listing nodes and probed file names.

Nothing here raises for a missing field: every heuristic degrades to an
empty value and the record is emitted as long as a title was found.
"""

from __future__ import annotations

import re
from urllib.parse import unquote

from flowcore_catalog.config.config import CrawlerSettings
from flowcore_catalog.core.models import DownloadLink, MkvFeatures, Provenance, Record
from flowcore_catalog.utils.html_query import Node, url_path
from flowcore_catalog.utils.logger import extract_logger

TITLE_SELECTORS: tuple[str, ...] = (
    ".details h3",
    "h3",
    ".movie-title",
    ".title",
    ".name",
)

# A candidate title that is exactly one of these is a badge, not a title.
QUALITY_TITLE_TOKENS = frozenset(
    {"480p", "720p", "1080p", "2160p", "4k", "hd", "cam", "cam-rip", "camrip", "ts", "hdts"}
)
RELEASE_GROUP_MARKERS: tuple[str, ...] = ("WEB-DL",)

VIDEO_EXTENSIONS: tuple[str, ...] = (
    ".mp4",
    ".mkv",
    ".avi",
    ".webm",
    ".mov",
    ".wmv",
    ".m4v",
    ".flv",
    ".ogg",
)

YEAR_SPAN_SELECTOR = '.feedback .movie_details_span[title="views"]'
QUALITY_BADGE_SELECTOR = ".movie_details_span_end"

_BOUNDARY_L = r"(?<![A-Za-z0-9])"
_BOUNDARY_R = r"(?![A-Za-z0-9])"

TITLE_QUALITY_RE = re.compile(
    _BOUNDARY_L + r"(720p|1080p|4K|HD|CAM|TS|DVDRip|BRRip)" + _BOUNDARY_R, re.IGNORECASE
)
FILE_QUALITY_RE = re.compile(
    _BOUNDARY_L + r"(720p|1080p|4K|2160p|HD|SD|CAM|TS|DVDRip|BRRip|BluRay)" + _BOUNDARY_R,
    re.IGNORECASE,
)
LANGUAGES: tuple[str, ...] = (
    "Hindi",
    "English",
    "Tamil",
    "Telugu",
    "Malayalam",
    "Kannada",
    "Bengali",
    "Punjabi",
    "Marathi",
)
LANGUAGE_RE = re.compile(r"(" + "|".join(LANGUAGES) + r")", re.IGNORECASE)

_PAREN_YEAR_RE = re.compile(r"\((\d{4})\)")
_BARE_YEAR_RE = re.compile(r"(?<!\d)((?:19|20)\d{2})(?!\d)")
_EXACT_YEAR_RE = re.compile(r"^\d{4}$")
_SIZE_RE = re.compile(r"\d+(\.\d+)?\s*(MB|GB|KB)", re.IGNORECASE)

_EXTENSION_RE = re.compile(r"\.[^.]+$")
_TRAILING_YEAR_RE = re.compile(r"[\s._\-]\(?(?:19|20)\d{2}\)?(?:[\s._\-].*)?$")
_SEPARATOR_RE = re.compile(r"[._]")
_SPACES_RE = re.compile(r"\s+")

SUBTITLE_KEYWORDS: tuple[str, ...] = ("subs", "subtitle", "sub", "cc", "multi.sub", "dual.audio")
AUDIO_LANGUAGE_KEYWORDS: tuple[str, ...] = (
    "hindi",
    "english",
    "tamil",
    "telugu",
    "malayalam",
    "kannada",
    "bengali",
)
VIDEO_CODEC_KEYWORDS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("h264", "x264"), "H.264"),
    (("h265", "x265", "hevc"), "H.265"),
    (("vp9",), "VP9"),
)
AUDIO_CODEC_KEYWORDS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("aac",), "AAC"),
    (("ac3", "dolby"), "AC-3"),
    (("dts",), "DTS"),
)
RESOLUTION_KEYWORDS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("4k", "2160p"), "4K"),
    (("1080p",), "1080p"),
    (("720p",), "720p"),
)
HDR_KEYWORDS: tuple[str, ...] = ("hdr", "dolby.vision", "hdr10")

UNKNOWN_QUALITY = "Unknown"
UNKNOWN_TITLE = "Unknown Movie"


def is_acceptable_title(candidate: str) -> bool:
    """Reject bare quality badges and release-group tagged strings."""

    value = candidate.strip()
    if not value:
        return False
    if value.lower() in QUALITY_TITLE_TOKENS:
        return False
    upper = value.upper()
    return not any(marker in upper for marker in RELEASE_GROUP_MARKERS)


def extract_title(node: Node) -> str:
    for selector in TITLE_SELECTORS:
        for candidate in node.select(selector):
            value = candidate.text()
            if is_acceptable_title(value):
                return value
    first_line = node.first_line()
    if is_acceptable_title(first_line):
        return first_line
    return ""


def extract_year(text: str, node: Node | None = None) -> str:
    """Year from the metadata span, then ``(YYYY)``, then a bare year token."""

    if node is not None:
        span = node.select_one(YEAR_SPAN_SELECTOR)
        if span is not None and _EXACT_YEAR_RE.match(span.text()):
            return span.text()
    for pattern in (_PAREN_YEAR_RE, _BARE_YEAR_RE):
        match = pattern.search(text)
        if match:
            return match.group(1)
    return ""


def extract_quality(text: str, node: Node | None = None) -> str:
    if node is not None:
        badge = node.select_one(QUALITY_BADGE_SELECTOR)
        if badge is not None and badge.text():
            return badge.text()
    match = TITLE_QUALITY_RE.search(text)
    return match.group(1) if match else ""


def extract_language(text: str) -> str:
    match = LANGUAGE_RE.search(text)
    if not match:
        return ""
    return match.group(1).capitalize()


def extract_size_label(node: Node) -> str:
    cells = node.select("td")
    if len(cells) < 2:
        return ""
    text = cells[1].text()
    return text if _SIZE_RE.search(text) else ""


def _resolve_link(value: str, settings: CrawlerSettings) -> str:
    value = value.strip()
    if not value or value.startswith(("#", "javascript:", "data:")):
        return ""
    return settings.resolve(value)


def extract_detail_url(node: Node, settings: CrawlerSettings) -> str:
    anchor = node if node.tag == "a" else node.select_one("a[href]")
    if anchor is None:
        return ""
    return _resolve_link(anchor.attr("href"), settings)


def extract_poster_url(node: Node, settings: CrawlerSettings) -> str:
    image = node.select_one("img")
    if image is None:
        return ""
    return _resolve_link(image.attr("src") or image.attr("data-src"), settings)


def url_basename(url: str) -> str:
    path = url_path(url) if "://" in url else url.split("?", 1)[0]
    return unquote(path.rstrip("/").rsplit("/", 1)[-1])


def is_direct_media(url: str) -> bool:
    """True when the URL path ends with a known video extension."""

    if not url:
        return False
    path = url_path(url).lower()
    return path.endswith(VIDEO_EXTENSIONS)


def media_format(url_or_name: str) -> str:
    name = url_basename(url_or_name)
    if "." not in name:
        return ""
    return name.rsplit(".", 1)[-1].upper()


def quality_from_filename(filename: str) -> str:
    match = FILE_QUALITY_RE.search(filename)
    return match.group(1) if match else ""


def _first_label(text: str, table: tuple[tuple[tuple[str, ...], str], ...]) -> str:
    for keywords, label in table:
        if any(keyword in text for keyword in keywords):
            return label
    return ""


def detect_mkv_features(title: str, url: str) -> MkvFeatures:
    """Guess Matroska track features from name keywords. Advisory only."""

    text = f"{title} {url}".lower()
    audio_tracks = [lang for lang in AUDIO_LANGUAGE_KEYWORDS if lang in text]
    return MkvFeatures(
        has_subtitles=any(keyword in text for keyword in SUBTITLE_KEYWORDS),
        audio_tracks=audio_tracks,
        multi_audio=len(audio_tracks) > 1 or "dual.audio" in text,
        video_codec=_first_label(text, VIDEO_CODEC_KEYWORDS),
        audio_codec=_first_label(text, AUDIO_CODEC_KEYWORDS),
        resolution=_first_label(text, RESOLUTION_KEYWORDS),
        hdr=any(keyword in text for keyword in HDR_KEYWORDS),
    )


def analyze_video_file(url: str, title: str = "", fallback_quality: str = "", label: str = "") -> DownloadLink:
    """Build a download link for a direct media URL."""

    filename = url_basename(url)
    fmt = media_format(filename) or "UNKNOWN"
    quality = quality_from_filename(filename) or fallback_quality or UNKNOWN_QUALITY
    return DownloadLink(
        url=url,
        quality=quality,
        format=fmt,
        label=label or f"{quality} {fmt}",
        filename=filename,
        mkv_features=detect_mkv_features(title or filename, url) if fmt == "MKV" else None,
    )


def extract_record(
    node: Node,
    settings: CrawlerSettings,
    provenance: Provenance = Provenance.MAIN,
) -> Record | None:
    """Turn one listing node into a candidate record, or ``None`` without a title."""

    title = extract_title(node)
    if not title:
        return None

    record = Record(
        title=title,
        year=extract_year(title, node),
        quality=extract_quality(title, node),
        language=extract_language(title),
        size_label=extract_size_label(node),
        detail_url=extract_detail_url(node, settings),
        poster_url=extract_poster_url(node, settings),
        provenance=provenance,
    )

    if is_direct_media(record.detail_url):
        link = analyze_video_file(record.detail_url, title, record.quality)
        record.download_links.append(link)
        if link.format == "MKV":
            record.is_mkv = True
            record.mkv_features = link.mkv_features
    return record


def title_from_filename(filename: str) -> str:
    title = _EXTENSION_RE.sub("", filename)
    title = _TRAILING_YEAR_RE.sub("", title)
    title = _SEPARATOR_RE.sub(" ", title)
    title = _SPACES_RE.sub(" ", title).strip()
    return title or UNKNOWN_TITLE


def year_from_filename(filename: str) -> str:
    match = _BARE_YEAR_RE.search(filename)
    return match.group(1) if match else ""


def extract_from_filename(
    filename: str,
    file_url: str,
    *,
    provenance: Provenance = Provenance.DIRECTORY,
) -> Record:
    """Build a single-file record from a probed directory entry."""

    title = title_from_filename(filename)
    year = year_from_filename(filename)
    quality = quality_from_filename(filename) or UNKNOWN_QUALITY
    fmt = media_format(filename) or media_format(file_url) or "UNKNOWN"
    link = DownloadLink(
        url=file_url,
        quality=quality,
        format=fmt,
        label=f"{quality} {fmt}",
        filename=url_basename(file_url) or filename,
        mkv_features=detect_mkv_features(filename, file_url) if fmt == "MKV" else None,
    )
    heading = f"{title} ({year})" if year else title
    extract_logger.debug("[EXTRACT] %s -> %r (%s, %s)", filename, title, year, quality)
    return Record(
        title=title,
        year=year,
        quality=quality,
        description=f"{heading} - {quality} {fmt}",
        download_links=[link],
        provenance=provenance,
        is_mkv=fmt == "MKV",
        mkv_features=link.mkv_features,
    )


__all__ = [
    "TITLE_SELECTORS",
    "VIDEO_EXTENSIONS",
    "analyze_video_file",
    "detect_mkv_features",
    "extract_from_filename",
    "extract_record",
    "extract_title",
    "extract_year",
    "is_acceptable_title",
    "is_direct_media",
    "title_from_filename",
    "url_basename",
]
