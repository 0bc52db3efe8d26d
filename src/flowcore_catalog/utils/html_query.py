"""Minimal query layer over BeautifulSoup.

Extraction heuristics and the walkers only ever select nodes by CSS rule,
read attributes and read text. Keeping those three operations behind
:class:`Node` means the parser can be swapped without touching them.
"""

from __future__ import annotations

from urllib.parse import urljoin, urlsplit

import chardet
from bs4 import BeautifulSoup
from bs4.element import Tag

from flowcore_catalog.utils.logger import extract_logger

_PARSER = "html.parser"


def decode_payload(content: bytes) -> str:
    """Decode an HTML byte payload, guessing the charset when it is not UTF-8."""

    try:
        return content.decode("utf-8")
    except UnicodeDecodeError:
        detected = chardet.detect(content) or {}
    encoding = detected.get("encoding") or "utf-8"
    extract_logger.debug("Payload is not UTF-8, detected encoding: %s", detected)
    try:
        return content.decode(encoding, errors="replace")
    except LookupError:
        extract_logger.debug("Unknown charset %r detected, falling back to utf-8", encoding)
        return content.decode("utf-8", errors="replace")


def join_url(base: str, href: str) -> str:
    """Resolve a page-supplied ``href`` against ``base``; ``""`` when malformed."""

    try:
        return urljoin(base, href)
    except ValueError as exc:
        extract_logger.debug("Ignoring malformed href %r: %s", href, exc)
        return ""


def url_path(url: str) -> str:
    try:
        return urlsplit(url).path
    except ValueError:
        return ""


class Node:
    """Read-only view of a single element."""

    __slots__ = ("_tag",)

    def __init__(self, tag: Tag) -> None:
        self._tag = tag

    def __repr__(self) -> str:
        return f"Node(<{self.tag}>)"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Node) and other._tag is self._tag

    def __hash__(self) -> int:
        return id(self._tag)

    @property
    def tag(self) -> str:
        return self._tag.name or ""

    def select(self, css: str) -> list[Node]:
        return [Node(found) for found in self._tag.select(css)]

    def select_one(self, css: str) -> Node | None:
        found = self._tag.select_one(css)
        return Node(found) if found is not None else None

    def attr(self, name: str) -> str:
        """Return attribute ``name`` as a string, ``""`` when absent."""

        value = self._tag.get(name)
        if value is None:
            return ""
        if isinstance(value, list):
            return " ".join(value)
        return str(value)

    def text(self) -> str:
        return self._tag.get_text().strip()

    def first_line(self) -> str:
        """First non-blank line of the element's text."""

        for line in self._tag.get_text("\n").splitlines():
            stripped = line.strip()
            if stripped:
                return stripped
        return ""

    def closest(self, tag_name: str) -> Node | None:
        if self._tag.name == tag_name:
            return self
        parent = self._tag.find_parent(tag_name)
        return Node(parent) if parent is not None else None


class Document(Node):
    """A parsed HTML page."""

    __slots__ = ()

    @classmethod
    def parse(cls, content: str | bytes) -> Document:
        if isinstance(content, bytes):
            content = decode_payload(content)
        return cls(BeautifulSoup(content or "", _PARSER))

    def anchors(self) -> list[Node]:
        return self.select("a[href]")


__all__ = ["Document", "Node", "decode_payload", "join_url", "url_path"]
