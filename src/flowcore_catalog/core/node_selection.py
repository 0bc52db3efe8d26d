"""Candidate item node selection cascade.

Strategies run in order against a parsed listing page; the first one that
returns at least one node wins and the rest are skipped.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field

from flowcore_catalog.config.config import CrawlerSettings
from flowcore_catalog.core.models import Provenance, Record
from flowcore_catalog.core.record_extractor import VIDEO_EXTENSIONS, extract_record
from flowcore_catalog.utils.html_query import Document, Node
from flowcore_catalog.utils.logger import discovery_logger, extract_logger

SEMANTIC_CONTAINER_SELECTORS: tuple[str, ...] = (
    ".card",
    ".movie-item",
    ".movie-card",
    ".film-item",
    ".video-item",
    ".media-item",
    "tr[data-name]",
    ".list-item",
    'li:has(a[href*="movie"])',
    'li:has(a[href*="film"])',
    'div:has(> img[src*="poster"])',
    'div:has(> img[src*="thumb"])',
)

BARE_MEDIA_LINK_SELECTOR = ", ".join(
    [f'a[href*="{ext}"]' for ext in VIDEO_EXTENSIONS] + ['a[href*="movie"]', 'a[href*="film"]']
)

NodeStrategy = Callable[[Document], list[Node]]


def semantic_containers(page: Document) -> list[Node]:
    for selector in SEMANTIC_CONTAINER_SELECTORS:
        nodes = page.select(selector)
        if nodes:
            discovery_logger.debug("[SELECT] %d nodes via %r", len(nodes), selector)
            return nodes
    return []


def _is_header_row(row: Node) -> bool:
    return row.select_one("th") is not None or row.closest("thead") is not None


def table_rows(page: Document) -> list[Node]:
    """Rows of the first table, without its header row(s)."""

    table = page.select_one("table")
    if table is None:
        return []
    rows = table.select("tr")
    body = [row for row in rows if not _is_header_row(row)]
    if len(body) == len(rows):
        # No explicit header markup: the first row is the header.
        body = rows[1:]
    return body


def bare_media_links(page: Document) -> list[Node]:
    return page.select(BARE_MEDIA_LINK_SELECTOR)


NODE_STRATEGIES: tuple[tuple[str, NodeStrategy], ...] = (
    ("semantic-containers", semantic_containers),
    ("table-rows", table_rows),
    ("bare-media-links", bare_media_links),
)


@dataclass
class NodeSelection:
    strategy: str | None = None
    nodes: list[Node] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return bool(self.nodes)


def select_item_nodes(
    page: Document,
    strategies: tuple[tuple[str, NodeStrategy], ...] = NODE_STRATEGIES,
) -> NodeSelection:
    for name, strategy in strategies:
        nodes = strategy(page)
        if nodes:
            return NodeSelection(name, nodes)
    return NodeSelection()


def records_from_page(
    page: Document,
    settings: CrawlerSettings,
    provenance: Provenance,
    *,
    source_url: str = "",
) -> list[Record]:
    """Run node selection and extraction over one page.

    A page on which no strategy matches yields an empty list and a warning.
    """

    selection = select_item_nodes(page)
    if not selection.matched:
        discovery_logger.warning("[SELECT] No item nodes found on %s", source_url or "page")
        return []

    discovery_logger.info(
        "[SELECT] %s: %d candidate nodes via %s",
        source_url or "page",
        len(selection.nodes),
        selection.strategy,
    )
    records: list[Record] = []
    for index, node in enumerate(selection.nodes):
        record = extract_record(node, settings, provenance)
        if record is None:
            extract_logger.debug("[EXTRACT] Node %d on %s has no usable title", index, source_url)
            continue
        records.append(record)
    return records


__all__ = [
    "NODE_STRATEGIES",
    "NodeSelection",
    "bare_media_links",
    "records_from_page",
    "select_item_nodes",
    "semantic_containers",
    "table_rows",
]
