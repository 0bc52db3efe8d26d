from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Sequence
from pathlib import Path

from flowcore_catalog.config.config import load_settings
from flowcore_catalog.core.catalog_crawler import CatalogCrawler
from flowcore_catalog.core.models import CrawlResult
from flowcore_catalog.utils.errors import CatalogError
from flowcore_catalog.utils.logger import logger


def parse_cli_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="flowcore-catalog",
        description=(
            "Catalog crawler entry point. 'crawl' runs one full crawl cycle "
            "(main listing, pagination, directory probes); 'login' only performs "
            "the demo-login handshake and prints the session status."
        ),
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    crawl_parser = subparsers.add_parser("crawl", help="Run one crawl cycle.")
    crawl_parser.add_argument(
        "--output",
        "-o",
        dest="output",
        type=Path,
        help="Write the resulting snapshot as JSON to this file.",
    )

    subparsers.add_parser("login", help="Force authentication and print session status.")
    return parser.parse_args(argv)


def _print_summary(result: CrawlResult) -> None:
    by_provenance: dict[str, int] = {}
    for record in result.records:
        by_provenance[record.provenance.value] = by_provenance.get(record.provenance.value, 0) + 1
    crawled_at = result.crawled_at.isoformat() if result.crawled_at else "never"
    print(f"Crawled at {crawled_at}: {len(result.records)} records")
    for provenance, count in sorted(by_provenance.items()):
        print(f"  {provenance}: {count}")


async def main(argv: Sequence[str] | None = None) -> int:
    args = parse_cli_args(argv)
    settings = load_settings()

    async with CatalogCrawler(settings) as crawler:
        try:
            if args.command == "login":
                await crawler.authenticate()
                print(json.dumps(crawler.session.status(), indent=2))
                return 0

            result = await crawler.crawl()
        except CatalogError as exc:
            logger.error("[CLI] %s failed: %s", args.command, exc)
            return 1

    _print_summary(result)
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(
            json.dumps(result.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8"
        )
        print(f"Snapshot written to {args.output}")
    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
