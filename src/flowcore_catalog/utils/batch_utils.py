import asyncio
from collections.abc import Sequence
from typing import TypeVar

_T = TypeVar("_T")


def chunked(items: Sequence[_T], size: int) -> list[list[_T]]:
    """Split ``items`` into consecutive batches of at most ``size`` elements."""

    if size < 1:
        size = 1
    return [list(items[start:start + size]) for start in range(0, len(items), size)]


async def polite_delay(seconds: float) -> None:
    # Zero-delay settings (tests) still yield to the event loop.
    await asyncio.sleep(max(seconds, 0.0))
