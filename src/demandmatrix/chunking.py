from __future__ import annotations

import asyncio
from typing import Callable, Iterable, Iterator, Optional, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_CHUNK_SIZE = 100

ChunkTransform = Callable[[list[T]], Iterable[R]]


def chunked(items: Sequence[T], chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[list[T]]:
    """Yield consecutive slices of at most `chunk_size` items."""
    if chunk_size < 1:
        raise ValueError("chunk_size must be >= 1")
    for start in range(0, len(items), chunk_size):
        yield list(items[start : start + chunk_size])


def process_in_chunks(
    items: Sequence[T],
    chunk_size: int,
    transform: ChunkTransform,
    on_yield: Optional[Callable[[int], None]] = None,
) -> list[R]:
    """
    Apply `transform` slice by slice and concatenate the results in order.

    `on_yield(i)` is called after chunk i whenever another chunk follows; it is
    the hook a host uses to service its own event queue between chunks.
    """
    chunks = list(chunked(items, chunk_size))
    out: list[R] = []
    for i, chunk in enumerate(chunks):
        out.extend(transform(chunk))
        if on_yield is not None and i < len(chunks) - 1:
            on_yield(i)
    return out


async def process_in_chunks_async(
    items: Sequence[T],
    chunk_size: int,
    transform: ChunkTransform,
) -> list[R]:
    """Same contract as `process_in_chunks`, handing control to the event loop between chunks."""
    chunks = list(chunked(items, chunk_size))
    out: list[R] = []
    for i, chunk in enumerate(chunks):
        out.extend(transform(chunk))
        if i < len(chunks) - 1:
            await asyncio.sleep(0)
    return out
