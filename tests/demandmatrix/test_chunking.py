from __future__ import annotations

import asyncio

import pytest

from demandmatrix.chunking import chunked, process_in_chunks, process_in_chunks_async


def keep_even(chunk: list[int]) -> list[int]:
    return [x for x in chunk if x % 2 == 0]


def test_chunked_slices_in_order():
    assert list(chunked(list(range(7)), 3)) == [[0, 1, 2], [3, 4, 5], [6]]
    assert list(chunked([], 3)) == []


@pytest.mark.parametrize("size", [0, -1])
def test_chunked_rejects_non_positive_size(size):
    with pytest.raises(ValueError):
        list(chunked([1, 2], size))


@pytest.mark.parametrize("size", [1, 3, 10, 1000])
def test_chunked_processing_matches_single_pass(size):
    items = list(range(25))
    assert process_in_chunks(items, size, keep_even) == keep_even(items)


def test_on_yield_called_between_chunks_only():
    calls: list[int] = []
    process_in_chunks(list(range(10)), 4, keep_even, on_yield=calls.append)
    assert calls == [0, 1]


def test_async_processing_matches_sync_and_yields():
    items = list(range(50))
    ticks: list[int] = []

    async def ticker() -> None:
        for i in range(100):
            ticks.append(i)
            await asyncio.sleep(0)

    async def run() -> list[int]:
        task = asyncio.create_task(ticker())
        out = await process_in_chunks_async(items, 5, keep_even)
        task.cancel()
        return out

    assert asyncio.run(run()) == keep_even(items)
    # the ticker made progress while chunks were processed
    assert ticks
