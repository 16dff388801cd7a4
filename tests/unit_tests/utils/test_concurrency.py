import asyncio

import pytest

from filestore_api.utils.concurrency import run_bounded


async def test__run_bounded__never_exceeds_limit():
    in_flight = 0
    peak = 0

    async def _work(item: int) -> int:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return item * 2

    results = await run_bounded(_work, range(10), limit=3)

    assert results == [i * 2 for i in range(10)]
    assert peak == 3


async def test__run_bounded__failure_does_not_cancel_siblings():
    finished = []

    async def _work(item: int) -> int:
        if item == 1:
            raise RuntimeError("boom")
        await asyncio.sleep(0.01)
        finished.append(item)
        return item

    results = await run_bounded(_work, [0, 1, 2, 3], limit=2)

    assert isinstance(results[1], RuntimeError)
    assert [r for i, r in enumerate(results) if i != 1] == [0, 2, 3]
    assert sorted(finished) == [0, 2, 3]


async def test__run_bounded__rejects_zero_width():
    async def _work(item):
        return item

    with pytest.raises(ValueError):
        await run_bounded(_work, [1], limit=0)
