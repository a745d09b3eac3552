# tests/test_work_queue.py

import asyncio
import time

import pytest

from flasharb.work_queue import PairCheckQueue


@pytest.mark.asyncio
async def test_items_run_in_order():
    queue = PairCheckQueue(check_delay=0)
    seen = []

    async def handler(item):
        seen.append(item)

    assert await queue.process(["a", "b", "c"], handler) is True
    assert seen == ["a", "b", "c"]
    assert not queue.is_processing


@pytest.mark.asyncio
async def test_check_starts_are_spaced_by_delay():
    queue = PairCheckQueue(check_delay=0.05)
    starts = []

    async def handler(item):
        starts.append(time.monotonic())

    await queue.process(range(3), handler)

    gaps = [b - a for a, b in zip(starts, starts[1:])]
    assert all(gap >= 0.045 for gap in gaps)


@pytest.mark.asyncio
async def test_pass_is_refused_while_another_is_draining():
    queue = PairCheckQueue(check_delay=0)
    release = asyncio.Event()
    seen = []

    async def slow(item):
        seen.append(item)
        await release.wait()

    first = asyncio.create_task(queue.process(["x"], slow))
    await asyncio.sleep(0)

    assert queue.is_processing
    assert await queue.process(["y"], slow) is False

    release.set()
    assert await first is True
    assert seen == ["x"]
    assert not queue.is_processing


@pytest.mark.asyncio
async def test_handler_error_does_not_stop_the_pass():
    queue = PairCheckQueue(check_delay=0)
    seen = []

    async def handler(item):
        if item == "bad":
            raise RuntimeError("boom")
        seen.append(item)

    assert await queue.process(["a", "bad", "c"], handler) is True
    assert seen == ["a", "c"]
    assert not queue.is_processing
