"""Tests for JobContext."""

from __future__ import annotations

import asyncio
import time

import pytest

from jobqueue.exceptions import HandlerError, JobCancelledError
from jobqueue.ports.handler import JobContext


def _ctx(seconds: float) -> JobContext:
    return JobContext(
        worker_id=1,
        deadline=asyncio.get_running_loop().time() + seconds,
        cancel_event=asyncio.Event(),
    )


@pytest.mark.asyncio
async def test_time_remaining_counts_down() -> None:
    ctx = _ctx(10)
    assert 9 < ctx.time_remaining() <= 10
    assert _ctx(-5).time_remaining() == 0.0


@pytest.mark.asyncio
async def test_raise_if_cancelled() -> None:
    ctx = _ctx(10)
    ctx.raise_if_cancelled()
    assert ctx.cancelled is False

    ctx.cancel_event.set()
    assert ctx.cancelled is True
    with pytest.raises(JobCancelledError) as exc_info:
        ctx.raise_if_cancelled()
    assert isinstance(exc_info.value, HandlerError)


@pytest.mark.asyncio
async def test_sleep_completes_when_not_cancelled() -> None:
    await _ctx(10).sleep(0.01)


@pytest.mark.asyncio
async def test_sleep_wakes_early_on_cancel() -> None:
    ctx = _ctx(10)
    asyncio.get_running_loop().call_later(0.01, ctx.cancel_event.set)

    start = time.monotonic()
    with pytest.raises(JobCancelledError):
        await ctx.sleep(5)
    assert time.monotonic() - start < 1
