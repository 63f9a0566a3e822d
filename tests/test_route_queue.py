import asyncio
import time

import pytest

from tripplanner.services.routing.queue import (
    RouteJobCancelled,
    RouteJobSuperseded,
    RouteQueue,
    is_rate_limited,
)

MIN_DELAY = 0.05
BACKOFF = 0.15
# asyncio.sleep may wake marginally early on coarse clocks.
TOLERANCE = 0.005


class _StatusError(Exception):
    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class _Recorder:
    """Records start/end times of every executed job and flags overlaps."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, float, float]] = []
        self.active = 0
        self.overlapped = False

    def job(self, label: str, result=None, error: Exception | None = None, hold: float = 0.0):
        async def execute():
            self.active += 1
            if self.active > 1:
                self.overlapped = True
            started = time.monotonic()
            try:
                if hold:
                    await asyncio.sleep(hold)
                if error is not None:
                    raise error
                return result if result is not None else label
            finally:
                self.active -= 1
                self.calls.append((label, started, time.monotonic()))

        return execute


@pytest.mark.asyncio
async def test_jobs_run_in_submission_order_with_spacing():
    queue = RouteQueue(min_delay=MIN_DELAY, rate_limit_delay=BACKOFF)
    recorder = _Recorder()

    futures = [queue.enqueue(f"day-{i}", recorder.job(f"day-{i}", hold=0.01)) for i in range(4)]
    results = await asyncio.gather(*futures)

    assert results == ["day-0", "day-1", "day-2", "day-3"]
    assert [label for label, _, _ in recorder.calls] == results
    assert recorder.overlapped is False
    for (_, _, previous_end), (_, next_start, _) in zip(recorder.calls, recorder.calls[1:]):
        assert next_start - previous_end >= MIN_DELAY - TOLERANCE
    assert queue.pending_keys == []


@pytest.mark.asyncio
async def test_resubmission_supersedes_pending_job():
    queue = RouteQueue(min_delay=MIN_DELAY, rate_limit_delay=BACKOFF)
    recorder = _Recorder()

    running = queue.enqueue("day-1", recorder.job("first", hold=0.05))
    stale = queue.enqueue("day-2", recorder.job("stale"))
    fresh = queue.enqueue("day-2", recorder.job("fresh"))

    with pytest.raises(RouteJobSuperseded):
        await stale
    assert await running == "first"
    assert await fresh == "fresh"
    assert [label for label, _, _ in recorder.calls] == ["first", "fresh"]


@pytest.mark.asyncio
async def test_resubmission_during_spacing_wait_still_supersedes():
    queue = RouteQueue(min_delay=0.1, rate_limit_delay=BACKOFF)
    recorder = _Recorder()

    assert await queue.enqueue("day-1", recorder.job("one")) == "one"
    first = queue.enqueue("day-1", recorder.job("two"))
    await asyncio.sleep(0.02)
    second = queue.enqueue("day-1", recorder.job("three"))

    with pytest.raises(RouteJobSuperseded):
        await first
    assert await second == "three"
    assert [label for label, _, _ in recorder.calls] == ["one", "three"]


@pytest.mark.asyncio
async def test_cancel_removes_pending_job():
    queue = RouteQueue(min_delay=MIN_DELAY, rate_limit_delay=BACKOFF)
    recorder = _Recorder()

    running = queue.enqueue("day-1", recorder.job("one", hold=0.03))
    pending = queue.enqueue("day-2", recorder.job("two"))

    assert queue.cancel("day-2") is True
    assert queue.cancel("day-2") is False
    assert queue.cancel("unknown") is False

    with pytest.raises(RouteJobCancelled) as excinfo:
        await pending
    assert not isinstance(excinfo.value, RouteJobSuperseded)
    assert excinfo.value.key == "day-2"
    assert await running == "one"
    await asyncio.sleep(MIN_DELAY * 2)
    assert [label for label, _, _ in recorder.calls] == ["one"]


@pytest.mark.asyncio
async def test_failure_is_delivered_and_queue_keeps_going():
    queue = RouteQueue(min_delay=MIN_DELAY, rate_limit_delay=BACKOFF)
    recorder = _Recorder()

    failing = queue.enqueue("day-1", recorder.job("bad", error=_StatusError(500)))
    after = queue.enqueue("day-2", recorder.job("good"))

    with pytest.raises(_StatusError):
        await failing
    assert await after == "good"
    gap = recorder.calls[1][1] - recorder.calls[0][2]
    assert gap >= MIN_DELAY - TOLERANCE
    assert gap < MIN_DELAY + BACKOFF


@pytest.mark.asyncio
async def test_rate_limit_adds_backoff_before_next_call():
    queue = RouteQueue(min_delay=MIN_DELAY, rate_limit_delay=BACKOFF)
    recorder = _Recorder()

    limited = queue.enqueue("day-1", recorder.job("limited", error=_StatusError(429)))
    after = queue.enqueue("day-2", recorder.job("after"))

    with pytest.raises(_StatusError):
        await limited
    assert await after == "after"
    gap = recorder.calls[1][1] - recorder.calls[0][2]
    assert gap >= MIN_DELAY + BACKOFF - TOLERANCE


@pytest.mark.asyncio
async def test_aclose_rejects_pending_jobs():
    queue = RouteQueue(min_delay=MIN_DELAY, rate_limit_delay=BACKOFF)
    recorder = _Recorder()

    running = queue.enqueue("day-1", recorder.job("one", hold=0.5))
    pending = queue.enqueue("day-2", recorder.job("two"))
    await asyncio.sleep(0.01)

    await queue.aclose()

    for future in (running, pending):
        with pytest.raises(RouteJobCancelled):
            await future
    assert queue.is_processing is False
    assert queue.pending_keys == []


def test_is_rate_limited():
    assert is_rate_limited(_StatusError(429)) is True
    assert is_rate_limited(_StatusError(503)) is False
    assert is_rate_limited(RuntimeError("no status")) is False
