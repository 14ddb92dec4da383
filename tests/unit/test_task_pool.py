"""Tests for the bounded background task pool."""

import logging

import pytest

from billing_cache.infrastructure.cache.task_pool import BackgroundTaskPool


async def test_runs_submitted_jobs() -> None:
    pool = BackgroundTaskPool(workers=2, queue_size=10)
    pool.start()
    done: list[int] = []

    async def job(n: int) -> None:
        done.append(n)

    for n in range(5):
        assert pool.submit(f"job-{n}", lambda n=n: job(n))
    await pool.join()
    assert sorted(done) == [0, 1, 2, 3, 4]
    assert pool.pending == 0
    await pool.stop()
    assert not pool.running


async def test_failing_job_is_logged_and_pool_keeps_working(caplog: pytest.LogCaptureFixture) -> None:
    pool = BackgroundTaskPool(workers=1, queue_size=10)
    pool.start()
    done: list[str] = []

    async def boom() -> None:
        raise RuntimeError("boom")

    async def ok() -> None:
        done.append("ok")

    with caplog.at_level(logging.ERROR):
        pool.submit("boom", boom)
        pool.submit("ok", ok)
        await pool.join()
    assert done == ["ok"]
    assert "Cache background job failed: boom" in caplog.text
    await pool.stop()


async def test_full_queue_drops_job(caplog: pytest.LogCaptureFixture) -> None:
    pool = BackgroundTaskPool(workers=1, queue_size=1)

    async def noop() -> None:
        return None

    with caplog.at_level(logging.WARNING):
        assert pool.submit("first", noop) is True
        assert pool.submit("second", noop) is False
    assert "dropping second" in caplog.text
    assert pool.pending == 1
    await pool.stop(drain=False)
    assert pool.pending == 0


def test_requires_a_worker() -> None:
    with pytest.raises(ValueError):
        BackgroundTaskPool(workers=0, queue_size=1)
