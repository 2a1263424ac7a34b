"""Tests for the autosave loop of an open player."""

import asyncio

import pytest

from learnpath.core.exceptions import TransientStorageError
from learnpath.core.ticker import IntervalTicker, ManualTicker
from learnpath.progress.autosave import WatchSession
from learnpath.progress.models import ProgressStatus
from learnpath.progress.service import InvalidProgressError


class FailingTracker:
    """Tracker stand-in whose writes fail while ``failing`` is set."""

    def __init__(self, tracker):
        self.tracker = tracker
        self.failing = True
        self.calls = 0

    async def record_progress(self, *args, **kwargs):
        self.calls += 1
        if self.failing:
            raise TransientStorageError
        return await self.tracker.record_progress(*args, **kwargs)


@pytest.mark.asyncio
async def test_tick_writes_latest_position(tracker, catalog, repos):
    ticker = ManualTicker()
    video = catalog.videos[0]

    async with WatchSession(
        tracker, catalog.user.id, video.id, video.duration_seconds, ticker=ticker
    ) as session:
        session.report_position(10)
        session.report_position(25.5)
        await ticker.tick()

        assert session.pending is False
        assert session.last_progress.watch_time_seconds == 25

    rows, _ = await repos.progress.list()
    assert rows[0].watch_time_seconds == 25


@pytest.mark.asyncio
async def test_tick_without_report_writes_nothing(tracker, catalog, repos):
    ticker = ManualTicker()
    video = catalog.videos[0]

    async with WatchSession(
        tracker, catalog.user.id, video.id, video.duration_seconds, ticker=ticker
    ):
        await ticker.tick(3)

    assert await repos.progress.count() == 0


@pytest.mark.asyncio
async def test_exit_flushes_pending_position(tracker, catalog, repos):
    ticker = ManualTicker()
    video = catalog.videos[0]

    async with WatchSession(
        tracker, catalog.user.id, video.id, video.duration_seconds, ticker=ticker
    ) as session:
        session.report_position(97)

    rows, _ = await repos.progress.list()
    assert rows[0].status == ProgressStatus.COMPLETED
    assert session.pending is False


@pytest.mark.asyncio
async def test_failed_flush_is_retried_on_next_tick(tracker, catalog, repos):
    ticker = ManualTicker()
    failing = FailingTracker(tracker)
    video = catalog.videos[0]

    async with WatchSession(
        failing, catalog.user.id, video.id, video.duration_seconds, ticker=ticker
    ) as session:
        session.report_position(30)
        await ticker.tick()
        assert session.flush_failures == 1
        assert session.pending is True

        failing.failing = False
        await ticker.tick()
        assert session.pending is False

    rows, _ = await repos.progress.list()
    assert rows[0].watch_time_seconds == 30


@pytest.mark.asyncio
async def test_final_flush_failure_does_not_raise(tracker, catalog):
    failing = FailingTracker(tracker)
    video = catalog.videos[0]

    async with WatchSession(
        failing, catalog.user.id, video.id, video.duration_seconds, ticker=ManualTicker()
    ) as session:
        session.report_position(30)

    assert failing.calls == 1
    assert session.pending is True


@pytest.mark.asyncio
async def test_cancellation_stops_loop_and_flushes(tracker, catalog, repos):
    video = catalog.videos[0]
    started = asyncio.Event()

    async def viewer():
        async with WatchSession(
            tracker,
            catalog.user.id,
            video.id,
            video.duration_seconds,
            ticker=ManualTicker(),
        ) as session:
            session.report_position(42)
            started.set()
            await asyncio.sleep(3600)

    task = asyncio.create_task(viewer())
    await started.wait()
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    rows, _ = await repos.progress.list()
    assert rows[0].watch_time_seconds == 42


def test_negative_report_rejected(tracker):
    session = WatchSession(tracker, None, None, 100, ticker=ManualTicker())
    with pytest.raises(InvalidProgressError):
        session.report_position(-5)


def test_interval_ticker_requires_positive_interval():
    with pytest.raises(ValueError):
        IntervalTicker(0)
