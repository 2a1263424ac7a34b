"""Autosave loop for an open video player.

Usage:
    async with WatchSession(tracker, user_id, video_id, duration) as session:
        session.report_position(12.5)
        ...

Every tick writes the latest reported position. Leaving the block (normal
exit, error or cancellation) stops the ticker and makes one last flush.
Storage failures are logged and never reach the viewer.
"""

import asyncio
from types import TracebackType
from uuid import UUID

import structlog

from learnpath.core.ticker import IntervalTicker, Ticker

from .models import Progress
from .service import InvalidProgressError, ProgressTracker


logger = structlog.get_logger(__name__)

DEFAULT_AUTOSAVE_INTERVAL_SECONDS = 30.0


class WatchSession:
    """Periodically persists the player position of one (user, video)."""

    def __init__(
        self,
        tracker: ProgressTracker,
        user_id: UUID,
        video_id: UUID,
        duration_seconds: float,
        ticker: Ticker | None = None,
        interval_seconds: float = DEFAULT_AUTOSAVE_INTERVAL_SECONDS,
    ):
        self.tracker = tracker
        self.user_id = user_id
        self.video_id = video_id
        self.duration_seconds = duration_seconds
        self.ticker = ticker or IntervalTicker(interval_seconds)
        self.last_progress: Progress | None = None
        self.flush_failures = 0

        self._position: float | None = None
        self._pending = False
        self._task: asyncio.Task | None = None

    @property
    def position(self) -> float | None:
        return self._position

    @property
    def pending(self) -> bool:
        """Whether a reported position has not been written yet."""
        return self._pending

    def report_position(self, elapsed_seconds: float) -> None:
        """Remember the latest player position for the next flush."""
        if elapsed_seconds < 0:
            raise InvalidProgressError("elapsed_seconds must not be negative")
        self._position = elapsed_seconds
        self._pending = True

    async def flush(self) -> Progress | None:
        """Write the pending position, if any."""
        if not self._pending or self._position is None:
            return None

        position = self._position
        progress = await self.tracker.record_progress(
            self.user_id, self.video_id, position, self.duration_seconds
        )
        self.last_progress = progress
        # A report that arrived during the write stays pending
        if self._position == position:
            self._pending = False
        return progress

    async def _run(self) -> None:
        async for tick in self.ticker:
            try:
                await self.flush()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self.flush_failures += 1
                logger.warning(
                    "autosave_flush_failed",
                    user_id=str(self.user_id),
                    video_id=str(self.video_id),
                    tick=tick,
                    error_type=type(e).__name__,
                )

    async def __aenter__(self) -> "WatchSession":
        self._task = asyncio.create_task(
            self._run(), name=f"autosave:{self.user_id}:{self.video_id}"
        )
        logger.debug(
            "watch_session_started",
            user_id=str(self.user_id),
            video_id=str(self.video_id),
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._task is not None:
            self._task.cancel()
            await asyncio.wait([self._task])
            self._task = None

        try:
            await self.flush()
        except Exception as e:
            logger.warning(
                "autosave_final_flush_failed",
                user_id=str(self.user_id),
                video_id=str(self.video_id),
                error_type=type(e).__name__,
            )

        logger.debug(
            "watch_session_closed",
            user_id=str(self.user_id),
            video_id=str(self.video_id),
            pending=self._pending,
            reason=exc_type.__name__ if exc_type else "exit",
        )
