"""Video progress tracking service layer.

Business logic for:
- Progress updates from the player (autosave ticks)
- Start-of-watch and manual completion
- One-way completion latch with full-credit watch time
"""

import dataclasses
import math
from collections.abc import Callable
from datetime import datetime
from typing import Any
from uuid import UUID

import structlog

from learnpath.catalog.models import Video
from learnpath.core.clock import Clock, utc_now
from learnpath.core.exceptions import (
    ConcurrentUpdateError,
    NotFoundError,
    ValidationError,
)
from learnpath.persistence.port import EntityRepository, eq
from learnpath.persistence.retry import ReadPolicy

from .models import PROGRESS_UNIQUE_ON, Progress, ProgressStatus


logger = structlog.get_logger(__name__)

DEFAULT_COMPLETION_RATIO = 0.95
DEFAULT_MAX_ATTEMPTS = 5

# Computes the fields to write for a row, None when nothing changes
Transition = Callable[[Progress], dict[str, Any] | None]


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class VideoNotFoundError(NotFoundError):
    """Video does not exist."""

    def __init__(self, message: str = "Video not found"):
        super().__init__(message, "video_not_found")


class InvalidProgressError(ValidationError):
    """Progress report cannot be applied."""

    def __init__(self, message: str = "Invalid progress report"):
        super().__init__(message, "invalid_progress")


# ==============================================================================
# Progress Tracker
# ==============================================================================


class ProgressTracker:
    """Per (user, video) watch-progress state machine.

    ``not_started -> in_progress -> completed``. Completion is a one-way
    latch: once stored, later reports return the row untouched.
    """

    def __init__(
        self,
        progress: EntityRepository[Progress],
        videos: EntityRepository[Video],
        clock: Clock = utc_now,
        completion_ratio: float = DEFAULT_COMPLETION_RATIO,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        read_policy: ReadPolicy | None = None,
    ):
        self.progress = progress
        self.videos = videos
        self.clock = clock
        self.completion_ratio = completion_ratio
        self.max_attempts = max_attempts
        self.read_policy = read_policy or ReadPolicy()

    # ==========================================================================
    # Reads
    # ==========================================================================

    async def get_progress(self, user_id: UUID, video_id: UUID) -> Progress | None:
        """Get the progress row of a user on a video."""
        rows, _ = await self.read_policy.run(
            self.progress.list,
            [eq("user_id", user_id), eq("video_id", video_id)],
        )
        return rows[0] if rows else None

    async def _get_video(self, video_id: UUID) -> Video:
        video = await self.read_policy.run(self.videos.get_by_id, video_id)
        if video is None:
            raise VideoNotFoundError
        return video

    # ==========================================================================
    # Writes
    # ==========================================================================

    async def record_progress(
        self,
        user_id: UUID,
        video_id: UUID,
        elapsed_seconds: float,
        duration_seconds: float,
    ) -> Progress:
        """Apply a player position report.

        Watch time only moves forward, so stale or out-of-order reports are
        harmless. Reaching ``duration * completion_ratio`` completes the
        video and grants the full duration as watch time.

        Raises:
            InvalidProgressError: Negative position or non-positive duration
        """
        if elapsed_seconds < 0:
            raise InvalidProgressError("elapsed_seconds must not be negative")
        if duration_seconds <= 0:
            raise InvalidProgressError("duration_seconds must be positive")

        now = self.clock()
        reached = math.floor(elapsed_seconds)
        completes = elapsed_seconds >= duration_seconds * self.completion_ratio

        def transition(current: Progress) -> dict[str, Any] | None:
            if current.is_completed:
                return None
            if completes:
                return self._completion_fields(current, duration_seconds, now)
            return {
                "watch_time_seconds": max(current.watch_time_seconds, reached),
                "status": ProgressStatus.IN_PROGRESS,
                "started_at": current.started_at or now,
                "updated_at": now,
            }

        return await self._apply(user_id, video_id, transition)

    async def start_watching(self, user_id: UUID, video_id: UUID) -> Progress:
        """Mark a video as in progress when the player opens it.

        Existing in-progress or completed rows are left as they are.
        """
        await self._get_video(video_id)
        now = self.clock()

        def transition(current: Progress) -> dict[str, Any] | None:
            if current.status != ProgressStatus.NOT_STARTED:
                return None
            return {
                "status": ProgressStatus.IN_PROGRESS,
                "started_at": current.started_at or now,
                "updated_at": now,
            }

        return await self._apply(user_id, video_id, transition)

    async def mark_completed(self, user_id: UUID, video_id: UUID) -> Progress:
        """Complete a video explicitly ("mark as watched").

        Raises:
            VideoNotFoundError: Video does not exist
        """
        video = await self._get_video(video_id)
        now = self.clock()

        def transition(current: Progress) -> dict[str, Any] | None:
            if current.is_completed:
                return None
            return self._completion_fields(current, video.duration_seconds, now)

        return await self._apply(user_id, video_id, transition)

    def _completion_fields(
        self, current: Progress, duration_seconds: float, now: datetime
    ) -> dict[str, Any]:
        return {
            "watch_time_seconds": max(
                current.watch_time_seconds, math.floor(duration_seconds)
            ),
            "status": ProgressStatus.COMPLETED,
            "started_at": current.started_at or now,
            "completed_at": now,
            "updated_at": now,
        }

    async def _apply(
        self, user_id: UUID, video_id: UUID, transition: Transition
    ) -> Progress:
        """Upsert the (user, video) row through ``transition``.

        The row is created with ``create_if_absent`` and updated with a
        compare-and-set on (status, watch_time_seconds). A lost race re-reads
        and re-applies the transition.
        """
        for attempt in range(1, self.max_attempts + 1):
            current = await self.get_progress(user_id, video_id)

            if current is None:
                blank = Progress(user_id=user_id, video_id=video_id)
                candidate = dataclasses.replace(blank, **(transition(blank) or {}))
                current, created = await self.progress.create_if_absent(
                    candidate, PROGRESS_UNIQUE_ON
                )
                if created:
                    self._log_write(None, current)
                    return current

            fields = transition(current)
            if fields is None:
                return current

            try:
                updated = await self.progress.update(
                    current.id,
                    fields,
                    expected={
                        "status": current.status,
                        "watch_time_seconds": current.watch_time_seconds,
                    },
                )
            except ConcurrentUpdateError:
                logger.debug(
                    "progress_update_conflict",
                    user_id=str(user_id),
                    video_id=str(video_id),
                    attempt=attempt,
                )
                continue

            if updated is not None:
                self._log_write(current, updated)
                return updated

        logger.warning(
            "progress_update_contention",
            user_id=str(user_id),
            video_id=str(video_id),
            attempts=self.max_attempts,
        )
        raise ConcurrentUpdateError

    def _log_write(self, before: Progress | None, after: Progress) -> None:
        if after.is_completed and (before is None or not before.is_completed):
            logger.info(
                "progress_completed",
                user_id=str(after.user_id),
                video_id=str(after.video_id),
                watch_time_seconds=after.watch_time_seconds,
            )
        elif before is None:
            logger.info(
                "progress_started",
                user_id=str(after.user_id),
                video_id=str(after.video_id),
            )
