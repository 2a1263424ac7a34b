"""Database models for per-user video progress.

One row per (user_id, video_id). The pair is guarded by the
``progress_unique`` lookup table so racing first ticks share a row.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from learnpath.core.clock import ensure_utc_aware
from learnpath.persistence.cassandra import unique_table_cql


class ProgressStatus(str, Enum):
    """Video progress status."""

    NOT_STARTED = "not_started"  # Never opened
    IN_PROGRESS = "in_progress"  # Watched partially
    COMPLETED = "completed"  # Reached the completion ratio or marked manually


PROGRESS_UNIQUE_ON = ("user_id", "video_id")


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

PROGRESS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.progress (
    id UUID PRIMARY KEY,
    user_id UUID,
    video_id UUID,
    watch_time_seconds INT,
    status TEXT,
    started_at TIMESTAMP,
    completed_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

PROGRESS_BY_USER_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS progress_user_idx
ON {keyspace}.progress (user_id)
"""

PROGRESS_BY_VIDEO_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS progress_video_idx
ON {keyspace}.progress (video_id)
"""

PROGRESS_TABLES_CQL = [
    PROGRESS_TABLE_CQL,
    unique_table_cql("progress"),
    PROGRESS_BY_USER_INDEX_CQL,
    PROGRESS_BY_VIDEO_INDEX_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class Progress:
    """Watch progress of one user on one video.

    Attributes:
        user_id: Viewer UUID
        video_id: Video UUID
        watch_time_seconds: Furthest position reached, never decreases
        status: not_started, in_progress or completed
        started_at: First recorded event
        completed_at: Set once on completion, never cleared
        updated_at: Last write
    """

    user_id: UUID
    video_id: UUID
    watch_time_seconds: int = 0
    status: ProgressStatus = ProgressStatus.NOT_STARTED
    started_at: datetime | None = None
    completed_at: datetime | None = None
    updated_at: datetime | None = None
    id: UUID = field(default_factory=uuid4)

    @property
    def is_completed(self) -> bool:
        return self.status == ProgressStatus.COMPLETED

    @classmethod
    def from_row(cls, row: Any) -> "Progress":
        """Create Progress instance from Cassandra row."""
        return cls(
            id=row.id,
            user_id=row.user_id,
            video_id=row.video_id,
            watch_time_seconds=row.watch_time_seconds or 0,
            status=ProgressStatus(row.status)
            if row.status
            else ProgressStatus.NOT_STARTED,
            started_at=ensure_utc_aware(row.started_at),
            completed_at=ensure_utc_aware(row.completed_at),
            updated_at=ensure_utc_aware(row.updated_at),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "video_id": self.video_id,
            "watch_time_seconds": self.watch_time_seconds,
            "status": self.status.value,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return (
            f"<Progress user={self.user_id} video={self.video_id} "
            f"{self.status.value} {self.watch_time_seconds}s>"
        )
