"""Pydantic schemas for video progress tracking."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import Progress, ProgressStatus


class RecordProgressRequest(BaseModel):
    """Player position report (sent on every autosave tick)."""

    video_id: UUID = Field(..., description="Video UUID")
    elapsed_seconds: float = Field(
        ..., ge=0, description="Current player position in seconds"
    )
    duration_seconds: float = Field(
        ..., gt=0, description="Total video duration in seconds"
    )


class VideoActionRequest(BaseModel):
    """Request targeting a single video (start / complete)."""

    video_id: UUID = Field(..., description="Video UUID")


class ProgressResponse(BaseModel):
    """Video progress response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    video_id: UUID
    status: ProgressStatus
    watch_time_seconds: int = Field(description="Furthest position reached")
    started_at: datetime | None = None
    completed_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_entity(cls, entity: Progress) -> "ProgressResponse":
        """Create response from entity."""
        return cls(
            id=entity.id,
            user_id=entity.user_id,
            video_id=entity.video_id,
            status=entity.status,
            watch_time_seconds=entity.watch_time_seconds,
            started_at=entity.started_at,
            completed_at=entity.completed_at,
            updated_at=entity.updated_at,
        )
