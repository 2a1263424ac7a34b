"""Pydantic schemas for aggregates."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from learnpath.catalog.models import AssignmentStatus, TrackType, UserRole
from learnpath.progress.models import ProgressStatus

from .service import (
    AssignmentStats,
    AssignmentWithDetails,
    DepartmentWithUserCount,
    OverviewCounts,
    TrackProgress,
    TrackVideos,
    TrackWithVideoCount,
    UserTrackProgress,
    UserWithDepartment,
)


class TrackProgressResponse(BaseModel):
    track_id: UUID
    total_videos: int
    completed_videos: int
    progress_percent: float = Field(description="0-100 percentage")
    is_completed: bool

    @classmethod
    def from_view(cls, view: TrackProgress) -> "TrackProgressResponse":
        return cls(
            track_id=view.track_id,
            total_videos=view.total_videos,
            completed_videos=view.completed_videos,
            progress_percent=view.progress_percent,
            is_completed=view.is_completed,
        )


class AssignmentStatsResponse(BaseModel):
    total: int
    completed: int
    active: int = Field(description="not_started + in_progress")
    expired: int

    @classmethod
    def from_view(cls, view: AssignmentStats) -> "AssignmentStatsResponse":
        return cls(
            total=view.total,
            completed=view.completed,
            active=view.active,
            expired=view.expired,
        )


class DepartmentWithUserCountResponse(BaseModel):
    id: UUID
    name: str
    description: str | None = None
    user_count: int | None = Field(description="None when the count is unavailable")

    @classmethod
    def from_view(cls, view: DepartmentWithUserCount) -> "DepartmentWithUserCountResponse":
        return cls(
            id=view.department.id,
            name=view.department.name,
            description=view.department.description,
            user_count=view.user_count,
        )


class DepartmentListResponse(BaseModel):
    items: list[DepartmentWithUserCountResponse]
    total: int


class AssignmentDetailsResponse(BaseModel):
    """Assignment with its track, department and user names."""

    id: UUID
    track_id: UUID
    user_id: UUID | None = None
    department_id: UUID | None = None
    start_date: date | None = None
    due_date: date | None = None
    status: AssignmentStatus
    track_name: str | None = None
    department_name: str | None = None
    user_full_name: str | None = None

    @classmethod
    def from_view(cls, view: AssignmentWithDetails) -> "AssignmentDetailsResponse":
        a = view.assignment
        return cls(
            id=a.id,
            track_id=a.track_id,
            user_id=a.user_id,
            department_id=a.department_id,
            start_date=a.start_date,
            due_date=a.due_date,
            status=a.status,
            track_name=view.track.name if view.track else None,
            department_name=view.department.name if view.department else None,
            user_full_name=view.user.full_name if view.user else None,
        )


class AssignmentListResponse(BaseModel):
    items: list[AssignmentDetailsResponse]
    total: int


class UserTrackProgressResponse(BaseModel):
    id: UUID
    name: str
    description: str | None = None
    type: TrackType
    thumbnail_url: str | None = None
    total_videos: int | None = Field(description="None when videos are unavailable")
    completed_videos: int | None = Field(
        description="None when progress is unavailable"
    )
    progress_percent: float | None = Field(description="0-100 percentage")

    @classmethod
    def from_view(cls, view: UserTrackProgress) -> "UserTrackProgressResponse":
        return cls(
            id=view.track.id,
            name=view.track.name,
            description=view.track.description,
            type=view.track.type,
            thumbnail_url=view.track.thumbnail_url,
            total_videos=view.total_videos,
            completed_videos=view.completed_videos,
            progress_percent=view.progress_percent,
        )


class UserTrackListResponse(BaseModel):
    items: list[UserTrackProgressResponse]
    total: int


class VideoProgressItem(BaseModel):
    id: UUID
    title: str
    youtube_id: str | None = None
    duration_seconds: int
    order_index: int
    status: ProgressStatus
    watch_time_seconds: int
    completed_at: datetime | None = None


class TrackVideosResponse(BaseModel):
    track_id: UUID
    track_name: str
    videos: list[VideoProgressItem]

    @classmethod
    def from_view(cls, view: TrackVideos) -> "TrackVideosResponse":
        return cls(
            track_id=view.track_id,
            track_name=view.track_name,
            videos=[
                VideoProgressItem(
                    id=item.video.id,
                    title=item.video.title,
                    youtube_id=item.video.youtube_id,
                    duration_seconds=item.video.duration_seconds,
                    order_index=item.video.order_index,
                    status=item.status,
                    watch_time_seconds=item.watch_time_seconds,
                    completed_at=item.completed_at,
                )
                for item in view.videos
            ],
        )


class TrackWithVideoCountResponse(BaseModel):
    id: UUID
    name: str
    description: str | None = None
    type: TrackType
    thumbnail_url: str | None = None
    created_at: datetime
    video_count: int | None = Field(description="None when videos are unavailable")

    @classmethod
    def from_view(cls, view: TrackWithVideoCount) -> "TrackWithVideoCountResponse":
        return cls(
            id=view.track.id,
            name=view.track.name,
            description=view.track.description,
            type=view.track.type,
            thumbnail_url=view.track.thumbnail_url,
            created_at=view.track.created_at,
            video_count=view.video_count,
        )


class TrackListResponse(BaseModel):
    items: list[TrackWithVideoCountResponse]
    total: int


class OverviewCountsResponse(BaseModel):
    users: int
    tracks: int
    certificates: int

    @classmethod
    def from_view(cls, view: OverviewCounts) -> "OverviewCountsResponse":
        return cls(users=view.users, tracks=view.tracks, certificates=view.certificates)


class UserWithDepartmentResponse(BaseModel):
    id: UUID
    full_name: str
    email: str | None = None
    role: UserRole
    department_id: UUID | None = None
    department_name: str | None = None
    created_at: datetime

    @classmethod
    def from_view(cls, view: UserWithDepartment) -> "UserWithDepartmentResponse":
        return cls(
            id=view.user.id,
            full_name=view.user.full_name,
            email=view.user.email,
            role=view.user.role,
            department_id=view.user.department_id,
            department_name=view.department.name if view.department else None,
            created_at=view.user.created_at,
        )


class UserListResponse(BaseModel):
    items: list[UserWithDepartmentResponse]
    total: int
