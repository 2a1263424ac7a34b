"""Catalog entities owned by the surrounding dashboard.

Users, departments, tracks, videos and assignments are created and edited
by the admin screens. The engine only reads them, except for assignment
status which stays externally mutable.
"""

from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from learnpath.core.clock import ensure_utc_aware


class TrackType(str, Enum):
    """Track presentation type."""

    TRACK = "track"
    PILL = "pill"
    GRID = "grid"


class AssignmentStatus(str, Enum):
    """Assignment lifecycle status (set by the dashboard)."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    EXPIRED = "expired"


class UserRole(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    EMPLOYEE = "employee"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

USERS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.users (
    id UUID PRIMARY KEY,
    full_name TEXT,
    email TEXT,
    department_id UUID,
    role TEXT,
    created_at TIMESTAMP
)
"""

USERS_BY_DEPARTMENT_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS users_department_idx
ON {keyspace}.users (department_id)
"""

DEPARTMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.departments (
    id UUID PRIMARY KEY,
    name TEXT,
    description TEXT,
    created_at TIMESTAMP
)
"""

# video_ids keeps the track's video order
TRACKS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.tracks (
    id UUID PRIMARY KEY,
    name TEXT,
    description TEXT,
    type TEXT,
    thumbnail_url TEXT,
    video_ids LIST<UUID>,
    created_at TIMESTAMP
)
"""

TRACKS_BY_TYPE_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS tracks_type_idx
ON {keyspace}.tracks (type)
"""

VIDEOS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.videos (
    id UUID PRIMARY KEY,
    track_id UUID,
    title TEXT,
    youtube_id TEXT,
    duration_seconds INT,
    order_index INT,
    created_at TIMESTAMP
)
"""

VIDEOS_BY_TRACK_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS videos_track_idx
ON {keyspace}.videos (track_id)
"""

ASSIGNMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.assignments (
    id UUID PRIMARY KEY,
    track_id UUID,
    user_id UUID,
    department_id UUID,
    start_date DATE,
    due_date DATE,
    status TEXT,
    created_at TIMESTAMP
)
"""

ASSIGNMENTS_BY_USER_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS assignments_user_idx
ON {keyspace}.assignments (user_id)
"""

ASSIGNMENTS_BY_DEPARTMENT_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS assignments_department_idx
ON {keyspace}.assignments (department_id)
"""

ASSIGNMENTS_BY_STATUS_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS assignments_status_idx
ON {keyspace}.assignments (status)
"""

CATALOG_TABLES_CQL = [
    USERS_TABLE_CQL,
    USERS_BY_DEPARTMENT_INDEX_CQL,
    DEPARTMENTS_TABLE_CQL,
    TRACKS_TABLE_CQL,
    TRACKS_BY_TYPE_INDEX_CQL,
    VIDEOS_TABLE_CQL,
    VIDEOS_BY_TRACK_INDEX_CQL,
    ASSIGNMENTS_TABLE_CQL,
    ASSIGNMENTS_BY_USER_INDEX_CQL,
    ASSIGNMENTS_BY_DEPARTMENT_INDEX_CQL,
    ASSIGNMENTS_BY_STATUS_INDEX_CQL,
]


def _to_date(value: Any) -> date | None:
    """Cassandra DATE columns come back as cassandra.util.Date."""
    if value is None or isinstance(value, date):
        return value
    return value.date()


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class User:
    """Dashboard user (read-only here)."""

    full_name: str
    email: str | None = None
    department_id: UUID | None = None
    role: UserRole = UserRole.EMPLOYEE
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: Any) -> "User":
        """Create User instance from Cassandra row."""
        return cls(
            id=row.id,
            full_name=row.full_name,
            email=row.email,
            department_id=row.department_id,
            role=UserRole(row.role) if row.role else UserRole.EMPLOYEE,
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "email": self.email,
            "department_id": self.department_id,
            "role": self.role.value,
        }


@dataclass
class Department:
    name: str
    description: str | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: Any) -> "Department":
        return cls(
            id=row.id,
            name=row.name,
            description=row.description,
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "description": self.description}


@dataclass
class Track:
    """Learning path made of ordered videos.

    Completion depends on videos only. Quiz questions reference the track
    by track_id and never count toward completion.
    """

    name: str
    description: str | None = None
    type: TrackType = TrackType.TRACK
    thumbnail_url: str | None = None
    video_ids: list[UUID] = field(default_factory=list)
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: Any) -> "Track":
        """Create Track instance from Cassandra row."""
        return cls(
            id=row.id,
            name=row.name,
            description=row.description,
            type=TrackType(row.type) if row.type else TrackType.TRACK,
            thumbnail_url=row.thumbnail_url,
            video_ids=list(row.video_ids) if row.video_ids else [],
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.type.value,
            "thumbnail_url": self.thumbnail_url,
            "video_ids": list(self.video_ids),
            "created_at": self.created_at,
        }


@dataclass
class Video:
    """Immutable content reference."""

    track_id: UUID
    title: str
    duration_seconds: int
    youtube_id: str | None = None
    order_index: int = 0
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: Any) -> "Video":
        return cls(
            id=row.id,
            track_id=row.track_id,
            title=row.title,
            youtube_id=row.youtube_id,
            duration_seconds=row.duration_seconds or 0,
            order_index=row.order_index or 0,
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "track_id": self.track_id,
            "title": self.title,
            "youtube_id": self.youtube_id,
            "duration_seconds": self.duration_seconds,
            "order_index": self.order_index,
        }


@dataclass
class Assignment:
    """Track assigned to exactly one of a user or a department."""

    track_id: UUID
    user_id: UUID | None = None
    department_id: UUID | None = None
    start_date: date | None = None
    due_date: date | None = None
    status: AssignmentStatus = AssignmentStatus.NOT_STARTED
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __post_init__(self) -> None:
        if (self.user_id is None) == (self.department_id is None):
            msg = "Assignment needs exactly one of user_id or department_id"
            raise ValueError(msg)

    @classmethod
    def from_row(cls, row: Any) -> "Assignment":
        """Create Assignment instance from Cassandra row."""
        return cls(
            id=row.id,
            track_id=row.track_id,
            user_id=row.user_id,
            department_id=row.department_id,
            start_date=_to_date(row.start_date),
            due_date=_to_date(row.due_date),
            status=AssignmentStatus(row.status)
            if row.status
            else AssignmentStatus.NOT_STARTED,
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "track_id": self.track_id,
            "user_id": self.user_id,
            "department_id": self.department_id,
            "start_date": self.start_date,
            "due_date": self.due_date,
            "status": self.status.value,
        }
