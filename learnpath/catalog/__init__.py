"""Catalog entities read by the engine (users, departments, tracks, videos,
assignments)."""

from .models import (
    CATALOG_TABLES_CQL,
    Assignment,
    AssignmentStatus,
    Department,
    Track,
    TrackType,
    User,
    UserRole,
    Video,
)


__all__ = [
    "CATALOG_TABLES_CQL",
    "Assignment",
    "AssignmentStatus",
    "Department",
    "Track",
    "TrackType",
    "User",
    "UserRole",
    "Video",
]
