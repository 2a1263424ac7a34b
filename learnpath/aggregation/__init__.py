"""Batch-stitched aggregates: track progress, assignments, departments and
learner views."""

from .service import (
    AggregationService,
    AssignmentFilters,
    AssignmentStats,
    TrackProgress,
)


__all__ = [
    "AggregationService",
    "AssignmentFilters",
    "AssignmentStats",
    "TrackProgress",
]
