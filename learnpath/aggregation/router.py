"""Aggregate API endpoints.

Provides routes for:
- Learner views: track progress, assigned tracks, track videos, assignments
- Admin views: assignment stats and listing, users, departments, tracks,
  overview
"""

from datetime import date
from typing import Annotated, Literal
from uuid import UUID

from fastapi import APIRouter, Query

from learnpath.catalog.models import AssignmentStatus, TrackType, UserRole
from learnpath.core.dependencies import CurrentUserId

from .dependencies import AggregationServiceDep, PaginationDep
from .schemas import (
    AssignmentDetailsResponse,
    AssignmentListResponse,
    AssignmentStatsResponse,
    DepartmentListResponse,
    DepartmentWithUserCountResponse,
    OverviewCountsResponse,
    TrackListResponse,
    TrackProgressResponse,
    TrackVideosResponse,
    TrackWithVideoCountResponse,
    UserListResponse,
    UserTrackListResponse,
    UserTrackProgressResponse,
    UserWithDepartmentResponse,
)
from .service import AssignmentFilters


router = APIRouter(prefix="/v1/aggregates", tags=["aggregates"])

TrackSortField = Literal["name", "created_at", "type"]
AssignmentSortField = Literal["created_at", "start_date", "due_date", "status"]
UserSortField = Literal["full_name", "email", "role", "created_at"]


# ==============================================================================
# Learner Views
# ==============================================================================


@router.get(
    "/me/tracks",
    response_model=UserTrackListResponse,
    summary="My tracks with progress",
)
async def my_tracks(
    service: AggregationServiceDep,
    user_id: CurrentUserId,
    pagination: PaginationDep,
    search: Annotated[str | None, Query(max_length=200)] = None,
    track_type: Annotated[TrackType | None, Query(alias="type")] = None,
    sort_by: Annotated[TrackSortField, Query()] = "name",
) -> UserTrackListResponse:
    result = await service.tracks_with_progress(
        user_id,
        search=search,
        track_type=track_type,
        sort=pagination.sort(sort_by),
        page=pagination.page,
        page_size=pagination.page_size,
    )
    return UserTrackListResponse(
        items=[UserTrackProgressResponse.from_view(i) for i in result.items],
        total=result.total,
    )


@router.get(
    "/me/assignments",
    response_model=AssignmentListResponse,
    summary="My assignments",
)
async def my_assignments(
    service: AggregationServiceDep,
    user_id: CurrentUserId,
    pagination: PaginationDep,
    assignment_status: Annotated[AssignmentStatus | None, Query(alias="status")] = None,
    sort_by: Annotated[AssignmentSortField, Query()] = "due_date",
) -> AssignmentListResponse:
    """Assignments made to me directly or to my department."""
    result = await service.user_assignments(
        user_id,
        status=assignment_status,
        sort=pagination.sort(sort_by),
        page=pagination.page,
        page_size=pagination.page_size,
    )
    return AssignmentListResponse(
        items=[AssignmentDetailsResponse.from_view(i) for i in result.items],
        total=result.total,
    )


@router.get(
    "/tracks/{track_id}/progress",
    response_model=TrackProgressResponse,
    summary="Track progress",
)
async def track_progress(
    track_id: UUID,
    service: AggregationServiceDep,
    user_id: CurrentUserId,
) -> TrackProgressResponse:
    return TrackProgressResponse.from_view(
        await service.track_progress(user_id, track_id)
    )


@router.get(
    "/tracks/{track_id}/videos",
    response_model=TrackVideosResponse,
    summary="Track videos with my progress",
)
async def track_videos(
    track_id: UUID,
    service: AggregationServiceDep,
    user_id: CurrentUserId,
) -> TrackVideosResponse:
    return TrackVideosResponse.from_view(
        await service.videos_with_progress(user_id, track_id)
    )


# ==============================================================================
# Admin Views
# ==============================================================================


@router.get(
    "/assignments/stats",
    response_model=AssignmentStatsResponse,
    summary="Assignment stats",
)
async def assignment_stats(service: AggregationServiceDep) -> AssignmentStatsResponse:
    return AssignmentStatsResponse.from_view(await service.assignment_stats())


@router.get(
    "/assignments",
    response_model=AssignmentListResponse,
    summary="Assignments with details",
)
async def list_assignments(
    service: AggregationServiceDep,
    pagination: PaginationDep,
    search: Annotated[str | None, Query(max_length=200)] = None,
    department_id: UUID | None = None,
    track_id: UUID | None = None,
    assignment_status: Annotated[AssignmentStatus | None, Query(alias="status")] = None,
    start_date_from: date | None = None,
    due_date_to: date | None = None,
    sort_by: Annotated[AssignmentSortField, Query()] = "due_date",
) -> AssignmentListResponse:
    """Assignments with track and department names.

    ``search`` matches track or department names (case-insensitive).
    """
    result = await service.assignments_with_details(
        filters=AssignmentFilters(
            department_id=department_id,
            track_id=track_id,
            status=assignment_status,
            start_date_from=start_date_from,
            due_date_to=due_date_to,
        ),
        search=search,
        sort=pagination.sort(sort_by),
        page=pagination.page,
        page_size=pagination.page_size,
    )
    return AssignmentListResponse(
        items=[AssignmentDetailsResponse.from_view(i) for i in result.items],
        total=result.total,
    )


@router.get(
    "/users",
    response_model=UserListResponse,
    summary="Users with department",
)
async def list_users(
    service: AggregationServiceDep,
    pagination: PaginationDep,
    search: Annotated[str | None, Query(max_length=200)] = None,
    department_id: UUID | None = None,
    role: UserRole | None = None,
    sort_by: Annotated[UserSortField, Query()] = "full_name",
) -> UserListResponse:
    """Users with their department name. ``search`` matches name or e-mail."""
    result = await service.users_with_department(
        search=search,
        department_id=department_id,
        role=role,
        sort=pagination.sort(sort_by),
        page=pagination.page,
        page_size=pagination.page_size,
    )
    return UserListResponse(
        items=[UserWithDepartmentResponse.from_view(i) for i in result.items],
        total=result.total,
    )


@router.get(
    "/departments",
    response_model=DepartmentListResponse,
    summary="Departments with user counts",
)
async def list_departments(
    service: AggregationServiceDep,
    pagination: PaginationDep,
    search: Annotated[str | None, Query(max_length=200)] = None,
    sort_by: Annotated[Literal["name", "created_at"], Query()] = "name",
) -> DepartmentListResponse:
    result = await service.departments_with_user_count(
        search=search,
        sort=pagination.sort(sort_by),
        page=pagination.page,
        page_size=pagination.page_size,
    )
    return DepartmentListResponse(
        items=[DepartmentWithUserCountResponse.from_view(i) for i in result.items],
        total=result.total,
    )


@router.get(
    "/tracks",
    response_model=TrackListResponse,
    summary="Tracks with video counts",
)
async def list_tracks(
    service: AggregationServiceDep,
    pagination: PaginationDep,
    search: Annotated[str | None, Query(max_length=200)] = None,
    track_type: Annotated[TrackType | None, Query(alias="type")] = None,
    sort_by: Annotated[TrackSortField, Query()] = "name",
) -> TrackListResponse:
    result = await service.tracks_with_video_counts(
        search=search,
        track_type=track_type,
        sort=pagination.sort(sort_by),
        page=pagination.page,
        page_size=pagination.page_size,
    )
    return TrackListResponse(
        items=[TrackWithVideoCountResponse.from_view(i) for i in result.items],
        total=result.total,
    )


@router.get(
    "/overview",
    response_model=OverviewCountsResponse,
    summary="Dashboard totals",
)
async def overview(service: AggregationServiceDep) -> OverviewCountsResponse:
    return OverviewCountsResponse.from_view(await service.overview_counts())
