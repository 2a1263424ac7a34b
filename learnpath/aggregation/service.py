"""Aggregates over independently fetched entities.

Storage has no joins. Every aggregate fetches its primary rows, collects
the foreign keys, loads the related rows with one batched call per entity
type and merges them in memory. Related rows that are missing, or whose
fetch keeps failing, show up as ``None`` placeholders and never fail the
response.
"""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any
from uuid import UUID

import structlog

from learnpath.catalog.exceptions import TrackNotFoundError, UserNotFoundError
from learnpath.catalog.models import (
    Assignment,
    AssignmentStatus,
    Department,
    Track,
    TrackType,
    User,
    UserRole,
    Video,
)
from learnpath.core.exceptions import TransientStorageError
from learnpath.persistence.batch import BatchLoader
from learnpath.persistence.port import (
    EntityRepository,
    Filter,
    Page,
    Sort,
    eq,
    gte,
    in_,
    lte,
    paginate,
    sort_rows,
)
from learnpath.persistence.retry import ReadPolicy
from learnpath.progress.models import Progress, ProgressStatus


logger = structlog.get_logger(__name__)


# ==============================================================================
# Views
# ==============================================================================


@dataclass(frozen=True)
class TrackProgress:
    track_id: UUID
    total_videos: int
    completed_videos: int
    progress_percent: float

    @property
    def is_completed(self) -> bool:
        return self.total_videos > 0 and self.completed_videos == self.total_videos


@dataclass(frozen=True)
class AssignmentStats:
    total: int
    completed: int
    active: int
    expired: int


@dataclass(frozen=True)
class DepartmentWithUserCount:
    department: Department
    user_count: int | None


@dataclass(frozen=True)
class AssignmentWithDetails:
    assignment: Assignment
    track: Track | None
    department: Department | None
    user: User | None


@dataclass(frozen=True)
class AssignmentFilters:
    """Storage-side assignment filters."""

    department_id: UUID | None = None
    track_id: UUID | None = None
    user_id: UUID | None = None
    status: AssignmentStatus | None = None
    start_date_from: date | None = None
    due_date_to: date | None = None

    def to_filters(self) -> list[Filter]:
        filters = []
        if self.department_id is not None:
            filters.append(eq("department_id", self.department_id))
        if self.track_id is not None:
            filters.append(eq("track_id", self.track_id))
        if self.user_id is not None:
            filters.append(eq("user_id", self.user_id))
        if self.status is not None:
            filters.append(eq("status", self.status))
        if self.start_date_from is not None:
            filters.append(gte("start_date", self.start_date_from))
        if self.due_date_to is not None:
            filters.append(lte("due_date", self.due_date_to))
        return filters


@dataclass(frozen=True)
class UserTrackProgress:
    """Assigned track with progress; counts are None when unavailable."""

    track: Track
    total_videos: int | None
    completed_videos: int | None
    progress_percent: float | None


@dataclass(frozen=True)
class VideoWithProgress:
    video: Video
    status: ProgressStatus
    watch_time_seconds: int
    completed_at: datetime | None = None


@dataclass(frozen=True)
class TrackVideos:
    track_id: UUID
    track_name: str
    videos: list[VideoWithProgress] = field(default_factory=list)


@dataclass(frozen=True)
class TrackWithVideoCount:
    track: Track
    video_count: int | None


@dataclass(frozen=True)
class UserWithDepartment:
    user: User
    department: Department | None


@dataclass(frozen=True)
class OverviewCounts:
    users: int
    tracks: int
    certificates: int


def percent(completed: int, total: int) -> float:
    return (completed / total) * 100 if total else 0.0


def matches_search(search: str | None, *values: str | None) -> bool:
    """Case-insensitive substring match on any of the values."""
    if not search:
        return True
    needle = search.strip().lower()
    return any(needle in value.lower() for value in values if value)


# ==============================================================================
# Aggregation Service
# ==============================================================================


class AggregationService:
    """Progress, assignment and catalog aggregates."""

    def __init__(
        self,
        users: EntityRepository[User],
        departments: EntityRepository[Department],
        tracks: EntityRepository[Track],
        videos: EntityRepository[Video],
        assignments: EntityRepository[Assignment],
        progress: EntityRepository[Progress],
        certificates: EntityRepository[Any],
        read_policy: ReadPolicy | None = None,
        related_policy: ReadPolicy | None = None,
    ):
        self.users = users
        self.departments = departments
        self.tracks = tracks
        self.videos = videos
        self.assignments = assignments
        self.progress = progress
        self.certificates = certificates
        self.read_policy = read_policy or ReadPolicy()
        self.related_policy = related_policy or self.read_policy

    def _loader(self, repository: EntityRepository) -> BatchLoader:
        return BatchLoader(repository, self.related_policy)

    async def _read(self, fn, *args: Any, **kwargs: Any) -> Any:
        return await self.read_policy.run(fn, *args, **kwargs)

    # ==========================================================================
    # Track progress
    # ==========================================================================

    async def track_progress(self, user_id: UUID, track_id: UUID) -> TrackProgress:
        """Completed share of a track's videos for a user.

        Raises:
            TrackNotFoundError: Track does not exist
        """
        track = await self._read(self.tracks.get_by_id, track_id)
        if track is None:
            raise TrackNotFoundError

        videos = await self.track_videos(track)
        completed = await self._completed_video_ids(user_id, [v.id for v in videos])
        done = sum(1 for v in videos if v.id in completed)
        return TrackProgress(
            track_id=track_id,
            total_videos=len(videos),
            completed_videos=done,
            progress_percent=percent(done, len(videos)),
        )

    async def is_track_completed(self, user_id: UUID, track_id: UUID) -> bool:
        progress = await self.track_progress(user_id, track_id)
        return progress.is_completed

    async def track_videos(self, track: Track) -> list[Video]:
        """Videos of a track in order.

        ``video_ids`` is authoritative (ids with no row are skipped); a
        track without it falls back to the videos referencing it.
        """
        if track.video_ids:
            rows = await self._read(self.videos.get_many, track.video_ids)
            by_id = {v.id: v for v in rows}
            return [by_id[i] for i in dict.fromkeys(track.video_ids) if i in by_id]
        rows, _ = await self._read(
            self.videos.list, [eq("track_id", track.id)], Sort("order_index")
        )
        return rows

    async def _completed_video_ids(
        self, user_id: UUID, video_ids: Sequence[UUID]
    ) -> set[UUID]:
        if not video_ids:
            return set()
        rows, _ = await self._read(
            self.progress.list,
            [
                eq("user_id", user_id),
                in_("video_id", video_ids),
                eq("status", ProgressStatus.COMPLETED),
            ],
        )
        return {p.video_id for p in rows}

    # ==========================================================================
    # Assignment aggregates
    # ==========================================================================

    async def assignment_stats(self) -> AssignmentStats:
        """Total, completed, active and expired assignment counts."""
        total, completed, active, expired = await asyncio.gather(
            self._read(self.assignments.count),
            self._read(
                self.assignments.count, [eq("status", AssignmentStatus.COMPLETED)]
            ),
            self._read(
                self.assignments.count,
                [
                    in_(
                        "status",
                        [AssignmentStatus.NOT_STARTED, AssignmentStatus.IN_PROGRESS],
                    )
                ],
            ),
            self._read(
                self.assignments.count, [eq("status", AssignmentStatus.EXPIRED)]
            ),
        )
        return AssignmentStats(
            total=total, completed=completed, active=active, expired=expired
        )

    async def assignments_with_details(
        self,
        filters: AssignmentFilters | None = None,
        search: str | None = None,
        sort: Sort | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> Page[AssignmentWithDetails]:
        """Assignments stitched with track, department and user.

        The search runs after the stitch over track and department names,
        so the reported total is the filtered count when searching.
        """
        storage_filters = (filters or AssignmentFilters()).to_filters()
        sort = sort or Sort("due_date")

        if not search:
            rows, total = await self._read(
                self.assignments.list, storage_filters, sort, page, page_size
            )
            return Page(items=await self._stitch_assignments(rows), total=total)

        rows, _ = await self._read(self.assignments.list, storage_filters, sort)
        stitched = await self._stitch_assignments(rows)
        matching = [
            item
            for item in stitched
            if matches_search(
                search,
                item.track.name if item.track else None,
                item.department.name if item.department else None,
            )
        ]
        return Page(items=paginate(matching, page, page_size), total=len(matching))

    async def user_assignments(
        self,
        user_id: UUID,
        status: AssignmentStatus | None = None,
        sort: Sort | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> Page[AssignmentWithDetails]:
        """Assignments made to the user or to the user's department.

        Raises:
            UserNotFoundError: User does not exist
        """
        rows = await self._assignments_for_user(user_id, status)
        rows = sort_rows(rows, sort or Sort("due_date"))
        page_rows = paginate(rows, page, page_size)
        return Page(items=await self._stitch_assignments(page_rows), total=len(rows))

    async def _assignments_for_user(
        self, user_id: UUID, status: AssignmentStatus | None = None
    ) -> list[Assignment]:
        user = await self._read(self.users.get_by_id, user_id)
        if user is None:
            raise UserNotFoundError

        status_filter = [eq("status", status)] if status is not None else []
        direct, _ = await self._read(
            self.assignments.list, [eq("user_id", user_id), *status_filter]
        )
        by_department: list[Assignment] = []
        if user.department_id is not None:
            by_department, _ = await self._read(
                self.assignments.list,
                [eq("department_id", user.department_id), *status_filter],
            )

        merged: dict[UUID, Assignment] = {}
        for assignment in [*direct, *by_department]:
            merged.setdefault(assignment.id, assignment)
        return list(merged.values())

    async def _stitch_assignments(
        self, rows: list[Assignment]
    ) -> list[AssignmentWithDetails]:
        if not rows:
            return []
        tracks, departments, users = await asyncio.gather(
            self._loader(self.tracks).load(a.track_id for a in rows),
            self._loader(self.departments).load(a.department_id for a in rows),
            self._loader(self.users).load(a.user_id for a in rows),
        )
        return [
            AssignmentWithDetails(
                assignment=a,
                track=tracks.get(a.track_id),
                department=departments.get(a.department_id),
                user=users.get(a.user_id),
            )
            for a in rows
        ]

    # ==========================================================================
    # Users
    # ==========================================================================

    async def users_with_department(
        self,
        search: str | None = None,
        department_id: UUID | None = None,
        role: UserRole | None = None,
        sort: Sort | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> Page[UserWithDepartment]:
        """Users stitched with their department (admin listing).

        ``search`` matches full name or e-mail. Departments of the page are
        loaded with one batched call.
        """
        filters: list[Filter] = []
        if department_id is not None:
            filters.append(eq("department_id", department_id))
        if role is not None:
            filters.append(eq("role", role))

        rows, _ = await self._read(self.users.list, filters, sort or Sort("full_name"))
        rows = [u for u in rows if matches_search(search, u.full_name, u.email)]
        page_rows = paginate(rows, page, page_size)

        departments = await self._loader(self.departments).load(
            u.department_id for u in page_rows
        )
        return Page(
            items=[
                UserWithDepartment(user=u, department=departments.get(u.department_id))
                for u in page_rows
            ],
            total=len(rows),
        )

    # ==========================================================================
    # Departments
    # ==========================================================================

    async def departments_with_user_count(
        self,
        search: str | None = None,
        sort: Sort | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> Page[DepartmentWithUserCount]:
        """Departments with their user count (one count query per department)."""
        rows, _ = await self._read(self.departments.list, None, sort or Sort("name"))
        rows = [d for d in rows if matches_search(search, d.name, d.description)]
        page_rows = paginate(rows, page, page_size)

        counts = await asyncio.gather(
            *(self._department_user_count(d.id) for d in page_rows)
        )
        return Page(
            items=[
                DepartmentWithUserCount(department=d, user_count=c)
                for d, c in zip(page_rows, counts, strict=True)
            ],
            total=len(rows),
        )

    async def _department_user_count(self, department_id: UUID) -> int | None:
        try:
            return await self.related_policy.run(
                self.users.count, [eq("department_id", department_id)]
            )
        except (TransientStorageError, TimeoutError) as e:
            logger.warning(
                "department_user_count_degraded",
                department_id=str(department_id),
                error_type=type(e).__name__,
            )
            return None

    # ==========================================================================
    # Learner views
    # ==========================================================================

    async def tracks_with_progress(
        self,
        user_id: UUID,
        search: str | None = None,
        track_type: TrackType | None = None,
        sort: Sort | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> Page[UserTrackProgress]:
        """The user's assigned tracks with video totals and progress.

        One video batch and one progress batch serve the whole page.
        """
        assignments = await self._assignments_for_user(user_id)
        track_ids = list(dict.fromkeys(a.track_id for a in assignments))
        if not track_ids:
            return Page(items=[], total=0)

        filters = [in_("id", track_ids)]
        if track_type is not None:
            filters.append(eq("type", track_type))
        tracks, _ = await self._read(self.tracks.list, filters, sort or Sort("name"))
        tracks = [t for t in tracks if matches_search(search, t.name, t.description)]
        page_tracks = paginate(tracks, page, page_size)

        videos_by_track = await self._videos_by_track(page_tracks)
        all_video_ids = [v.id for vs in videos_by_track.values() if vs for v in vs]
        completed = await self._completed_video_ids_degraded(user_id, all_video_ids)

        items = []
        for track in page_tracks:
            videos = videos_by_track[track.id]
            if videos is None:
                items.append(UserTrackProgress(track, None, None, None))
            elif completed is None:
                items.append(UserTrackProgress(track, len(videos), None, None))
            else:
                done = sum(1 for v in videos if v.id in completed)
                items.append(
                    UserTrackProgress(track, len(videos), done, percent(done, len(videos)))
                )
        return Page(items=items, total=len(tracks))

    async def _videos_by_track(
        self, tracks: list[Track]
    ) -> dict[UUID, list[Video] | None]:
        """Videos of several tracks with one fetch per addressing style.

        A track maps to None when its videos could not be fetched.
        """
        result: dict[UUID, list[Video] | None] = {t.id: [] for t in tracks}

        with_ids = [t for t in tracks if t.video_ids]
        if with_ids:
            batch = await self._loader(self.videos).load(
                i for t in with_ids for i in t.video_ids
            )
            for track in with_ids:
                if batch.degraded:
                    result[track.id] = None
                    continue
                result[track.id] = [
                    batch.get(i) for i in dict.fromkeys(track.video_ids) if i in batch
                ]

        without_ids = [t.id for t in tracks if not t.video_ids]
        if without_ids:
            try:
                rows, _ = await self.related_policy.run(
                    self.videos.list, [in_("track_id", without_ids)], Sort("order_index")
                )
            except (TransientStorageError, TimeoutError) as e:
                logger.warning(
                    "batch_load_degraded",
                    repository=self.videos.name,
                    requested=len(without_ids),
                    error_type=type(e).__name__,
                )
                for track_id in without_ids:
                    result[track_id] = None
                return result
            for video in rows:
                result[video.track_id].append(video)
        return result

    async def _completed_video_ids_degraded(
        self, user_id: UUID, video_ids: list[UUID]
    ) -> set[UUID] | None:
        try:
            return await self._completed_video_ids(user_id, video_ids)
        except (TransientStorageError, TimeoutError) as e:
            logger.warning(
                "batch_load_degraded",
                repository=self.progress.name,
                requested=len(video_ids),
                error_type=type(e).__name__,
            )
            return None

    async def videos_with_progress(self, user_id: UUID, track_id: UUID) -> TrackVideos:
        """Track videos in order with the user's status on each.

        Raises:
            TrackNotFoundError: Track does not exist
        """
        track = await self._read(self.tracks.get_by_id, track_id)
        if track is None:
            raise TrackNotFoundError

        videos = await self.track_videos(track)
        rows: list[Progress] = []
        if videos:
            rows, _ = await self._read(
                self.progress.list,
                [eq("user_id", user_id), in_("video_id", [v.id for v in videos])],
            )
        by_video = {p.video_id: p for p in rows}

        items = []
        for video in videos:
            progress = by_video.get(video.id)
            items.append(
                VideoWithProgress(
                    video=video,
                    status=progress.status if progress else ProgressStatus.NOT_STARTED,
                    watch_time_seconds=progress.watch_time_seconds if progress else 0,
                    completed_at=progress.completed_at if progress else None,
                )
            )
        return TrackVideos(track_id=track.id, track_name=track.name, videos=items)

    # ==========================================================================
    # Catalog
    # ==========================================================================

    async def tracks_with_video_counts(
        self,
        search: str | None = None,
        track_type: TrackType | None = None,
        sort: Sort | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> Page[TrackWithVideoCount]:
        filters = [eq("type", track_type)] if track_type is not None else []
        tracks, _ = await self._read(self.tracks.list, filters, sort or Sort("name"))
        tracks = [t for t in tracks if matches_search(search, t.name, t.description)]
        page_tracks = paginate(tracks, page, page_size)

        videos_by_track = await self._videos_by_track(page_tracks)
        items = []
        for track in page_tracks:
            videos = videos_by_track[track.id]
            items.append(
                TrackWithVideoCount(
                    track=track,
                    video_count=len(videos) if videos is not None else None,
                )
            )
        return Page(items=items, total=len(tracks))

    async def overview_counts(self) -> OverviewCounts:
        """Users, tracks and certificates totals for the admin dashboard."""
        users, tracks, certificates = await asyncio.gather(
            self._read(self.users.count),
            self._read(self.tracks.count),
            self._read(self.certificates.count),
        )
        return OverviewCounts(users=users, tracks=tracks, certificates=certificates)
