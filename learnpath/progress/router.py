"""Video progress API endpoints.

Provides routes for:
- Player position reports (autosave ticks)
- Start of watch and manual completion
- Progress queries
"""

from uuid import UUID

from fastapi import APIRouter

from learnpath.core.dependencies import CurrentUserId

from .dependencies import ProgressTrackerDep
from .models import Progress, ProgressStatus
from .schemas import ProgressResponse, RecordProgressRequest, VideoActionRequest


router = APIRouter(prefix="/v1/progress", tags=["progress"])


@router.put(
    "/video",
    response_model=ProgressResponse,
    summary="Record video progress",
)
async def record_video_progress(
    data: RecordProgressRequest,
    tracker: ProgressTrackerDep,
    user_id: CurrentUserId,
) -> ProgressResponse:
    """Record the current player position.

    Watch time never goes backwards. Completes the video once the position
    reaches the completion ratio of its duration.
    """
    progress = await tracker.record_progress(
        user_id=user_id,
        video_id=data.video_id,
        elapsed_seconds=data.elapsed_seconds,
        duration_seconds=data.duration_seconds,
    )
    return ProgressResponse.from_entity(progress)


@router.post(
    "/video/start",
    response_model=ProgressResponse,
    summary="Start watching a video",
)
async def start_watching(
    data: VideoActionRequest,
    tracker: ProgressTrackerDep,
    user_id: CurrentUserId,
) -> ProgressResponse:
    """Mark the video as in progress when the player opens."""
    progress = await tracker.start_watching(user_id, data.video_id)
    return ProgressResponse.from_entity(progress)


@router.post(
    "/video/complete",
    response_model=ProgressResponse,
    summary="Mark video as watched",
)
async def complete_video(
    data: VideoActionRequest,
    tracker: ProgressTrackerDep,
    user_id: CurrentUserId,
) -> ProgressResponse:
    """Complete the video explicitly. Completion is never undone."""
    progress = await tracker.mark_completed(user_id, data.video_id)
    return ProgressResponse.from_entity(progress)


@router.get(
    "/video/{video_id}",
    response_model=ProgressResponse,
    summary="Get video progress",
)
async def get_video_progress(
    video_id: UUID,
    tracker: ProgressTrackerDep,
    user_id: CurrentUserId,
) -> ProgressResponse:
    """Get the caller's progress on a video.

    A video never opened is reported as not started with zero watch time.
    """
    progress = await tracker.get_progress(user_id, video_id)
    if progress is None:
        progress = Progress(
            user_id=user_id, video_id=video_id, status=ProgressStatus.NOT_STARTED
        )
    return ProgressResponse.from_entity(progress)
