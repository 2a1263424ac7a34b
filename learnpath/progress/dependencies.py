"""FastAPI dependencies for progress tracking."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import ProgressTracker


async def get_progress_tracker(request: Request) -> ProgressTracker:
    """Get progress tracker from app state.

    Args:
        request: FastAPI request

    Returns:
        ProgressTracker instance
    """
    app_state = request.app.state
    if not getattr(app_state, "progress_tracker", None):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Progress service not available",
        )
    return app_state.progress_tracker


# Type alias for dependency injection
ProgressTrackerDep = Annotated[ProgressTracker, Depends(get_progress_tracker)]
