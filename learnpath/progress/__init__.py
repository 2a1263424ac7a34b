"""Video progress tracking module.

Provides:
- Per (user, video) watch progress with a one-way completion latch
- Start-of-watch and manual completion
- Autosave watch sessions driven by a ticker
"""

from .autosave import WatchSession
from .models import PROGRESS_TABLES_CQL, Progress, ProgressStatus
from .service import InvalidProgressError, ProgressTracker, VideoNotFoundError


__all__ = [
    "PROGRESS_TABLES_CQL",
    "InvalidProgressError",
    "Progress",
    "ProgressStatus",
    "ProgressTracker",
    "VideoNotFoundError",
    "WatchSession",
]
