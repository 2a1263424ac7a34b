"""Lookup errors for catalog entities."""

from learnpath.core.exceptions import NotFoundError


class TrackNotFoundError(NotFoundError):
    """Track does not exist."""

    def __init__(self, message: str = "Track not found"):
        super().__init__(message, "track_not_found")


class UserNotFoundError(NotFoundError):
    """User does not exist."""

    def __init__(self, message: str = "User not found"):
        super().__init__(message, "user_not_found")
