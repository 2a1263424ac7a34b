"""Health check module."""

from learnpath.health.router import router


__all__ = ["router"]
