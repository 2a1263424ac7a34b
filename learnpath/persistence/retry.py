"""Retry policy for read paths.

Reads retry a TransientStorageError once (two attempts in total by
default). Writes never retry here; the autosave loop retries on its next
tick instead.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from typing import Any, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from learnpath.config.settings import Settings
from learnpath.core.exceptions import TransientStorageError


logger = structlog.get_logger(__name__)

R = TypeVar("R")


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "storage_read_retry",
        attempt=retry_state.attempt_number,
        operation=getattr(retry_state.fn, "__qualname__", None),
        error_type=type(error).__name__ if error else None,
    )


@dataclass(frozen=True)
class ReadPolicy:
    """How a read is retried and bounded in time."""

    attempts: int = 2
    wait_seconds: float = 0.05
    timeout_seconds: float | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReadPolicy":
        return cls(
            attempts=settings.storage_read_retry_attempts,
            wait_seconds=settings.storage_read_retry_wait_seconds,
        )

    def bounded(self, timeout_seconds: float) -> "ReadPolicy":
        """Same retries, with every attempt together capped at ``timeout_seconds``."""
        return replace(self, timeout_seconds=timeout_seconds)

    async def run(
        self, fn: Callable[..., Awaitable[R]], *args: Any, **kwargs: Any
    ) -> R:
        """Call ``fn`` retrying transient storage errors.

        The timeout, when set, bounds every attempt together. Exceeding it
        raises ``TimeoutError``.
        """
        if self.timeout_seconds is None:
            return await self._retrying(fn, *args, **kwargs)
        return await asyncio.wait_for(
            self._retrying(fn, *args, **kwargs), timeout=self.timeout_seconds
        )

    async def _retrying(
        self, fn: Callable[..., Awaitable[R]], *args: Any, **kwargs: Any
    ) -> R:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_fixed(self.wait_seconds),
            retry=retry_if_exception_type(TransientStorageError),
            before_sleep=_log_retry,
            reraise=True,
        ):
            with attempt:
                return await fn(*args, **kwargs)
        raise AssertionError("unreachable")  # pragma: no cover
