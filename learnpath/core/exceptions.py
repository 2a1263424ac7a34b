"""Error taxonomy shared by every engine component.

- NotFoundError: the entity is absent
- ValidationError: the request can never succeed as sent (no retry)
- ConflictError: a uniqueness or compare-and-set conflict
- TransientStorageError: timeout/unavailability, safe to retry

"Absent" and "could not check" are different outcomes: repositories return
None/False for the first and raise TransientStorageError for the second.
"""


class EngineError(Exception):
    """Base engine error."""

    retryable = False

    def __init__(self, message: str, code: str = "engine_error"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(EngineError):
    """Entity not found."""

    def __init__(self, message: str = "Resource not found", code: str = "not_found"):
        super().__init__(message, code)


class ValidationError(EngineError):
    """Request violates a domain rule."""

    def __init__(
        self, message: str = "Invalid request", code: str = "validation_error"
    ):
        super().__init__(message, code)


class ConflictError(EngineError):
    """Uniqueness or concurrency conflict."""

    def __init__(self, message: str = "Conflict", code: str = "conflict"):
        super().__init__(message, code)


class ConcurrentUpdateError(ConflictError):
    """Compare-and-set update lost against a concurrent writer."""

    def __init__(self, message: str = "Row changed concurrently"):
        super().__init__(message, "concurrent_update")


class TransientStorageError(EngineError):
    """Storage timed out or was unreachable."""

    retryable = True

    def __init__(
        self,
        message: str = "Storage temporarily unavailable",
        code: str = "storage_unavailable",
    ):
        super().__init__(message, code)
