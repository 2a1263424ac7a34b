"""Request context tracking using contextvars.

Each request gets an id, plus the acting user and the upstream trace id when
present. Loggers pick these up without the values being passed around.
"""

from contextvars import ContextVar, Token
from typing import Any
from uuid import UUID, uuid4


request_id_var: ContextVar[str] = ContextVar("request_id", default="")
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)
trace_id_var: ContextVar[str | None] = ContextVar("trace_id", default=None)


def generate_request_id() -> str:
    """Generate a new unique request ID."""
    return str(uuid4())


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


def set_request_id(request_id: str | None = None) -> str:
    """Set the request ID, generating one when not provided."""
    rid = request_id or generate_request_id()
    request_id_var.set(rid)
    return rid


def get_user_id() -> str | None:
    """Get the current user ID."""
    return user_id_var.get()


def set_user_id(user_id: str | UUID | None) -> None:
    """Set the acting user for the current context."""
    user_id_var.set(str(user_id) if user_id is not None else None)


def get_trace_id() -> str | None:
    """Get the current trace ID."""
    return trace_id_var.get()


def set_trace_id(trace_id: str | None) -> None:
    """Set the distributed trace ID for the current context."""
    trace_id_var.set(trace_id)


def get_context() -> dict[str, Any]:
    """Return the non-empty context variables as a dictionary."""
    context: dict[str, Any] = {}
    if request_id := get_request_id():
        context["request_id"] = request_id
    if user_id := get_user_id():
        context["user_id"] = user_id
    if trace_id := get_trace_id():
        context["trace_id"] = trace_id
    return context


def clear_context() -> None:
    """Reset all context variables (end of request)."""
    request_id_var.set("")
    user_id_var.set(None)
    trace_id_var.set(None)


class RequestContext:
    """Context manager binding request scope outside HTTP handlers.

    Usage:
        with RequestContext(user_id=user_id):
            await session_flush()  # logs carry request_id and user_id
    """

    def __init__(
        self,
        request_id: str | None = None,
        user_id: str | UUID | None = None,
        trace_id: str | None = None,
    ) -> None:
        self.request_id = request_id
        self.user_id = user_id
        self.trace_id = trace_id
        self._tokens: list[tuple[ContextVar, Token]] = []

    def __enter__(self) -> "RequestContext":
        self._tokens.append(
            (request_id_var, request_id_var.set(self.request_id or generate_request_id()))
        )
        if self.user_id is not None:
            self._tokens.append((user_id_var, user_id_var.set(str(self.user_id))))
        if self.trace_id is not None:
            self._tokens.append((trace_id_var, trace_id_var.set(self.trace_id)))
        return self

    def __exit__(self, *_: object) -> None:
        for var, token in reversed(self._tokens):
            var.reset(token)
        self._tokens.clear()
