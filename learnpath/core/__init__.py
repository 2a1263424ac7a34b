# Core infrastructure
from learnpath.core.context import (
    RequestContext,
    clear_context,
    get_context,
    get_request_id,
    get_trace_id,
    get_user_id,
    set_request_id,
    set_trace_id,
    set_user_id,
)
from learnpath.core.logging import configure_structlog, get_logger
from learnpath.core.middleware import RequestContextMiddleware


__all__ = [
    "RequestContext",
    "RequestContextMiddleware",
    "clear_context",
    "configure_structlog",
    "get_context",
    "get_logger",
    "get_request_id",
    "get_trace_id",
    "get_user_id",
    "set_request_id",
    "set_trace_id",
    "set_user_id",
]
