"""LearnPath API - Main Application."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from learnpath.aggregation.router import router as aggregation_router
from learnpath.aggregation.service import AggregationService
from learnpath.assessments.engine import AssessmentEngine
from learnpath.assessments.router import router as assessments_router
from learnpath.assessments.service import QuizService
from learnpath.certificates.router import public_router as certificates_public_router
from learnpath.certificates.router import router as certificates_router
from learnpath.certificates.service import CertificateService
from learnpath.config import Settings, get_settings
from learnpath.core.clock import Clock, utc_now
from learnpath.core.context import get_request_id
from learnpath.core.database import init_async_cassandra, shutdown_async_cassandra
from learnpath.core.exceptions import (
    ConflictError,
    EngineError,
    NotFoundError,
    TransientStorageError,
    ValidationError,
)
from learnpath.core.logging import configure_structlog, get_logger
from learnpath.core.middleware import RequestContextMiddleware
from learnpath.health import router as health_router
from learnpath.persistence.registry import (
    Repositories,
    build_cassandra_repositories,
    build_memory_repositories,
)
from learnpath.persistence.retry import ReadPolicy
from learnpath.progress.router import router as progress_router
from learnpath.progress.service import ProgressTracker


# Configure logging early (before creating logger)
settings = get_settings()
configure_structlog(
    settings, log_dir=Path(settings.log_dir), to_files=not settings.is_testing
)

logger = get_logger(__name__)


def wire_services(
    app: FastAPI,
    repositories: Repositories,
    settings: Settings,
    clock: Clock = utc_now,
) -> None:
    """Build every service over ``repositories`` and publish it on app.state."""
    read_policy = ReadPolicy.from_settings(settings)
    related_policy = read_policy.bounded(settings.aggregation_related_timeout_seconds)

    quiz_service = QuizService(
        questions=repositories.quiz_questions,
        answers=repositories.quiz_answers,
        attempts=repositories.quiz_attempts,
        tracks=repositories.tracks,
        default_time_limit_seconds=settings.quiz_default_time_limit_seconds,
        read_policy=read_policy,
    )
    aggregation_service = AggregationService(
        users=repositories.users,
        departments=repositories.departments,
        tracks=repositories.tracks,
        videos=repositories.videos,
        assignments=repositories.assignments,
        progress=repositories.progress,
        certificates=repositories.certificates,
        read_policy=read_policy,
        related_policy=related_policy,
    )

    app.state.repositories = repositories
    app.state.progress_tracker = ProgressTracker(
        progress=repositories.progress,
        videos=repositories.videos,
        clock=clock,
        completion_ratio=settings.progress_completion_ratio,
        max_attempts=settings.storage_cas_max_attempts,
        read_policy=read_policy,
    )
    app.state.quiz_service = quiz_service
    app.state.assessment_engine = AssessmentEngine(
        quiz_service=quiz_service,
        attempts=repositories.quiz_attempts,
        clock=clock,
        idle_seconds=settings.quiz_session_idle_seconds,
    )
    app.state.aggregation_service = aggregation_service
    app.state.certificate_service = CertificateService(
        certificates=repositories.certificates,
        users=repositories.users,
        tracks=repositories.tracks,
        aggregation=aggregation_service,
        verify_base_url=settings.certificate_verify_base_url,
        clock=clock,
        read_policy=read_policy,
        related_policy=related_policy,
    )
    logger.info("services_initialized", storage_backend=settings.storage_backend)


def create_app(
    settings: Settings | None = None,
    repositories: Repositories | None = None,
    clock: Clock = utc_now,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Defaults to the cached environment settings
        repositories: Pre-built repositories; skips storage bootstrap
        clock: Time source for every service
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan manager."""
        logger.info(
            "starting_application",
            app_name=settings.app_name,
            version=settings.app_version,
            environment=settings.environment,
        )

        repos = repositories
        if repos is None and settings.uses_cassandra:
            session = await init_async_cassandra(settings)
            logger.info("cassandra_initialized")
            repos = build_cassandra_repositories(session, settings.cassandra_keyspace)
        elif repos is None:
            logger.warning(
                "memory_storage_enabled",
                message="Data is lost on restart",
            )
            repos = build_memory_repositories()

        wire_services(app, repos, settings, clock)

        yield

        # Shutdown
        logger.info("shutting_down_application")
        if repositories is None and settings.uses_cassandra:
            await shutdown_async_cassandra()

    # SECURITY: Always set debug=False to prevent Starlette's ServerErrorMiddleware
    # from exposing stack traces in responses.
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Training platform engine - API",
        debug=False,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
    )

    # Request context middleware (must be added first - outermost)
    app.add_middleware(
        RequestContextMiddleware,
        log_requests=settings.log_requests,
        exclude_paths=settings.log_exclude_paths,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
        max_age=settings.cors_max_age,
    )

    def _get_request_id_safe(request: Request) -> str | None:
        """Get request_id from request state or context."""
        if hasattr(request.state, "request_id"):
            return request.state.request_id
        return get_request_id()

    def _engine_status(exc: EngineError) -> int:
        if isinstance(exc, NotFoundError):
            return status.HTTP_404_NOT_FOUND
        if isinstance(exc, ValidationError):
            return status.HTTP_422_UNPROCESSABLE_ENTITY
        if isinstance(exc, ConflictError):
            return status.HTTP_409_CONFLICT
        if isinstance(exc, TransientStorageError):
            return status.HTTP_503_SERVICE_UNAVAILABLE
        return status.HTTP_400_BAD_REQUEST

    @app.exception_handler(EngineError)
    async def engine_exception_handler(
        request: Request, exc: EngineError
    ) -> ORJSONResponse:
        """Map domain errors to HTTP statuses with a stable error code."""
        status_code = _engine_status(exc)
        logger.warning(
            "engine_error",
            error_type=type(exc).__name__,
            code=exc.code,
            status_code=status_code,
            path=request.url.path,
            method=request.method,
        )
        content = {
            "error": True,
            "message": exc.message,
            "code": exc.code,
            "status_code": status_code,
            "request_id": _get_request_id_safe(request),
        }
        headers = None
        if exc.retryable:
            content["retryable"] = True
            headers = {"Retry-After": "1"}
        return ORJSONResponse(status_code=status_code, content=content, headers=headers)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> ORJSONResponse:
        """Handle HTTP exceptions with safe error messages."""
        logger.warning(
            "http_exception",
            status_code=exc.status_code,
            detail=str(exc.detail),
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=exc.status_code,
            content={
                "error": True,
                "message": str(exc.detail)
                if exc.status_code < status.HTTP_500_INTERNAL_SERVER_ERROR
                else "Internal server error",
                "status_code": exc.status_code,
                "request_id": _get_request_id_safe(request),
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> ORJSONResponse:
        """Handle validation errors with safe error messages."""
        logger.warning(
            "validation_error",
            errors=exc.errors(),
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": True,
                "message": "Validation error",
                "status_code": 422,
                "request_id": _get_request_id_safe(request),
                "details": [
                    {
                        "field": ".".join(str(loc) for loc in err.get("loc", [])),
                        "message": err.get("msg", "Invalid value"),
                    }
                    for err in exc.errors()
                ],
            },
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> ORJSONResponse:
        """Catch-all handler for unhandled exceptions.

        SECURITY: Never expose stack traces or internal error details to users.
        """
        logger.exception(
            "unhandled_exception",
            error_type=type(exc).__name__,
            error_message=str(exc),
            path=request.url.path,
            method=request.method,
        )
        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": True,
                "message": "An unexpected error occurred. Please try again later.",
                "status_code": 500,
                "request_id": _get_request_id_safe(request),
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(progress_router)
    app.include_router(assessments_router)
    app.include_router(aggregation_router)
    app.include_router(certificates_router)
    app.include_router(certificates_public_router)

    @app.get("/", include_in_schema=False)
    async def root(request: Request) -> dict[str, str]:
        """Root endpoint."""
        return {
            "message": "LearnPath API",
            "version": settings.app_version,
            "docs": f"{request.url}docs",
        }

    return app


app = create_app()
