"""Shared fixtures: in-memory repositories, frozen clock, seeded catalog."""

import os


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_REQUESTS", "false")

from dataclasses import dataclass, field  # noqa: E402
from datetime import date  # noqa: E402
from uuid import UUID  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from learnpath.aggregation.service import AggregationService  # noqa: E402
from learnpath.assessments.engine import AssessmentEngine  # noqa: E402
from learnpath.assessments.service import QuizService  # noqa: E402
from learnpath.catalog.models import (  # noqa: E402
    Assignment,
    AssignmentStatus,
    Department,
    Track,
    User,
    Video,
)
from learnpath.certificates.service import CertificateService  # noqa: E402
from learnpath.config import Settings  # noqa: E402
from learnpath.core.clock import FrozenClock  # noqa: E402
from learnpath.persistence.registry import (  # noqa: E402
    Repositories,
    build_memory_repositories,
)
from learnpath.persistence.retry import ReadPolicy  # noqa: E402
from learnpath.progress.service import ProgressTracker  # noqa: E402


VERIFY_BASE_URL = "https://learn.example.com/verify"


@dataclass
class Catalog:
    """Seeded rows shared by most tests."""

    department: Department
    user: User
    track: Track
    videos: list[Video]
    assignment: Assignment
    extra: dict[str, object] = field(default_factory=dict)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment="testing",
        storage_backend="memory",
        storage_read_retry_wait_seconds=0,
        certificate_verify_base_url=VERIFY_BASE_URL,
        log_requests=False,
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def repos() -> Repositories:
    return build_memory_repositories()


@pytest.fixture
def read_policy() -> ReadPolicy:
    return ReadPolicy(attempts=2, wait_seconds=0)


@pytest.fixture
def tracker(repos: Repositories, clock: FrozenClock, read_policy) -> ProgressTracker:
    return ProgressTracker(
        progress=repos.progress,
        videos=repos.videos,
        clock=clock,
        read_policy=read_policy,
    )


@pytest.fixture
def quiz_service(repos: Repositories, read_policy) -> QuizService:
    return QuizService(
        questions=repos.quiz_questions,
        answers=repos.quiz_answers,
        attempts=repos.quiz_attempts,
        tracks=repos.tracks,
        read_policy=read_policy,
    )


@pytest.fixture
def engine(quiz_service: QuizService, repos: Repositories, clock) -> AssessmentEngine:
    return AssessmentEngine(quiz_service, repos.quiz_attempts, clock=clock)


@pytest.fixture
def aggregation(repos: Repositories, read_policy) -> AggregationService:
    return AggregationService(
        users=repos.users,
        departments=repos.departments,
        tracks=repos.tracks,
        videos=repos.videos,
        assignments=repos.assignments,
        progress=repos.progress,
        certificates=repos.certificates,
        read_policy=read_policy,
    )


@pytest.fixture
def certificate_service(
    repos: Repositories, aggregation: AggregationService, clock, read_policy
) -> CertificateService:
    return CertificateService(
        certificates=repos.certificates,
        users=repos.users,
        tracks=repos.tracks,
        aggregation=aggregation,
        verify_base_url=VERIFY_BASE_URL,
        clock=clock,
        read_policy=read_policy,
    )


async def add_track(
    repos: Repositories,
    name: str,
    durations: list[int],
    with_video_ids: bool = True,
    **kwargs,
) -> tuple[Track, list[Video]]:
    """Create a track and its videos, in order."""
    track = Track(name=name, **kwargs)
    videos = [
        Video(
            track_id=track.id,
            title=f"{name} #{index + 1}",
            duration_seconds=duration,
            order_index=index,
        )
        for index, duration in enumerate(durations)
    ]
    if with_video_ids:
        track.video_ids = [v.id for v in videos]
    await repos.tracks.create(track)
    for video in videos:
        await repos.videos.create(video)
    return track, videos


@pytest_asyncio.fixture
async def catalog(repos: Repositories) -> Catalog:
    department = await repos.departments.create(
        Department(name="Pharmacy", description="Store staff")
    )
    user = await repos.users.create(
        User(
            full_name="Ana Souza",
            email="ana@example.com",
            department_id=department.id,
        )
    )
    track, videos = await add_track(repos, "Onboarding", [100, 200])
    assignment = await repos.assignments.create(
        Assignment(
            track_id=track.id,
            department_id=department.id,
            start_date=date(2024, 1, 1),
            due_date=date(2024, 2, 1),
            status=AssignmentStatus.IN_PROGRESS,
        )
    )
    return Catalog(
        department=department,
        user=user,
        track=track,
        videos=videos,
        assignment=assignment,
    )


@pytest.fixture
def app(settings: Settings, repos: Repositories, clock: FrozenClock):
    from learnpath.main import create_app

    return create_app(settings=settings, repositories=repos, clock=clock)


@pytest_asyncio.fixture
async def client(app):
    """HTTP client running the app lifespan (services wired on app.state)."""
    async with app.router.lifespan_context(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(
            transport=transport, base_url="http://test"
        ) as http_client:
            yield http_client


def user_headers(user_id: UUID) -> dict[str, str]:
    return {"X-User-ID": str(user_id)}
