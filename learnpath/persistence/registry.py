"""Repository wiring for every entity kind.

Kept out of ``learnpath.persistence`` so the entity modules can import the
persistence primitives without a cycle.
"""

from dataclasses import dataclass, fields
from typing import Any

from learnpath.assessments.models import QuizAnswer, QuizAttempt, QuizQuestion
from learnpath.catalog.models import Assignment, Department, Track, User, Video
from learnpath.certificates.models import CERTIFICATE_UNIQUE_ON, Certificate
from learnpath.progress.models import PROGRESS_UNIQUE_ON, Progress

from .cassandra import CassandraRepository
from .memory import InMemoryRepository
from .port import EntityRepository


@dataclass
class Repositories:
    users: EntityRepository[User]
    departments: EntityRepository[Department]
    tracks: EntityRepository[Track]
    videos: EntityRepository[Video]
    assignments: EntityRepository[Assignment]
    progress: EntityRepository[Progress]
    quiz_questions: EntityRepository[QuizQuestion]
    quiz_answers: EntityRepository[QuizAnswer]
    quiz_attempts: EntityRepository[QuizAttempt]
    certificates: EntityRepository[Certificate]


# attribute -> (table, entity class, unique columns)
TABLES: dict[str, tuple[str, type, tuple[str, ...] | None]] = {
    "users": ("users", User, None),
    "departments": ("departments", Department, None),
    "tracks": ("tracks", Track, None),
    "videos": ("videos", Video, None),
    "assignments": ("assignments", Assignment, None),
    "progress": ("progress", Progress, PROGRESS_UNIQUE_ON),
    "quiz_questions": ("quiz_questions", QuizQuestion, None),
    "quiz_answers": ("quiz_answers", QuizAnswer, None),
    "quiz_attempts": ("quiz_attempts", QuizAttempt, None),
    "certificates": ("certificates", Certificate, CERTIFICATE_UNIQUE_ON),
}


def build_memory_repositories() -> Repositories:
    """In-process repositories (development and tests)."""
    return Repositories(
        **{f.name: InMemoryRepository(TABLES[f.name][0]) for f in fields(Repositories)}
    )


def build_cassandra_repositories(session: Any, keyspace: str) -> Repositories:
    """Cassandra-backed repositories; statements are prepared here."""
    repos = {}
    for f in fields(Repositories):
        table, entity_cls, unique_on = TABLES[f.name]
        repos[f.name] = CassandraRepository(
            session, keyspace, table, entity_cls, unique_on=unique_on
        )
    return Repositories(**repos)
