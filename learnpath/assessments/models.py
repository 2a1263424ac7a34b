"""Database models for track quizzes.

Tables:
- quiz_questions: one question per row, referenced by track_id
- quiz_answers: answer options of a question
- quiz_attempts: append-only scored submissions
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from learnpath.core.clock import ensure_utc_aware


DEFAULT_TIME_LIMIT_SECONDS = 60


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

QUIZ_QUESTIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_questions (
    id UUID PRIMARY KEY,
    track_id UUID,
    text TEXT,
    time_limit_seconds INT,
    created_by UUID,
    created_at TIMESTAMP
)
"""

QUIZ_QUESTIONS_BY_TRACK_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS quiz_questions_track_idx
ON {keyspace}.quiz_questions (track_id)
"""

QUIZ_ANSWERS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_answers (
    id UUID PRIMARY KEY,
    question_id UUID,
    text TEXT,
    is_correct BOOLEAN,
    order_index INT
)
"""

QUIZ_ANSWERS_BY_QUESTION_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS quiz_answers_question_idx
ON {keyspace}.quiz_answers (question_id)
"""

# Append-only: rows are never updated or deduplicated
QUIZ_ATTEMPTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.quiz_attempts (
    id UUID PRIMARY KEY,
    user_id UUID,
    question_id UUID,
    answer_id UUID,
    response_time_seconds INT,
    is_correct BOOLEAN,
    score INT,
    created_at TIMESTAMP
)
"""

QUIZ_ATTEMPTS_BY_USER_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS quiz_attempts_user_idx
ON {keyspace}.quiz_attempts (user_id)
"""

ASSESSMENTS_TABLES_CQL = [
    QUIZ_QUESTIONS_TABLE_CQL,
    QUIZ_QUESTIONS_BY_TRACK_INDEX_CQL,
    QUIZ_ANSWERS_TABLE_CQL,
    QUIZ_ANSWERS_BY_QUESTION_INDEX_CQL,
    QUIZ_ATTEMPTS_TABLE_CQL,
    QUIZ_ATTEMPTS_BY_USER_INDEX_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


@dataclass
class QuizQuestion:
    """Timed question attached to a track."""

    track_id: UUID
    text: str
    time_limit_seconds: int = DEFAULT_TIME_LIMIT_SECONDS
    created_by: UUID | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: Any) -> "QuizQuestion":
        return cls(
            id=row.id,
            track_id=row.track_id,
            text=row.text,
            time_limit_seconds=row.time_limit_seconds or DEFAULT_TIME_LIMIT_SECONDS,
            created_by=row.created_by,
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "track_id": self.track_id,
            "text": self.text,
            "time_limit_seconds": self.time_limit_seconds,
            "created_by": self.created_by,
            "created_at": self.created_at,
        }


@dataclass
class QuizAnswer:
    question_id: UUID
    text: str
    is_correct: bool = False
    order_index: int = 0
    id: UUID = field(default_factory=uuid4)

    @classmethod
    def from_row(cls, row: Any) -> "QuizAnswer":
        return cls(
            id=row.id,
            question_id=row.question_id,
            text=row.text,
            is_correct=bool(row.is_correct),
            order_index=row.order_index or 0,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "question_id": self.question_id,
            "text": self.text,
            "is_correct": self.is_correct,
            "order_index": self.order_index,
        }


@dataclass
class QuizAttempt:
    """One scored submission.

    Attributes:
        response_time_seconds: Whole seconds from presentation to submit
        score: 100..150 when correct, 0 otherwise
    """

    user_id: UUID
    question_id: UUID
    answer_id: UUID
    response_time_seconds: int
    is_correct: bool
    score: int
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_row(cls, row: Any) -> "QuizAttempt":
        """Create QuizAttempt instance from Cassandra row."""
        return cls(
            id=row.id,
            user_id=row.user_id,
            question_id=row.question_id,
            answer_id=row.answer_id,
            response_time_seconds=row.response_time_seconds or 0,
            is_correct=bool(row.is_correct),
            score=row.score or 0,
            created_at=ensure_utc_aware(row.created_at) or datetime.now(UTC),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "question_id": self.question_id,
            "answer_id": self.answer_id,
            "response_time_seconds": self.response_time_seconds,
            "is_correct": self.is_correct,
            "score": self.score,
            "created_at": self.created_at,
        }


@dataclass
class QuestionWithAnswers:
    """Question stitched with its answers (ordered by order_index)."""

    question: QuizQuestion
    answers: list[QuizAnswer] = field(default_factory=list)

    @property
    def id(self) -> UUID:
        return self.question.id

    @property
    def correct_answer(self) -> QuizAnswer | None:
        return next((a for a in self.answers if a.is_correct), None)

    def answer(self, answer_id: UUID) -> QuizAnswer | None:
        return next((a for a in self.answers if a.id == answer_id), None)
