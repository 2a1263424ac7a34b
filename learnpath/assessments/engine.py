"""Quiz sessions.

A session walks the questions of a track in order:

    idle -> question_presented -> answer_selected -> submitted
         -> question_presented (next question) | completed

Each submission appends one QuizAttempt. Sessions live in process memory
until they complete or sit idle past the engine's limit; attempts are the
only durable output.
"""

import asyncio
import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

import structlog

from learnpath.core.clock import Clock, utc_now
from learnpath.core.exceptions import NotFoundError, ValidationError
from learnpath.persistence.port import EntityRepository

from .models import QuestionWithAnswers, QuizAnswer, QuizAttempt
from .scoring import BASE_SCORE, score_answer
from .service import QuizService


logger = structlog.get_logger(__name__)

DEFAULT_IDLE_SECONDS = 3600.0


class QuizState(str, Enum):
    IDLE = "idle"
    QUESTION_PRESENTED = "question_presented"
    ANSWER_SELECTED = "answer_selected"
    SUBMITTED = "submitted"
    COMPLETED = "completed"


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class QuizStateError(ValidationError):
    """Operation not allowed in the session's current state."""

    def __init__(self, message: str = "Operation not allowed in this quiz state"):
        super().__init__(message, "invalid_quiz_state")


class NoAnswerSelectedError(ValidationError):
    def __init__(self, message: str = "Select an answer before submitting"):
        super().__init__(message, "no_answer_selected")


class AnswerNotInQuestionError(ValidationError):
    def __init__(self, message: str = "Answer does not belong to the current question"):
        super().__init__(message, "answer_not_in_question")


class EmptyQuizError(ValidationError):
    def __init__(self, message: str = "Track has no quiz questions"):
        super().__init__(message, "quiz_empty")


class SessionNotFoundError(NotFoundError):
    def __init__(self, message: str = "Quiz session not found"):
        super().__init__(message, "quiz_session_not_found")


# ==============================================================================
# Session
# ==============================================================================


@dataclass(frozen=True)
class QuizSummary:
    total_score: int
    correct_count: int
    question_count: int
    max_base_score: int
    average_response_time: float


@dataclass
class QuizSession:
    """In-progress quiz of one user over one track."""

    user_id: UUID
    track_id: UUID
    questions: list[QuestionWithAnswers]
    id: UUID = field(default_factory=uuid4)
    state: QuizState = QuizState.IDLE
    current_index: int = -1
    presented_at: datetime | None = None
    selected_answer_id: UUID | None = None
    attempts: list[QuizAttempt] = field(default_factory=list)
    last_active_at: datetime | None = None

    @property
    def current_question(self) -> QuestionWithAnswers | None:
        if 0 <= self.current_index < len(self.questions):
            return self.questions[self.current_index]
        return None

    @property
    def is_last_question(self) -> bool:
        return self.current_index == len(self.questions) - 1

    def summary(self) -> QuizSummary:
        question_count = len(self.questions)
        total_time = sum(a.response_time_seconds for a in self.attempts)
        return QuizSummary(
            total_score=sum(a.score for a in self.attempts),
            correct_count=sum(1 for a in self.attempts if a.is_correct),
            question_count=question_count,
            max_base_score=BASE_SCORE * question_count,
            average_response_time=total_time / question_count if question_count else 0.0,
        )


class AssessmentEngine:
    """Runs quiz sessions and records scored attempts."""

    def __init__(
        self,
        quiz_service: QuizService,
        attempts: EntityRepository[QuizAttempt],
        clock: Clock = utc_now,
        idle_seconds: float = DEFAULT_IDLE_SECONDS,
    ):
        self.quiz_service = quiz_service
        self.attempts = attempts
        self.clock = clock
        self.idle_seconds = idle_seconds
        self._sessions: dict[UUID, QuizSession] = {}
        self._lock = asyncio.Lock()

    async def start_session(self, user_id: UUID, track_id: UUID) -> QuizSession:
        """Open a session over the track's questions (state ``idle``).

        Raises:
            EmptyQuizError: Track has no questions
        """
        questions = await self.quiz_service.get_questions_with_answers(track_id)
        if not questions:
            raise EmptyQuizError

        self.evict_idle()
        session = QuizSession(
            user_id=user_id,
            track_id=track_id,
            questions=questions,
            last_active_at=self.clock(),
        )
        self._sessions[session.id] = session
        logger.info(
            "quiz_session_started",
            session_id=str(session.id),
            track_id=str(track_id),
            question_count=len(questions),
        )
        return session

    @property
    def open_sessions(self) -> int:
        return len(self._sessions)

    def get_session(self, session_id: UUID, user_id: UUID | None = None) -> QuizSession:
        session = self._sessions.get(session_id)
        if session is not None and self._is_idle(session, self.clock()):
            self.close_session(session_id)
            session = None
        if session is None or (user_id is not None and session.user_id != user_id):
            raise SessionNotFoundError
        session.last_active_at = self.clock()
        return session

    def close_session(self, session_id: UUID) -> None:
        self._sessions.pop(session_id, None)

    def evict_idle(self) -> int:
        """Drop sessions untouched for longer than ``idle_seconds``."""
        now = self.clock()
        idle = [s.id for s in self._sessions.values() if self._is_idle(s, now)]
        for session_id in idle:
            self.close_session(session_id)
        if idle:
            logger.info("quiz_sessions_evicted", count=len(idle))
        return len(idle)

    def _is_idle(self, session: QuizSession, now: datetime) -> bool:
        if session.last_active_at is None:
            return False
        return (now - session.last_active_at).total_seconds() > self.idle_seconds

    def present_next(self, session_id: UUID, user_id: UUID | None = None) -> QuizSession:
        """Present the next question and start its timer."""
        session = self.get_session(session_id, user_id)
        if session.state not in (QuizState.IDLE, QuizState.SUBMITTED):
            raise QuizStateError
        session.current_index += 1
        session.state = QuizState.QUESTION_PRESENTED
        session.presented_at = self.clock()
        session.selected_answer_id = None
        return session

    def select_answer(
        self, session_id: UUID, answer_id: UUID, user_id: UUID | None = None
    ) -> QuizSession:
        """Select (or change) the answer to the current question."""
        session = self.get_session(session_id, user_id)
        if session.state not in (QuizState.QUESTION_PRESENTED, QuizState.ANSWER_SELECTED):
            raise QuizStateError
        if session.current_question.answer(answer_id) is None:
            raise AnswerNotInQuestionError
        session.selected_answer_id = answer_id
        session.state = QuizState.ANSWER_SELECTED
        return session

    async def submit(self, session_id: UUID, user_id: UUID | None = None) -> QuizAttempt:
        """Score the selected answer and append the attempt.

        Raises:
            NoAnswerSelectedError: Nothing selected; nothing is stored
            QuizStateError: No question is awaiting an answer
        """
        async with self._lock:
            session = self.get_session(session_id, user_id)
            if session.state == QuizState.QUESTION_PRESENTED:
                raise NoAnswerSelectedError
            if session.state != QuizState.ANSWER_SELECTED:
                raise QuizStateError

            question = session.current_question
            answer: QuizAnswer = question.answer(session.selected_answer_id)
            now = self.clock()
            response_time = max(
                0, math.floor((now - session.presented_at).total_seconds())
            )
            attempt = QuizAttempt(
                user_id=session.user_id,
                question_id=question.id,
                answer_id=answer.id,
                response_time_seconds=response_time,
                is_correct=answer.is_correct,
                score=score_answer(
                    answer.is_correct,
                    response_time,
                    question.question.time_limit_seconds,
                ),
                created_at=now,
            )
            stored = await self.attempts.create(attempt)

            session.attempts.append(stored)
            session.state = (
                QuizState.COMPLETED if session.is_last_question else QuizState.SUBMITTED
            )

        logger.info(
            "quiz_answer_submitted",
            session_id=str(session.id),
            question_id=str(question.id),
            is_correct=stored.is_correct,
            score=stored.score,
            response_time_seconds=response_time,
        )
        if session.state == QuizState.COMPLETED:
            self.close_session(session.id)
            summary = session.summary()
            logger.info(
                "quiz_completed",
                session_id=str(session.id),
                track_id=str(session.track_id),
                total_score=summary.total_score,
                correct_count=summary.correct_count,
            )
        return stored
