"""Quiz question management and results.

Business logic for:
- Question CRUD with answer-set validation
- Questions stitched with their answers (one answer fetch per call)
- Per-track quiz results of a user
"""

from collections import defaultdict
from dataclasses import dataclass
from uuid import UUID

import structlog

from learnpath.catalog.exceptions import TrackNotFoundError
from learnpath.catalog.models import Track
from learnpath.core.exceptions import NotFoundError, ValidationError
from learnpath.persistence.port import EntityRepository, Sort, eq, in_
from learnpath.persistence.retry import ReadPolicy

from .models import (
    DEFAULT_TIME_LIMIT_SECONDS,
    QuestionWithAnswers,
    QuizAnswer,
    QuizAttempt,
    QuizQuestion,
)


logger = structlog.get_logger(__name__)

MIN_ANSWERS = 2


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class QuestionNotFoundError(NotFoundError):
    """Quiz question does not exist."""

    def __init__(self, message: str = "Question not found"):
        super().__init__(message, "question_not_found")


class InvalidQuestionError(ValidationError):
    """Question or answer set breaks a creation rule."""

    def __init__(self, message: str = "Invalid question"):
        super().__init__(message, "invalid_question")


# ==============================================================================
# Value Objects
# ==============================================================================


@dataclass(frozen=True)
class AnswerInput:
    text: str
    is_correct: bool = False


@dataclass(frozen=True)
class QuizResults:
    """Totals over a user's stored attempts for one track."""

    total_questions: int
    correct_answers: int
    total_score: int
    average_response_time: float


def validate_question(
    text: str, answers: list[AnswerInput], time_limit_seconds: int
) -> None:
    """Check question text, answer set and time limit.

    Raises:
        InvalidQuestionError: On the first rule broken
    """
    if not text or not text.strip():
        raise InvalidQuestionError("Question text must not be empty")
    if time_limit_seconds <= 0:
        raise InvalidQuestionError("Time limit must be positive")
    if len(answers) < MIN_ANSWERS:
        raise InvalidQuestionError(f"A question needs at least {MIN_ANSWERS} answers")
    if any(not a.text or not a.text.strip() for a in answers):
        raise InvalidQuestionError("Answer text must not be empty")
    correct = sum(1 for a in answers if a.is_correct)
    if correct != 1:
        raise InvalidQuestionError("Exactly one answer must be marked correct")


class QuizService:
    """Service for quiz questions and per-track results."""

    def __init__(
        self,
        questions: EntityRepository[QuizQuestion],
        answers: EntityRepository[QuizAnswer],
        attempts: EntityRepository[QuizAttempt],
        tracks: EntityRepository[Track],
        default_time_limit_seconds: int = DEFAULT_TIME_LIMIT_SECONDS,
        read_policy: ReadPolicy | None = None,
    ):
        self.questions = questions
        self.answers = answers
        self.attempts = attempts
        self.tracks = tracks
        self.default_time_limit_seconds = default_time_limit_seconds
        self.read_policy = read_policy or ReadPolicy()

    # ==========================================================================
    # Question Management
    # ==========================================================================

    async def create_question(
        self,
        track_id: UUID,
        text: str,
        answers: list[AnswerInput],
        time_limit_seconds: int | None = None,
        created_by: UUID | None = None,
    ) -> QuestionWithAnswers:
        """Create a question and its answers.

        Raises:
            InvalidQuestionError: Answer set or text invalid
            TrackNotFoundError: Track does not exist
        """
        time_limit = time_limit_seconds or self.default_time_limit_seconds
        validate_question(text, answers, time_limit)

        track = await self.read_policy.run(self.tracks.get_by_id, track_id)
        if track is None:
            raise TrackNotFoundError

        question = await self.questions.create(
            QuizQuestion(
                track_id=track_id,
                text=text.strip(),
                time_limit_seconds=time_limit,
                created_by=created_by,
            )
        )
        stored = await self._create_answers(question.id, answers)

        logger.info(
            "quiz_question_created",
            question_id=str(question.id),
            track_id=str(track_id),
            answers=len(stored),
        )
        return QuestionWithAnswers(question=question, answers=stored)

    async def update_question(
        self,
        question_id: UUID,
        text: str | None = None,
        answers: list[AnswerInput] | None = None,
        time_limit_seconds: int | None = None,
    ) -> QuestionWithAnswers:
        """Update a question; a new answer list replaces the old one.

        Omitted fields keep their stored values, the time limit included.
        """
        current = await self.get_question(question_id)

        new_text = text if text is not None else current.question.text
        new_limit = time_limit_seconds or current.question.time_limit_seconds
        new_answers = (
            answers
            if answers is not None
            else [AnswerInput(a.text, a.is_correct) for a in current.answers]
        )
        validate_question(new_text, new_answers, new_limit)

        question = await self.questions.update(
            question_id,
            {"text": new_text.strip(), "time_limit_seconds": new_limit},
        )
        if question is None:
            raise QuestionNotFoundError

        if answers is None:
            stored = current.answers
        else:
            for answer in current.answers:
                await self.answers.delete(answer.id)
            stored = await self._create_answers(question_id, answers)

        logger.info(
            "quiz_question_updated",
            question_id=str(question_id),
            answers_replaced=answers is not None,
        )
        return QuestionWithAnswers(question=question, answers=stored)

    async def delete_question(self, question_id: UUID) -> None:
        """Delete a question's answers, then the question."""
        current = await self.get_question(question_id)
        for answer in current.answers:
            await self.answers.delete(answer.id)
        await self.questions.delete(question_id)
        logger.info("quiz_question_deleted", question_id=str(question_id))

    async def _create_answers(
        self, question_id: UUID, answers: list[AnswerInput]
    ) -> list[QuizAnswer]:
        stored = []
        for index, answer in enumerate(answers):
            stored.append(
                await self.answers.create(
                    QuizAnswer(
                        question_id=question_id,
                        text=answer.text.strip(),
                        is_correct=answer.is_correct,
                        order_index=index,
                    )
                )
            )
        return stored

    # ==========================================================================
    # Queries
    # ==========================================================================

    async def get_question(self, question_id: UUID) -> QuestionWithAnswers:
        question = await self.read_policy.run(self.questions.get_by_id, question_id)
        if question is None:
            raise QuestionNotFoundError
        stitched = await self._stitch_answers([question])
        return stitched[0]

    async def get_questions_with_answers(
        self, track_id: UUID
    ) -> list[QuestionWithAnswers]:
        """Questions of a track in creation order, each with its answers."""
        questions, _ = await self.read_policy.run(
            self.questions.list,
            [eq("track_id", track_id)],
            Sort("created_at"),
        )
        return await self._stitch_answers(questions)

    async def _stitch_answers(
        self, questions: list[QuizQuestion]
    ) -> list[QuestionWithAnswers]:
        """Attach answers fetched with one query over the question-id set."""
        if not questions:
            return []
        answers, _ = await self.read_policy.run(
            self.answers.list,
            [in_("question_id", [q.id for q in questions])],
            Sort("order_index"),
        )
        by_question: dict[UUID, list[QuizAnswer]] = defaultdict(list)
        for answer in answers:
            by_question[answer.question_id].append(answer)
        return [
            QuestionWithAnswers(question=q, answers=by_question.get(q.id, []))
            for q in questions
        ]

    async def get_quiz_results(self, user_id: UUID, track_id: UUID) -> QuizResults:
        """Totals over every stored attempt of the user on the track."""
        questions, _ = await self.read_policy.run(
            self.questions.list, [eq("track_id", track_id)]
        )
        if not questions:
            return QuizResults(0, 0, 0, 0.0)

        attempts, _ = await self.read_policy.run(
            self.attempts.list,
            [eq("user_id", user_id), in_("question_id", [q.id for q in questions])],
        )
        if not attempts:
            return QuizResults(0, 0, 0, 0.0)

        return QuizResults(
            total_questions=len(attempts),
            correct_answers=sum(1 for a in attempts if a.is_correct),
            total_score=sum(a.score for a in attempts),
            average_response_time=sum(a.response_time_seconds for a in attempts)
            / len(attempts),
        )
