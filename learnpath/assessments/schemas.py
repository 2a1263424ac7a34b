"""Pydantic schemas for quizzes.

Request and response models for:
- Question management (admin)
- Quiz sessions (answer selection hides correctness until submit)
- Results
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .engine import QuizSession, QuizState, QuizSummary
from .models import QuestionWithAnswers, QuizAttempt
from .service import AnswerInput, QuizResults


# ==============================================================================
# Question Schemas
# ==============================================================================


class AnswerPayload(BaseModel):
    text: str = Field(..., max_length=1000, description="Answer text")
    is_correct: bool = Field(False, description="Whether this is the correct answer")

    def to_input(self) -> AnswerInput:
        return AnswerInput(text=self.text, is_correct=self.is_correct)


class CreateQuestionRequest(BaseModel):
    """Question creation request."""

    track_id: UUID = Field(..., description="Track UUID")
    text: str = Field(..., max_length=2000, description="Question text")
    time_limit_seconds: int | None = Field(
        None, gt=0, description="Time limit in seconds (default 60)"
    )
    answers: list[AnswerPayload] = Field(..., description="Answer options")


class UpdateQuestionRequest(BaseModel):
    """Question update request. A new answer list replaces the stored one."""

    text: str | None = Field(None, max_length=2000)
    time_limit_seconds: int | None = Field(None, gt=0)
    answers: list[AnswerPayload] | None = None


class AnswerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    text: str
    is_correct: bool
    order_index: int


class QuestionResponse(BaseModel):
    """Question with its answers (admin view)."""

    id: UUID
    track_id: UUID
    text: str
    time_limit_seconds: int
    created_by: UUID | None = None
    created_at: datetime
    answers: list[AnswerResponse] = []

    @classmethod
    def from_entity(cls, entity: QuestionWithAnswers) -> "QuestionResponse":
        question = entity.question
        return cls(
            id=question.id,
            track_id=question.track_id,
            text=question.text,
            time_limit_seconds=question.time_limit_seconds,
            created_by=question.created_by,
            created_at=question.created_at,
            answers=[AnswerResponse.model_validate(a) for a in entity.answers],
        )


class QuestionListResponse(BaseModel):
    items: list[QuestionResponse]
    total: int


# ==============================================================================
# Session Schemas
# ==============================================================================


class SelectAnswerRequest(BaseModel):
    answer_id: UUID = Field(..., description="Selected answer UUID")


class PresentedAnswer(BaseModel):
    id: UUID
    text: str


class PresentedQuestion(BaseModel):
    """Current question as shown to the learner (no correctness)."""

    id: UUID
    text: str
    time_limit_seconds: int
    position: int = Field(description="1-based question number")
    answers: list[PresentedAnswer]


class QuizSummaryResponse(BaseModel):
    total_score: int
    correct_count: int
    question_count: int
    max_base_score: int
    average_response_time: float

    @classmethod
    def from_summary(cls, summary: QuizSummary) -> "QuizSummaryResponse":
        return cls(
            total_score=summary.total_score,
            correct_count=summary.correct_count,
            question_count=summary.question_count,
            max_base_score=summary.max_base_score,
            average_response_time=summary.average_response_time,
        )


class QuizSessionResponse(BaseModel):
    """Quiz session state."""

    id: UUID
    track_id: UUID
    state: QuizState
    question_count: int
    answered_count: int
    presented_at: datetime | None = None
    selected_answer_id: UUID | None = None
    current_question: PresentedQuestion | None = None
    summary: QuizSummaryResponse | None = None

    @classmethod
    def from_session(cls, session: QuizSession) -> "QuizSessionResponse":
        current = None
        question = session.current_question
        if question is not None and session.state in (
            QuizState.QUESTION_PRESENTED,
            QuizState.ANSWER_SELECTED,
        ):
            current = PresentedQuestion(
                id=question.id,
                text=question.question.text,
                time_limit_seconds=question.question.time_limit_seconds,
                position=session.current_index + 1,
                answers=[PresentedAnswer(id=a.id, text=a.text) for a in question.answers],
            )
        summary = None
        if session.state == QuizState.COMPLETED:
            summary = QuizSummaryResponse.from_summary(session.summary())
        return cls(
            id=session.id,
            track_id=session.track_id,
            state=session.state,
            question_count=len(session.questions),
            answered_count=len(session.attempts),
            presented_at=session.presented_at,
            selected_answer_id=session.selected_answer_id,
            current_question=current,
            summary=summary,
        )


class AttemptResponse(BaseModel):
    """Scored submission."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    question_id: UUID
    answer_id: UUID
    is_correct: bool
    score: int
    response_time_seconds: int
    created_at: datetime


class SubmitAnswerResponse(BaseModel):
    attempt: AttemptResponse
    session: QuizSessionResponse

    @classmethod
    def build(cls, attempt: QuizAttempt, session: QuizSession) -> "SubmitAnswerResponse":
        return cls(
            attempt=AttemptResponse.model_validate(attempt),
            session=QuizSessionResponse.from_session(session),
        )


class QuizResultsResponse(BaseModel):
    track_id: UUID
    total_questions: int
    correct_answers: int
    total_score: int
    average_response_time: float

    @classmethod
    def from_results(cls, track_id: UUID, results: QuizResults) -> "QuizResultsResponse":
        return cls(
            track_id=track_id,
            total_questions=results.total_questions,
            correct_answers=results.correct_answers,
            total_score=results.total_score,
            average_response_time=results.average_response_time,
        )
