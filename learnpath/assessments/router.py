"""Quiz API endpoints.

Provides routes for:
- Question management (admin)
- Quiz sessions: start, select, submit, next
- Per-track results
"""

from uuid import UUID

from fastapi import APIRouter, status

from learnpath.core.dependencies import CurrentUserId

from .dependencies import AssessmentEngineDep, QuizServiceDep
from .schemas import (
    CreateQuestionRequest,
    QuestionListResponse,
    QuestionResponse,
    QuizResultsResponse,
    QuizSessionResponse,
    SelectAnswerRequest,
    SubmitAnswerResponse,
    UpdateQuestionRequest,
)


router = APIRouter(prefix="/v1/quizzes", tags=["quizzes"])


# ==============================================================================
# Question Management
# ==============================================================================


@router.post(
    "/questions",
    response_model=QuestionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create quiz question",
)
async def create_question(
    data: CreateQuestionRequest,
    quiz_service: QuizServiceDep,
    user_id: CurrentUserId,
) -> QuestionResponse:
    """Create a question with its answers. Exactly one answer must be correct."""
    question = await quiz_service.create_question(
        track_id=data.track_id,
        text=data.text,
        answers=[a.to_input() for a in data.answers],
        time_limit_seconds=data.time_limit_seconds,
        created_by=user_id,
    )
    return QuestionResponse.from_entity(question)


@router.get(
    "/questions/{question_id}",
    response_model=QuestionResponse,
    summary="Get quiz question",
)
async def get_question(
    question_id: UUID,
    quiz_service: QuizServiceDep,
) -> QuestionResponse:
    question = await quiz_service.get_question(question_id)
    return QuestionResponse.from_entity(question)


@router.put(
    "/questions/{question_id}",
    response_model=QuestionResponse,
    summary="Update quiz question",
)
async def update_question(
    question_id: UUID,
    data: UpdateQuestionRequest,
    quiz_service: QuizServiceDep,
) -> QuestionResponse:
    """Update a question. Sending answers replaces the whole answer set."""
    question = await quiz_service.update_question(
        question_id,
        text=data.text,
        answers=[a.to_input() for a in data.answers]
        if data.answers is not None
        else None,
        time_limit_seconds=data.time_limit_seconds,
    )
    return QuestionResponse.from_entity(question)


@router.delete(
    "/questions/{question_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete quiz question",
)
async def delete_question(
    question_id: UUID,
    quiz_service: QuizServiceDep,
) -> None:
    await quiz_service.delete_question(question_id)


@router.get(
    "/tracks/{track_id}/questions",
    response_model=QuestionListResponse,
    summary="List track questions",
)
async def list_track_questions(
    track_id: UUID,
    quiz_service: QuizServiceDep,
) -> QuestionListResponse:
    questions = await quiz_service.get_questions_with_answers(track_id)
    return QuestionListResponse(
        items=[QuestionResponse.from_entity(q) for q in questions],
        total=len(questions),
    )


# ==============================================================================
# Sessions
# ==============================================================================


@router.post(
    "/tracks/{track_id}/sessions",
    response_model=QuizSessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start quiz",
)
async def start_quiz(
    track_id: UUID,
    engine: AssessmentEngineDep,
    user_id: CurrentUserId,
) -> QuizSessionResponse:
    """Start a quiz over the track and present its first question."""
    session = await engine.start_session(user_id, track_id)
    session = engine.present_next(session.id, user_id)
    return QuizSessionResponse.from_session(session)


@router.get(
    "/sessions/{session_id}",
    response_model=QuizSessionResponse,
    summary="Get quiz session",
)
async def get_quiz_session(
    session_id: UUID,
    engine: AssessmentEngineDep,
    user_id: CurrentUserId,
) -> QuizSessionResponse:
    return QuizSessionResponse.from_session(engine.get_session(session_id, user_id))


@router.post(
    "/sessions/{session_id}/answer",
    response_model=QuizSessionResponse,
    summary="Select answer",
)
async def select_answer(
    session_id: UUID,
    data: SelectAnswerRequest,
    engine: AssessmentEngineDep,
    user_id: CurrentUserId,
) -> QuizSessionResponse:
    session = engine.select_answer(session_id, data.answer_id, user_id)
    return QuizSessionResponse.from_session(session)


@router.post(
    "/sessions/{session_id}/submit",
    response_model=SubmitAnswerResponse,
    summary="Submit answer",
)
async def submit_answer(
    session_id: UUID,
    engine: AssessmentEngineDep,
    user_id: CurrentUserId,
) -> SubmitAnswerResponse:
    """Score the selected answer. Each submission is stored as a new attempt.

    The response carries the final summary; a completed session is closed.
    """
    session = engine.get_session(session_id, user_id)
    attempt = await engine.submit(session_id, user_id)
    return SubmitAnswerResponse.build(attempt, session)


@router.post(
    "/sessions/{session_id}/next",
    response_model=QuizSessionResponse,
    summary="Present next question",
)
async def next_question(
    session_id: UUID,
    engine: AssessmentEngineDep,
    user_id: CurrentUserId,
) -> QuizSessionResponse:
    session = engine.present_next(session_id, user_id)
    return QuizSessionResponse.from_session(session)


# ==============================================================================
# Results
# ==============================================================================


@router.get(
    "/tracks/{track_id}/results",
    response_model=QuizResultsResponse,
    summary="Get quiz results",
)
async def get_quiz_results(
    track_id: UUID,
    quiz_service: QuizServiceDep,
    user_id: CurrentUserId,
) -> QuizResultsResponse:
    results = await quiz_service.get_quiz_results(user_id, track_id)
    return QuizResultsResponse.from_results(track_id, results)
