"""Tests for quiz sessions: presentation, selection, scoring."""

from uuid import uuid4

import pytest
import pytest_asyncio

from learnpath.assessments.engine import (
    AnswerNotInQuestionError,
    AssessmentEngine,
    EmptyQuizError,
    NoAnswerSelectedError,
    QuizState,
    QuizStateError,
    SessionNotFoundError,
)
from learnpath.assessments.service import AnswerInput


@pytest_asyncio.fixture
async def two_questions(quiz_service, catalog):
    first = await quiz_service.create_question(
        catalog.track.id,
        "First",
        [AnswerInput("Right", True), AnswerInput("Wrong")],
        time_limit_seconds=40,
    )
    second = await quiz_service.create_question(
        catalog.track.id,
        "Second",
        [AnswerInput("Wrong"), AnswerInput("Right", True)],
        time_limit_seconds=60,
    )
    return first, second


class TestSessionFlow:
    @pytest.mark.asyncio
    async def test_full_quiz(
        self, engine: AssessmentEngine, two_questions, catalog, clock, repos
    ):
        first, second = two_questions
        session = await engine.start_session(catalog.user.id, catalog.track.id)
        assert session.state == QuizState.IDLE

        engine.present_next(session.id)
        assert session.current_question.id == first.id
        clock.advance(5.9)
        engine.select_answer(session.id, first.correct_answer.id)
        attempt = await engine.submit(session.id)

        # 5.9s floors to 5s: 100 + 50 - 5/20 * 50 = 137.5 -> 138
        assert attempt.response_time_seconds == 5
        assert attempt.score == 138
        assert session.state == QuizState.SUBMITTED

        engine.present_next(session.id)
        clock.advance(40)
        engine.select_answer(session.id, second.answers[0].id)
        attempt = await engine.submit(session.id)

        assert attempt.is_correct is False
        assert attempt.score == 0
        assert session.state == QuizState.COMPLETED

        summary = session.summary()
        assert summary.total_score == 138
        assert summary.correct_count == 1
        assert summary.question_count == 2
        assert summary.max_base_score == 200
        assert summary.average_response_time == 22.5
        assert await repos.quiz_attempts.count() == 2

    @pytest.mark.asyncio
    async def test_answer_can_change_before_submit(self, engine, two_questions, catalog):
        first, _ = two_questions
        session = await engine.start_session(catalog.user.id, catalog.track.id)
        engine.present_next(session.id)

        engine.select_answer(session.id, first.answers[1].id)
        engine.select_answer(session.id, first.correct_answer.id)
        attempt = await engine.submit(session.id)

        assert attempt.is_correct is True

    @pytest.mark.asyncio
    async def test_slow_correct_answer_scores_base_only(
        self, engine, two_questions, catalog, clock
    ):
        first, _ = two_questions
        session = await engine.start_session(catalog.user.id, catalog.track.id)
        engine.present_next(session.id)
        clock.advance(120)
        engine.select_answer(session.id, first.correct_answer.id)

        attempt = await engine.submit(session.id)

        assert attempt.score == 100


class TestInvalidTransitions:
    @pytest.mark.asyncio
    async def test_submit_without_selection_stores_nothing(
        self, engine, two_questions, catalog, repos
    ):
        session = await engine.start_session(catalog.user.id, catalog.track.id)
        engine.present_next(session.id)

        with pytest.raises(NoAnswerSelectedError):
            await engine.submit(session.id)
        assert await repos.quiz_attempts.count() == 0
        assert session.state == QuizState.QUESTION_PRESENTED

    @pytest.mark.asyncio
    async def test_answer_from_other_question_rejected(
        self, engine, two_questions, catalog
    ):
        _, second = two_questions
        session = await engine.start_session(catalog.user.id, catalog.track.id)
        engine.present_next(session.id)

        with pytest.raises(AnswerNotInQuestionError):
            engine.select_answer(session.id, second.answers[0].id)

    @pytest.mark.asyncio
    async def test_select_before_presentation(self, engine, two_questions, catalog):
        first, _ = two_questions
        session = await engine.start_session(catalog.user.id, catalog.track.id)

        with pytest.raises(QuizStateError):
            engine.select_answer(session.id, first.answers[0].id)

    @pytest.mark.asyncio
    async def test_next_while_question_open(self, engine, two_questions, catalog):
        session = await engine.start_session(catalog.user.id, catalog.track.id)
        engine.present_next(session.id)

        with pytest.raises(QuizStateError):
            engine.present_next(session.id)

    @pytest.mark.asyncio
    async def test_track_without_questions(self, engine, catalog):
        with pytest.raises(EmptyQuizError):
            await engine.start_session(catalog.user.id, catalog.track.id)

    @pytest.mark.asyncio
    async def test_session_of_another_user_is_hidden(
        self, engine, two_questions, catalog
    ):
        session = await engine.start_session(catalog.user.id, catalog.track.id)

        with pytest.raises(SessionNotFoundError):
            engine.get_session(session.id, user_id=uuid4())

    @pytest.mark.asyncio
    async def test_closed_session_is_gone(self, engine, two_questions, catalog):
        session = await engine.start_session(catalog.user.id, catalog.track.id)
        engine.close_session(session.id)

        with pytest.raises(SessionNotFoundError):
            engine.get_session(session.id)


class TestSessionLifetime:
    @pytest.mark.asyncio
    async def test_completed_session_is_released(
        self, engine, two_questions, catalog
    ):
        first, second = two_questions
        session = await engine.start_session(catalog.user.id, catalog.track.id)
        for question in (first, second):
            engine.present_next(session.id)
            engine.select_answer(session.id, question.correct_answer.id)
            await engine.submit(session.id)

        assert session.state == QuizState.COMPLETED
        assert engine.open_sessions == 0
        with pytest.raises(SessionNotFoundError):
            engine.get_session(session.id)

    @pytest.mark.asyncio
    async def test_idle_sessions_are_evicted(
        self, quiz_service, repos, two_questions, catalog, clock
    ):
        engine = AssessmentEngine(
            quiz_service, repos.quiz_attempts, clock=clock, idle_seconds=600
        )
        abandoned = await engine.start_session(catalog.user.id, catalog.track.id)
        clock.advance(300)
        active = await engine.start_session(catalog.user.id, catalog.track.id)
        clock.advance(301)

        with pytest.raises(SessionNotFoundError):
            engine.get_session(abandoned.id)
        assert engine.get_session(active.id) is active

        clock.advance(601)
        assert engine.evict_idle() == 1
        assert engine.open_sessions == 0

    @pytest.mark.asyncio
    async def test_activity_keeps_session_open(
        self, quiz_service, repos, two_questions, catalog, clock
    ):
        engine = AssessmentEngine(
            quiz_service, repos.quiz_attempts, clock=clock, idle_seconds=600
        )
        session = await engine.start_session(catalog.user.id, catalog.track.id)
        clock.advance(500)
        engine.present_next(session.id)
        clock.advance(500)

        assert engine.get_session(session.id) is session
