"""Tests for the quiz endpoints."""

import pytest
from conftest import user_headers


async def create_question(client, catalog, headers) -> dict:
    response = await client.post(
        "/v1/quizzes/questions",
        json={
            "track_id": str(catalog.track.id),
            "text": "Which shelf holds controlled drugs?",
            "answers": [
                {"text": "Locked cabinet", "is_correct": True},
                {"text": "Front counter"},
            ],
        },
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()


async def finish_quiz(client, catalog, headers, answer_id: str) -> dict:
    started = await client.post(
        f"/v1/quizzes/tracks/{catalog.track.id}/sessions", headers=headers
    )
    session_id = started.json()["id"]
    await client.post(
        f"/v1/quizzes/sessions/{session_id}/answer",
        json={"answer_id": answer_id},
        headers=headers,
    )
    submitted = await client.post(
        f"/v1/quizzes/sessions/{session_id}/submit", headers=headers
    )
    assert submitted.status_code == 200
    return submitted.json()


@pytest.mark.asyncio
async def test_question_defaults_time_limit(client, catalog):
    question = await create_question(client, catalog, user_headers(catalog.user.id))

    assert question["time_limit_seconds"] == 60
    assert [a["is_correct"] for a in question["answers"]] == [True, False]


@pytest.mark.asyncio
async def test_completed_quizzes_release_their_sessions(client, app, catalog):
    headers = user_headers(catalog.user.id)
    question = await create_question(client, catalog, headers)
    right = question["answers"][0]["id"]

    results = [await finish_quiz(client, catalog, headers, right) for _ in range(5)]

    assert all(r["session"]["state"] == "completed" for r in results)
    assert results[0]["session"]["summary"]["total_score"] == 150
    assert app.state.assessment_engine.open_sessions == 0

    finished = await client.get(
        f"/v1/quizzes/sessions/{results[0]['session']['id']}", headers=headers
    )
    assert finished.status_code == 404
    assert finished.json()["code"] == "quiz_session_not_found"


@pytest.mark.asyncio
async def test_open_session_is_readable(client, catalog):
    headers = user_headers(catalog.user.id)
    await create_question(client, catalog, headers)

    started = await client.post(
        f"/v1/quizzes/tracks/{catalog.track.id}/sessions", headers=headers
    )
    fetched = await client.get(
        f"/v1/quizzes/sessions/{started.json()['id']}", headers=headers
    )

    assert fetched.status_code == 200
    assert fetched.json()["state"] == "question_presented"
    assert fetched.json()["answered_count"] == 0
