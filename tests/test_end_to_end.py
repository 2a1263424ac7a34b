"""A learner goes from first video to verified certificate over the API."""

import pytest
from conftest import user_headers


@pytest.mark.asyncio
async def test_learner_journey(client, catalog, clock):
    headers = user_headers(catalog.user.id)
    track_id = str(catalog.track.id)

    # Watch both videos: a partial report, then the completion ratio is crossed
    first, second = catalog.videos
    await client.post(
        "/v1/progress/video/start", json={"video_id": str(first.id)}, headers=headers
    )
    partial = await client.put(
        "/v1/progress/video",
        json={"video_id": str(first.id), "elapsed_seconds": 40, "duration_seconds": 100},
        headers=headers,
    )
    assert partial.json()["status"] == "in_progress"

    watched = await client.put(
        "/v1/progress/video",
        json={"video_id": str(first.id), "elapsed_seconds": 99, "duration_seconds": 100},
        headers=headers,
    )
    assert watched.json()["status"] == "completed"

    await client.post(
        "/v1/progress/video/complete", json={"video_id": str(second.id)}, headers=headers
    )
    progress = await client.get(
        f"/v1/aggregates/tracks/{track_id}/progress", headers=headers
    )
    assert progress.json()["is_completed"] is True

    # Quiz over the track
    questions = []
    for text, correct in (("Where are gloves kept?", 0), ("Who signs the log?", 1)):
        created = await client.post(
            "/v1/quizzes/questions",
            json={
                "track_id": track_id,
                "text": text,
                "time_limit_seconds": 40,
                "answers": [
                    {"text": "A", "is_correct": correct == 0},
                    {"text": "B", "is_correct": correct == 1},
                ],
            },
            headers=headers,
        )
        assert created.status_code == 201
        questions.append(created.json())

    started = await client.post(
        f"/v1/quizzes/tracks/{track_id}/sessions", headers=headers
    )
    assert started.status_code == 201
    session = started.json()
    assert session["state"] == "question_presented"
    assert "is_correct" not in session["current_question"]["answers"][0]
    session_id = session["id"]

    right = questions[0]["answers"][0]["id"]
    await client.post(
        f"/v1/quizzes/sessions/{session_id}/answer",
        json={"answer_id": right},
        headers=headers,
    )
    submitted = await client.post(
        f"/v1/quizzes/sessions/{session_id}/submit", headers=headers
    )
    assert submitted.json()["attempt"]["score"] == 150

    await client.post(f"/v1/quizzes/sessions/{session_id}/next", headers=headers)
    clock.advance(30)
    wrong = questions[1]["answers"][0]["id"]
    await client.post(
        f"/v1/quizzes/sessions/{session_id}/answer",
        json={"answer_id": wrong},
        headers=headers,
    )
    submitted = await client.post(
        f"/v1/quizzes/sessions/{session_id}/submit", headers=headers
    )
    final = submitted.json()["session"]
    assert final["state"] == "completed"
    assert final["summary"]["total_score"] == 150

    results = await client.get(f"/v1/quizzes/tracks/{track_id}/results", headers=headers)
    assert results.json() == {
        "track_id": track_id,
        "total_questions": 2,
        "correct_answers": 1,
        "total_score": 150,
        "average_response_time": 15.0,
    }

    # Certificate, then public verification
    issued = await client.post(
        "/v1/certificates", json={"track_id": track_id}, headers=headers
    )
    assert issued.status_code == 201
    certificate_id = issued.json()["certificate"]["id"]

    verified = await client.get(f"/certificates/{certificate_id}")
    assert verified.json()["valid"] is True
    assert verified.json()["user_full_name"] == "Ana Souza"
