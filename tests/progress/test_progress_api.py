"""Tests for the video progress endpoints."""

from uuid import uuid4

import httpx
import pytest
from conftest import user_headers


@pytest.mark.asyncio
async def test_record_then_get(client: httpx.AsyncClient, catalog):
    video = catalog.videos[0]
    headers = user_headers(catalog.user.id)

    response = await client.put(
        "/v1/progress/video",
        json={
            "video_id": str(video.id),
            "elapsed_seconds": 33.7,
            "duration_seconds": 100,
        },
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["watch_time_seconds"] == 33
    assert response.json()["status"] == "in_progress"

    response = await client.get(f"/v1/progress/video/{video.id}", headers=headers)
    assert response.status_code == 200
    assert response.json()["watch_time_seconds"] == 33


@pytest.mark.asyncio
async def test_unwatched_video_reports_not_started(client, catalog):
    response = await client.get(
        f"/v1/progress/video/{catalog.videos[1].id}",
        headers=user_headers(catalog.user.id),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "not_started"
    assert data["watch_time_seconds"] == 0


@pytest.mark.asyncio
async def test_complete_video(client, catalog):
    video = catalog.videos[1]

    response = await client.post(
        "/v1/progress/video/complete",
        json={"video_id": str(video.id)},
        headers=user_headers(catalog.user.id),
    )

    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    assert response.json()["watch_time_seconds"] == video.duration_seconds


@pytest.mark.asyncio
async def test_start_unknown_video_is_not_found(client, catalog):
    response = await client.post(
        "/v1/progress/video/start",
        json={"video_id": str(uuid4())},
        headers=user_headers(catalog.user.id),
    )

    assert response.status_code == 404
    body = response.json()
    assert body["code"] == "video_not_found"
    assert body["error"] is True


@pytest.mark.asyncio
async def test_negative_position_is_a_validation_error(client, catalog):
    response = await client.put(
        "/v1/progress/video",
        json={
            "video_id": str(catalog.videos[0].id),
            "elapsed_seconds": -1,
            "duration_seconds": 100,
        },
        headers=user_headers(catalog.user.id),
    )

    assert response.status_code == 422
