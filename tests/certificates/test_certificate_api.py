"""Tests for the certificate endpoints, including public verification."""

from uuid import uuid4

import pytest
from conftest import VERIFY_BASE_URL, user_headers


async def watch_everything(client, catalog):
    for video in catalog.videos:
        response = await client.post(
            "/v1/progress/video/complete",
            json={"video_id": str(video.id)},
            headers=user_headers(catalog.user.id),
        )
        assert response.status_code == 200


@pytest.mark.asyncio
async def test_issue_requires_completion(client, catalog):
    response = await client.post(
        "/v1/certificates",
        json={"track_id": str(catalog.track.id)},
        headers=user_headers(catalog.user.id),
    )

    assert response.status_code == 422
    assert response.json()["code"] == "not_eligible"


@pytest.mark.asyncio
async def test_issue_is_idempotent(client, catalog):
    await watch_everything(client, catalog)
    headers = user_headers(catalog.user.id)
    body = {"track_id": str(catalog.track.id)}

    first = await client.post("/v1/certificates", json=body, headers=headers)
    second = await client.post("/v1/certificates", json=body, headers=headers)

    assert first.status_code == 201
    assert first.json()["created"] is True
    assert second.status_code == 200
    assert second.json()["created"] is False
    assert second.json()["certificate"]["id"] == first.json()["certificate"]["id"]


@pytest.mark.asyncio
async def test_public_verification(client, catalog):
    await watch_everything(client, catalog)
    issued = await client.post(
        "/v1/certificates",
        json={"track_id": str(catalog.track.id)},
        headers=user_headers(catalog.user.id),
    )
    certificate_id = issued.json()["certificate"]["id"]

    response = await client.get(f"/certificates/{certificate_id}")

    assert response.status_code == 200
    data = response.json()
    assert data["valid"] is True
    assert data["user_full_name"] == "Ana Souza"
    assert data["track_name"] == "Onboarding"


@pytest.mark.asyncio
async def test_unknown_certificate_is_invalid(client):
    response = await client.get(f"/certificates/{uuid4()}")

    assert response.status_code == 404
    assert response.json() == {"valid": False, "reason": "Certificate not found"}


@pytest.mark.asyncio
async def test_my_certificates_render_and_revoke(client, catalog):
    await watch_everything(client, catalog)
    headers = user_headers(catalog.user.id)
    issued = await client.post(
        "/v1/certificates",
        json={"track_id": str(catalog.track.id)},
        headers=headers,
    )
    certificate_id = issued.json()["certificate"]["id"]

    mine = await client.get("/v1/certificates/me", headers=headers)
    downloaded = await client.post(f"/v1/certificates/{certificate_id}/download")
    render = await client.get(f"/v1/certificates/{certificate_id}/render")
    revoked = await client.delete(f"/v1/certificates/{certificate_id}")
    again = await client.delete(f"/v1/certificates/{certificate_id}")

    assert [c["track_name"] for c in mine.json()] == ["Onboarding"]
    assert downloaded.json()["downloaded"] is True
    assert render.json()["verification_url"] == f"{VERIFY_BASE_URL}/{certificate_id}"
    assert revoked.status_code == 204
    assert again.status_code == 404
    assert again.json()["code"] == "certificate_not_found"


@pytest.mark.asyncio
async def test_admin_listing_search(client, catalog):
    await watch_everything(client, catalog)
    await client.post(
        "/v1/certificates",
        json={"track_id": str(catalog.track.id)},
        headers=user_headers(catalog.user.id),
    )

    found = await client.get("/v1/certificates", params={"search": "souza"})
    missing = await client.get("/v1/certificates", params={"search": "nobody"})

    assert found.json()["total"] == 1
    assert missing.json() == {"items": [], "total": 0}


@pytest.mark.asyncio
@pytest.mark.parametrize("certificate_id", ["not-a-uuid", "1234", "%20"])
async def test_malformed_certificate_id_is_invalid(client, certificate_id):
    response = await client.get(f"/certificates/{certificate_id}")

    assert response.status_code == 404
    assert response.json() == {"valid": False, "reason": "Certificate not found"}
