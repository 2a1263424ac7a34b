"""Tests for health endpoints."""

import httpx
import pytest


@pytest.mark.asyncio
async def test_liveness(client: httpx.AsyncClient) -> None:
    """Test the liveness endpoint."""
    response = await client.get("/health/live")
    assert response.status_code == 200
    assert response.json() == {"status": "alive"}


@pytest.mark.asyncio
async def test_readiness(client: httpx.AsyncClient) -> None:
    """Test the readiness endpoint."""
    response = await client.get("/health/ready")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["storage_backend"] == "memory"
    assert data["environment"] == "testing"
    assert "debug" in data


@pytest.mark.asyncio
async def test_health(client: httpx.AsyncClient) -> None:
    """Test the general health endpoint."""
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["app_name"] == "learnpath"
    assert "version" in data


@pytest.mark.asyncio
async def test_root(client: httpx.AsyncClient) -> None:
    """Test the root endpoint."""
    response = await client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert "LearnPath" in data["message"]
    assert "version" in data


@pytest.mark.asyncio
async def test_missing_user_header_is_unauthorized(client: httpx.AsyncClient) -> None:
    response = await client.get("/v1/certificates/me")
    assert response.status_code == 401
    body = response.json()
    assert body["error"] is True
    assert "X-User-ID" in body["message"]
