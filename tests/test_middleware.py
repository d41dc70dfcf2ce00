"""Middleware tests — request ID and error handling."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_request_id_generated(client: AsyncClient) -> None:
    """Request ID is auto-generated when not provided."""
    response = await client.get("/health")
    assert "x-request-id" in response.headers
    assert len(response.headers["x-request-id"]) == 36  # UUID format


@pytest.mark.asyncio
async def test_request_id_preserved(client: AsyncClient) -> None:
    """Custom request ID is echoed back in response."""
    response = await client.get("/health", headers={"X-Request-Id": "test-abc-123"})
    assert response.headers["x-request-id"] == "test-abc-123"


@pytest.mark.asyncio
async def test_oversized_request_id_replaced(client: AsyncClient) -> None:
    response = await client.get("/health", headers={"X-Request-Id": "x" * 500})
    assert len(response.headers["x-request-id"]) == 36


@pytest.mark.asyncio
async def test_404_returns_json(client: AsyncClient) -> None:
    """Unknown paths return 404 with JSON body."""
    response = await client.get("/nonexistent-path")
    assert response.status_code == 404
    assert response.json()["detail"] == "Not Found"
    assert response.headers["content-type"] == "application/json"


@pytest.mark.asyncio
async def test_validation_error_format(client: AsyncClient) -> None:
    response = await client.post("/api/v1/activity", json={}, headers={"X-User-Id": "user-1"})
    assert response.status_code == 422
    data = response.json()
    assert data["detail"] == "Validation error"
    assert data["errors"]
