"""Tests for health check endpoints."""
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import status
from httpx import AsyncClient


class TestHealthEndpoints:
    @pytest.mark.asyncio
    async def test_health_reports_database_and_budget(self, async_client: AsyncClient, rate_budget) -> None:
        rate_budget.record()

        response = await async_client.get("/api/v1/health")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == "1.0.0"
        assert data["checks"]["database"]["status"] == "healthy"
        assert data["checks"]["quote_budget"]["status"] == "available"
        assert data["checks"]["quote_budget"]["minute"] == "1/5"
        assert data["checks"]["quote_budget"]["day"] == "1/25"

    @pytest.mark.asyncio
    async def test_exhausted_budget_is_reported_but_healthy(self, async_client: AsyncClient, rate_budget) -> None:
        for _ in range(5):
            rate_budget.record()

        response = await async_client.get("/api/v1/health")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["checks"]["quote_budget"]["status"] == "exhausted"

    @pytest.mark.asyncio
    async def test_database_failure_is_503(self, async_client: AsyncClient) -> None:
        unhealthy = AsyncMock(return_value={"status": "unhealthy", "message": "Database connection failed"})
        with patch("depot_quotes.api.v1.health.check_db_health", unhealthy):
            response = await async_client.get("/api/v1/health")

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["status"] == "unhealthy"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path,expected", [("/api/v1/health/ready", "ready"), ("/api/v1/health/live", "alive")])
    async def test_readiness_and_liveness(self, async_client: AsyncClient, path: str, expected: str) -> None:
        response = await async_client.get(path)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == expected
