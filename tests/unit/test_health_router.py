"""Unit tests for routers/health.py."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient

from core.dependencies import build_services
from core.exceptions import UnauthorizedError
from discogs.executor import RequestExecutor
from routers.health import _check_discogs_api, _run_check
from tests.unit.conftest import attach_services

# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


class TestCheckDiscogsApi:
    @pytest.mark.asyncio
    async def test_ok(self):
        executor = AsyncMock(spec=RequestExecutor)
        executor.check_api = AsyncMock(return_value=True)
        assert await _check_discogs_api(executor) == "ok"

    @pytest.mark.asyncio
    async def test_error(self):
        executor = AsyncMock(spec=RequestExecutor)
        executor.check_api = AsyncMock(return_value=False)
        assert await _check_discogs_api(executor) == "error"

    @pytest.mark.asyncio
    async def test_none_executor(self):
        assert await _check_discogs_api(None) == "unavailable"


class TestRunCheck:
    @pytest.mark.asyncio
    async def test_passes_result_through(self):
        async def check():
            return "ok"

        assert await _run_check(check()) == "ok"

    @pytest.mark.asyncio
    async def test_timeout(self, monkeypatch):
        monkeypatch.setattr("routers.health.CHECK_TIMEOUT", 0.01)

        async def slow():
            await asyncio.sleep(1)
            return "ok"

        assert await _run_check(slow()) == "timeout"


# ---------------------------------------------------------------------------
# Endpoint
# ---------------------------------------------------------------------------


class TestHealthEndpoint:
    @pytest.mark.asyncio
    async def test_healthy(self, app_with_services):
        async with AsyncClient(
            transport=ASGITransport(app=app_with_services), base_url="http://test"
        ) as client:
            response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["services"] == {"discogs_api": "ok"}
        assert data["discogs"] == {
            "mode": "token",
            "cooldown_seconds": 0.0,
            "active_lookups": 0,
            "unauthorized": False,
        }

    @pytest.mark.asyncio
    async def test_rejected_token_is_degraded(self, app_with_services, discogs_api):
        discogs_api.status_override = 401

        async with AsyncClient(
            transport=ASGITransport(app=app_with_services), base_url="http://test"
        ) as client:
            response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["services"]["discogs_api"] == "error"

    @pytest.mark.asyncio
    async def test_reported_unauthorized_is_degraded(self, app_with_services, services):
        services.coordinator._report_unauthorized(UnauthorizedError("rejected"))

        async with AsyncClient(
            transport=ASGITransport(app=app_with_services), base_url="http://test"
        ) as client:
            response = await client.get("/health")

        assert response.json()["status"] == "degraded"
        assert response.json()["discogs"]["unauthorized"] is True

    @pytest.mark.asyncio
    async def test_cooldown_is_reported(self, app_with_services, services):
        services.rate_gate.signal_cooldown(30)

        async with AsyncClient(
            transport=ASGITransport(app=app_with_services), base_url="http://test"
        ) as client:
            services.executor.check_api = AsyncMock(return_value=True)
            response = await client.get("/health")

        assert 0 < response.json()["discogs"]["cooldown_seconds"] <= 30

    @pytest.mark.asyncio
    async def test_disabled_discogs_is_still_healthy(self, disabled_settings):
        from main import app

        with attach_services(app, build_services(disabled_settings)):
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
                response = await client.get("/health")

        data = response.json()
        assert data["status"] == "healthy"
        assert data["services"]["discogs_api"] == "unavailable"
        assert data["discogs"]["mode"] == "disabled"
