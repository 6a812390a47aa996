"""Unit tests for enrichment/router.py."""

import asyncio
import json

import pytest
from httpx import ASGITransport, AsyncClient

from core.dependencies import build_services
from enrichment.router import _batch_tasks
from tests.factories import make_release_payload, make_search_hit
from tests.unit.conftest import attach_services


@pytest.fixture
def seeded_api(discogs_api):
    discogs_api.search_results["0077774600125"] = [make_search_hit(42)]
    discogs_api.releases[42] = make_release_payload(42)
    return discogs_api


class TestLookups:
    @pytest.mark.asyncio
    async def test_lookup_result_lands_in_store(self, app_with_services, services, seeded_api):
        async with AsyncClient(
            transport=ASGITransport(app=app_with_services), base_url="http://test"
        ) as client:
            response = await client.post(
                "/api/v1/enrichment/lookups", json={"key": "0077774600125"}
            )
            assert response.status_code == 202
            assert response.json() == {"key": "0077774600125", "state": "pending"}

            await services.coordinator.join()

            response = await client.get("/api/v1/enrichment/lookups/0077774600125")

        assert response.status_code == 200
        data = response.json()
        assert data["state"] is None
        assert data["result"]["artist"] == "Pink Floyd"
        assert data["result"]["release_id"] == 42
        assert data["result"]["matched"] is True
        assert len(data["result"]["tracklist"]) == 2
        assert len(json.loads(data["encoded_tracklist"])) == 2

    @pytest.mark.asyncio
    async def test_unmatched_lookup_stores_empty_result(self, app_with_services, services):
        async with AsyncClient(
            transport=ASGITransport(app=app_with_services), base_url="http://test"
        ) as client:
            await client.post("/api/v1/enrichment/lookups", json={"key": "000"})
            await services.coordinator.join()
            response = await client.get("/api/v1/enrichment/lookups/000")

        assert response.status_code == 200
        assert response.json()["result"]["matched"] is False

    @pytest.mark.asyncio
    async def test_unknown_key(self, app_with_services):
        async with AsyncClient(
            transport=ASGITransport(app=app_with_services), base_url="http://test"
        ) as client:
            response = await client.get("/api/v1/enrichment/lookups/never")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_artist_title_requires_fields(self, app_with_services):
        async with AsyncClient(
            transport=ASGITransport(app=app_with_services), base_url="http://test"
        ) as client:
            response = await client.post(
                "/api/v1/enrichment/lookups", json={"key": "row-1", "kind": "artist_title"}
            )

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_cancel(self, app_with_services, services):
        async with AsyncClient(
            transport=ASGITransport(app=app_with_services), base_url="http://test"
        ) as client:
            services.coordinator.jitter = (5.0, 5.0)
            await client.post("/api/v1/enrichment/lookups", json={"key": "123"})
            response = await client.delete("/api/v1/enrichment/lookups/123")
            second = await client.delete("/api/v1/enrichment/lookups/123")

        assert response.json() == {"key": "123", "cancelled": True}
        assert second.json() == {"key": "123", "cancelled": False}
        assert "123" not in services.store

    @pytest.mark.asyncio
    async def test_disabled_returns_503(self, disabled_settings):
        from main import app

        with attach_services(app, build_services(disabled_settings)):
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
                response = await client.post("/api/v1/enrichment/lookups", json={"key": "123"})

        assert response.status_code == 503


class TestBatches:
    @pytest.mark.asyncio
    async def test_batch_reports_progress(self, app_with_services, services, seeded_api):
        async with AsyncClient(
            transport=ASGITransport(app=app_with_services), base_url="http://test"
        ) as client:
            response = await client.post(
                "/api/v1/enrichment/batches",
                json={"items": [{"key": "0077774600125"}, {"key": "000"}]},
            )
            assert response.status_code == 202
            assert response.json()["total"] == 2
            assert response.json()["is_importing"] is True

            await asyncio.gather(*list(_batch_tasks))

            progress = await client.get("/api/v1/enrichment/progress")

        assert progress.json() == {
            "completed": 2,
            "total": 2,
            "fraction": 1.0,
            "is_importing": False,
        }
        assert services.store.get("0077774600125").matched is True
        assert services.store.get("000").matched is False

    @pytest.mark.asyncio
    async def test_second_batch_conflicts(self, app_with_services, services):
        services.coordinator.start_batch(3)

        async with AsyncClient(
            transport=ASGITransport(app=app_with_services), base_url="http://test"
        ) as client:
            response = await client.post(
                "/api/v1/enrichment/batches", json={"items": [{"key": "a"}]}
            )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_progress_idle(self, app_with_services):
        async with AsyncClient(
            transport=ASGITransport(app=app_with_services), base_url="http://test"
        ) as client:
            response = await client.get("/api/v1/enrichment/progress")

        assert response.json()["is_importing"] is False
