"""E2E tests for the search API endpoints"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from nestfind.config import Config
from nestfind.server.app import app
from nestfind.server.runtime import Runtime, reset_runtime
from tests.conftest import TEST_EMBEDDING_DIM, MockEmbedder

E2E_QUERY = "2 bedroom pet friendly apartment near downtown under $1500"


@pytest_asyncio.fixture
async def test_runtime(tmp_path: Path) -> AsyncGenerator[Runtime]:
    """Isolated runtime: no language service, mock embeddings, nothing indexed"""
    await reset_runtime()

    test_config = Config(
        data_dir=tmp_path / "data",
        llm_model=None,
        embedding_model="test-embedding",
        embedding_dim=TEST_EMBEDDING_DIM,
        index_on_startup=False,
    )
    runtime = Runtime(config=test_config)
    runtime.embedder = MockEmbedder()
    await runtime.connect()

    import nestfind.server.runtime as runtime_module

    runtime_module._runtime = runtime

    yield runtime

    await runtime.close()
    await reset_runtime()


@pytest_asyncio.fixture
async def test_client(test_runtime: Runtime) -> AsyncGenerator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, test_client: AsyncClient, test_runtime: Runtime):
        response = await test_client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["listings"] == len(test_runtime.catalog)
        assert data["language_service"] is False
        assert data["semantic_retrieval"] is True


class TestSearchEndpoint:
    @pytest.mark.asyncio
    async def test_search_end_to_end(self, test_client: AsyncClient):
        response = await test_client.post("/api/search", json={"query": E2E_QUERY})
        assert response.status_code == 200
        data = response.json()
        assert [r["id"] for r in data["results"]] == ["apt-004", "apt-005"]
        assert data["metadata"]["totalResults"] == 2
        assert data["metadata"]["confidence"] == 0.5
        assert data["metadata"]["searchTimeMs"] >= 0
        assert data["sessionId"]
        first = data["results"][0]
        assert first["petFriendly"] is True
        assert first["location"]["neighborhood"] == "downtown"

    @pytest.mark.asyncio
    async def test_search_echoes_session_id(self, test_client: AsyncClient):
        response = await test_client.post("/api/search", json={"query": "studio", "sessionId": "client-7"})
        assert response.status_code == 200
        assert response.json()["sessionId"] == "client-7"

    @pytest.mark.asyncio
    async def test_empty_query_returns_catalog(self, test_client: AsyncClient, test_runtime: Runtime):
        response = await test_client.post("/api/search", json={"query": ""})
        data = response.json()
        assert data["metadata"]["totalResults"] == len(test_runtime.catalog)
        assert data["metadata"]["confidence"] == 1.0

    @pytest.mark.asyncio
    async def test_successful_query_is_remembered(self, test_client: AsyncClient, test_runtime: Runtime):
        await test_client.post("/api/search", json={"query": E2E_QUERY})
        await test_runtime.channel.drain()
        stats = await test_runtime.store.get_stats()
        assert stats["past_queries"] == 1

    @pytest.mark.asyncio
    async def test_zero_result_query_is_not_remembered(self, test_client: AsyncClient, test_runtime: Runtime):
        response = await test_client.post("/api/search", json={"query": "9 bedroom under $100"})
        assert response.json()["metadata"]["totalResults"] == 0
        await test_runtime.channel.drain()
        assert (await test_runtime.store.get_stats())["past_queries"] == 0

    @pytest.mark.asyncio
    async def test_hybrid_search_after_indexing(self, test_client: AsyncClient, test_runtime: Runtime):
        result = await test_runtime.indexer.run(list(test_runtime.catalog.listings))
        assert result.indexed == len(test_runtime.catalog)

        response = await test_client.post("/api/search", json={"query": E2E_QUERY})
        ids = {r["id"] for r in response.json()["results"]}
        assert ids == {"apt-004", "apt-005", "apt-015"}


class TestCatalogEndpoints:
    @pytest.mark.asyncio
    async def test_list_apartments(self, test_client: AsyncClient, test_runtime: Runtime):
        response = await test_client.get("/api/apartments")
        assert response.status_code == 200
        data = response.json()
        assert [r["id"] for r in data["results"]] == [listing.id for listing in test_runtime.catalog]

    @pytest.mark.asyncio
    async def test_map(self, test_client: AsyncClient):
        response = await test_client.post("/api/map", json={"query": E2E_QUERY})
        assert response.status_code == 200
        data = response.json()
        assert {m["id"] for m in data["markers"]} == {"apt-004", "apt-005"}
        assert sorted(i for ids in data["clusters"].values() for i in ids) == ["apt-004", "apt-005"]
        bounds = data["bounds"]
        assert bounds["minLat"] < 42.3555 < bounds["maxLat"]
        assert bounds["minLon"] < -71.0620 < bounds["maxLon"]


class TestOperationalEndpoints:
    @pytest.mark.asyncio
    async def test_index_status_before_indexing(self, test_client: AsyncClient):
        response = await test_client.get("/index/status")
        assert response.status_code == 200
        data = response.json()
        assert data["indexing"] is False
        assert data["stats"] == {"listings": 0, "past_queries": 0}

    @pytest.mark.asyncio
    async def test_start_indexing(self, test_client: AsyncClient, test_runtime: Runtime):
        response = await test_client.post("/index/start")
        assert response.status_code == 200
        assert response.json() == {"status": "started"}
        await test_runtime.indexer.wait()
        status = (await test_client.get("/index/status")).json()
        assert status["stats"]["listings"] == len(test_runtime.catalog)

    @pytest.mark.asyncio
    async def test_stats_count_searches(self, test_client: AsyncClient, test_runtime: Runtime):
        await test_client.post("/api/search", json={"query": E2E_QUERY})
        await test_client.post("/api/search", json={"query": "9 bedroom under $100"})
        await test_runtime.channel.drain()
        data = (await test_client.get("/stats")).json()
        assert data["total_searches"] == 2
        assert data["zero_result_searches"] == 1
