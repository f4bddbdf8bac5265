import pytest

import nestfind.database as database
from nestfind.config import Config
from nestfind.events import SearchCompleted
from nestfind.server.runtime import Runtime
from tests.conftest import TEST_EMBEDDING_DIM, MockEmbedder


def make_config(tmp_path) -> Config:
    return Config(
        data_dir=tmp_path / "data",
        llm_model=None,
        embedding_model="test-embedding",
        embedding_dim=TEST_EMBEDDING_DIM,
        index_on_startup=False,
    )


class TestRuntime:
    @pytest.mark.asyncio
    async def test_vector_store_unavailable_degrades(self, tmp_path, monkeypatch):
        async def broken_connect(*args, **kwargs):
            raise OSError("sqlite-vec extension not loadable")

        monkeypatch.setattr(database, "connect", broken_connect)
        runtime = Runtime(config=make_config(tmp_path))
        await runtime.connect()
        try:
            assert runtime.retriever is None
            assert runtime.indexer is None
            result = await runtime.orchestrator.search("2 bedroom pet friendly apartment near downtown under $1500")
            assert [listing.id for listing in result.listings] == ["apt-004", "apt-005"]
            status = await runtime.get_index_status()
            assert status["error"] == "vector store unavailable"
            assert await runtime.seed_past_queries() == 0
        finally:
            await runtime.close()

    @pytest.mark.asyncio
    async def test_seed_past_queries(self, tmp_path):
        runtime = Runtime(config=make_config(tmp_path))
        runtime.embedder = MockEmbedder()
        await runtime.connect()
        try:
            stored = await runtime.seed_past_queries()
            assert stored == 6
            assert (await runtime.store.get_stats())["past_queries"] == 6
        finally:
            await runtime.close()

    @pytest.mark.asyncio
    async def test_ignores_empty_or_failed_searches(self, tmp_path):
        runtime = Runtime(config=make_config(tmp_path))
        runtime.embedder = MockEmbedder()
        await runtime.connect()
        try:
            await runtime._on_search_completed(
                SearchCompleted(session_id="a", query="", result_count=16, search_time_ms=1, confidence=1.0)
            )
            await runtime._on_search_completed(
                SearchCompleted(session_id="b", query="castle", result_count=0, search_time_ms=1, confidence=0.5)
            )
            assert (await runtime.store.get_stats())["past_queries"] == 0
        finally:
            await runtime.close()

    @pytest.mark.asyncio
    async def test_connect_is_idempotent(self, tmp_path):
        runtime = Runtime(config=make_config(tmp_path))
        runtime.embedder = MockEmbedder()
        await runtime.connect()
        retriever = runtime.retriever
        await runtime.connect()
        try:
            assert runtime.retriever is retriever
        finally:
            await runtime.close()
