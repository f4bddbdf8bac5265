from unittest.mock import AsyncMock

import numpy as np
import pytest

from nestfind.catalog import Catalog
from nestfind.database import serialize_embedding
from nestfind.errors import RetrievalError
from nestfind.search.retriever import SemanticRetriever, listing_text
from nestfind.search.store import VectorStore, listing_store_id, query_store_id
from tests.conftest import MockEmbedder, make_listing, mock_embedding


def vec(text: str) -> bytes:
    return serialize_embedding(mock_embedding(text))


@pytest.fixture
def retriever(store: VectorStore, catalog: Catalog) -> SemanticRetriever:
    return SemanticRetriever(store, MockEmbedder(), catalog)


class TestStoreIds:
    def test_listing_id_is_deterministic(self):
        assert listing_store_id("apt-001") == listing_store_id("apt-001")
        assert listing_store_id("apt-001") != listing_store_id("apt-002")

    def test_query_id_ignores_case_and_spacing(self):
        assert query_store_id("Cheap  Studio") == query_store_id("cheap studio ")


class TestVectorStore:
    @pytest.mark.asyncio
    async def test_upsert_listing_is_idempotent(self, store: VectorStore):
        first = await store.upsert_listing("apt-001", "loft", vec("loft"))
        second = await store.upsert_listing("apt-001", "loft updated", vec("loft updated"))
        assert first == second == listing_store_id("apt-001")
        stats = await store.get_stats()
        assert stats["listings"] == 1

    @pytest.mark.asyncio
    async def test_reupsert_replaces_vector(self, store: VectorStore):
        await store.upsert_listing("apt-001", "loft", vec("loft"))
        await store.upsert_listing("apt-001", "garden flat", vec("garden flat"))
        results = await store.search_listings(vec("garden flat"), 5)
        assert results[0][0] == "apt-001"
        assert results[0][1] == pytest.approx(1.0, abs=1e-4)

    @pytest.mark.asyncio
    async def test_search_listings_orders_by_similarity(self, store: VectorStore):
        for name in ("alpha", "beta", "gamma"):
            await store.upsert_listing(name, name, vec(name))
        results = await store.search_listings(vec("beta"), 3)
        assert results[0][0] == "beta"
        scores = [score for _, score in results]
        assert scores == sorted(scores, reverse=True)
        assert all(0.0 <= s <= 1.0 for s in scores)

    @pytest.mark.asyncio
    async def test_upsert_query_dedupes(self, store: VectorStore):
        await store.upsert_query("cheap studio", vec("cheap studio"), 3)
        await store.upsert_query("Cheap  Studio", vec("Cheap  Studio"), 5)
        stats = await store.get_stats()
        assert stats["past_queries"] == 1
        rows = await store.conn.execute_fetchall("SELECT query, result_count FROM past_queries")
        assert rows[0]["query"] == "cheap studio"
        assert rows[0]["result_count"] == 5

    @pytest.mark.asyncio
    async def test_clear(self, store: VectorStore):
        await store.upsert_listing("apt-001", "loft", vec("loft"))
        await store.upsert_query("loft", vec("loft"), 1)
        await store.clear()
        assert await store.get_stats() == {"listings": 0, "past_queries": 0}


class TestListingText:
    def test_contains_all_features(self):
        listing = make_listing(
            title="Sunny Loft", pet_friendly=True, parking=True, amenities=("gym", "pool"), neighborhood="seaport"
        )
        text = listing_text(listing)
        assert text.startswith("Sunny Loft. 2 bedroom 1 bathroom apartment in seaport.")
        assert "Price: $1500 per month." in text
        assert "Pet friendly." in text
        assert "Parking available." in text
        assert "Amenities: gym, pool." in text
        assert "800 square feet." in text
        assert text.endswith("Located at 1 Test St")

    def test_omits_absent_features(self):
        text = listing_text(make_listing(square_feet=0))
        assert "Pet friendly" not in text
        assert "Parking" not in text
        assert "Amenities" not in text
        assert "square feet" not in text


class TestSemanticRetriever:
    @pytest.mark.asyncio
    async def test_nearest_listing_is_itself(self, retriever: SemanticRetriever, catalog: Catalog):
        await retriever.upsert_many(list(catalog.listings))
        target = catalog.get("apt-004")
        results = await retriever.nearest_listings(listing_text(target))
        assert results[0].id == "apt-004"
        assert results[0].score == pytest.approx(1.0, abs=1e-4)
        assert len(results) == min(20, len(catalog))

    @pytest.mark.asyncio
    async def test_upsert_twice_keeps_one_record(self, retriever: SemanticRetriever, store: VectorStore, catalog):
        listing = catalog.get("apt-001")
        first = await retriever.upsert(listing)
        second = await retriever.upsert(listing)
        assert first == second
        assert (await store.get_stats())["listings"] == 1

    @pytest.mark.asyncio
    async def test_skips_listings_missing_from_catalog(self, store: VectorStore, catalog: Catalog):
        listings = list(catalog.listings)
        full = SemanticRetriever(store, MockEmbedder(), catalog)
        await full.upsert_many(listings)

        partial = SemanticRetriever(store, MockEmbedder(), Catalog(listings[1:]))
        results = await partial.nearest_listings(listing_text(listings[0]))
        assert listings[0].id not in {r.id for r in results}

    @pytest.mark.asyncio
    async def test_past_queries_respect_min_score(self, retriever: SemanticRetriever):
        await retriever.store_successful_query("pet friendly near campus", 4)
        await retriever.store_successful_query("luxury penthouse", 2)
        vector = mock_embedding("pet friendly near campus")
        assert await retriever.nearest_past_queries(vector, min_score=0.99) == ["pet friendly near campus"]

    @pytest.mark.asyncio
    async def test_retrieve_builds_context(self, retriever: SemanticRetriever, catalog: Catalog):
        await retriever.upsert_many(list(catalog.listings))
        await retriever.store_successful_query("2 bed downtown", 3)
        context = await retriever.retrieve("2 bed downtown")
        assert context.listings
        assert context.similar_queries[0] == "2 bed downtown"
        assert context.search_time_ms >= 0
        assert not context.is_empty

    @pytest.mark.asyncio
    async def test_store_successful_query_skips_empty(self, retriever: SemanticRetriever, store: VectorStore):
        assert await retriever.store_successful_query("studio", 0) is None
        assert await retriever.store_successful_query("   ", 5) is None
        assert (await store.get_stats())["past_queries"] == 0

    @pytest.mark.asyncio
    async def test_embedding_failure_is_retrieval_error(self, store: VectorStore, catalog: Catalog):
        embedder = MockEmbedder()
        embedder.embed = AsyncMock(side_effect=RuntimeError("provider down"))
        retriever = SemanticRetriever(store, embedder, catalog)
        with pytest.raises(RetrievalError):
            await retriever.retrieve("studio")
        with pytest.raises(RetrievalError):
            await retriever.upsert_many(list(catalog.listings)[:2])

    @pytest.mark.asyncio
    async def test_store_failure_is_retrieval_error(self, catalog: Catalog):
        store = AsyncMock(spec=VectorStore)
        store.search_listings.side_effect = RuntimeError("database is locked")
        retriever = SemanticRetriever(store, MockEmbedder(), catalog)
        with pytest.raises(RetrievalError):
            await retriever.nearest_listings("studio")

    @pytest.mark.asyncio
    async def test_query_vector_embedded_once(self, retriever: SemanticRetriever):
        await retriever.retrieve("loft")
        assert retriever.embedder.calls == 1
        assert isinstance(await retriever.embed_query("loft"), np.ndarray)
