import time

import numpy as np

from nestfind.catalog import Catalog
from nestfind.constants import NEAREST_LISTINGS_LIMIT, PAST_QUERIES_LIMIT, PAST_QUERIES_MIN_SCORE
from nestfind.database import serialize_embedding
from nestfind.embedder import Embedder
from nestfind.errors import RetrievalError
from nestfind.logging import get_logger
from nestfind.models import Listing, RetrievalContext, ScoredListing
from nestfind.search.store import VectorStore

_logger = get_logger(__name__)


def listing_text(listing: Listing) -> str:
    parts = [
        f"{listing.title}.",
        f"{listing.bedrooms} bedroom {listing.bathrooms} bathroom apartment in {listing.neighborhood}.",
        f"Price: ${listing.price} per month.",
    ]
    if listing.pet_friendly:
        parts.append("Pet friendly.")
    if listing.parking:
        parts.append("Parking available.")
    if listing.amenities:
        parts.append(f"Amenities: {', '.join(listing.amenities)}.")
    if listing.square_feet > 0:
        parts.append(f"{listing.square_feet} square feet.")
    parts.append(f"Located at {listing.address}")
    return " ".join(parts)


class SemanticRetriever:
    """Listing and past-query similarity over the vector store.

    Every failure below this boundary surfaces as RetrievalError.
    """

    def __init__(self, store: VectorStore, embedder: Embedder, catalog: Catalog):
        self.store = store
        self.embedder = embedder
        self.catalog = catalog

    async def embed_query(self, text: str) -> np.ndarray:
        try:
            return await self.embedder.embed_one(text)
        except Exception as e:
            raise RetrievalError(f"embedding failed: {e}") from e

    async def upsert(self, listing: Listing) -> str:
        text = listing_text(listing)
        try:
            embedding = await self.embedder.embed_one(text)
            return await self.store.upsert_listing(listing.id, text, serialize_embedding(embedding))
        except Exception as e:
            raise RetrievalError(f"upsert of {listing.id} failed: {e}") from e

    async def upsert_many(self, listings: list[Listing]) -> list[str]:
        texts = [listing_text(listing) for listing in listings]
        try:
            embeddings = await self.embedder.embed_many(texts)
            return [
                await self.store.upsert_listing(listing.id, text, serialize_embedding(embedding))
                for listing, text, embedding in zip(listings, texts, embeddings, strict=True)
            ]
        except Exception as e:
            raise RetrievalError(f"batch upsert failed: {e}") from e

    async def nearest_listings(self, text: str, limit: int = NEAREST_LISTINGS_LIMIT) -> list[ScoredListing]:
        vector = await self.embed_query(text)
        try:
            rows = await self.store.search_listings(serialize_embedding(vector), limit)
        except Exception as e:
            raise RetrievalError(f"listing search failed: {e}") from e

        results = []
        for listing_id, score in rows:
            listing = self.catalog.get(listing_id)
            if listing is None:
                _logger.debug("Indexed listing %s missing from catalog", listing_id)
                continue
            results.append(ScoredListing(listing=listing, score=score))
        return results

    async def nearest_past_queries(
        self,
        vector: np.ndarray,
        limit: int = PAST_QUERIES_LIMIT,
        min_score: float = PAST_QUERIES_MIN_SCORE,
    ) -> list[str]:
        try:
            rows = await self.store.search_queries(serialize_embedding(vector), limit)
        except Exception as e:
            raise RetrievalError(f"past query search failed: {e}") from e
        return [query for query, score in rows if score >= min_score]

    async def retrieve(self, text: str) -> RetrievalContext:
        start = time.monotonic()
        listings = await self.nearest_listings(text)
        # cached by the embedder from the lookup above
        vector = await self.embed_query(text)
        queries = await self.nearest_past_queries(vector)
        elapsed_ms = int((time.monotonic() - start) * 1000)
        _logger.debug("Retrieved %d listings, %d past queries in %dms", len(listings), len(queries), elapsed_ms)
        return RetrievalContext(
            listings=tuple(listings),
            similar_queries=tuple(queries),
            search_time_ms=elapsed_ms,
        )

    async def store_successful_query(self, text: str, result_count: int) -> str | None:
        if result_count <= 0 or not text.strip():
            return None
        vector = await self.embed_query(text)
        try:
            return await self.store.upsert_query(text, serialize_embedding(vector), result_count)
        except Exception as e:
            raise RetrievalError(f"storing query failed: {e}") from e
