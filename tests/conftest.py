import hashlib
from collections.abc import AsyncGenerator
from dataclasses import replace
from pathlib import Path

import aiosqlite
import numpy as np
import pytest
import pytest_asyncio

import nestfind.database as database
from nestfind.catalog import Catalog
from nestfind.embedder import Embedder, EmbeddingConfig
from nestfind.models import Listing, Location
from nestfind.search.store import VectorStore

TEST_EMBEDDING_DIM = 768


def mock_embedding(text: str) -> np.ndarray:
    h = hashlib.md5(text.encode()).hexdigest()
    # MD5 is 32 chars, repeat to get TEST_EMBEDDING_DIM
    arr = np.array([int(c, 16) / 15.0 for c in h] * (TEST_EMBEDDING_DIM // 32))
    norm = np.linalg.norm(arr)
    return arr / norm if norm > 0 else arr


class MockEmbedder(Embedder):
    def __init__(self):
        super().__init__(EmbeddingConfig(model="test-embedding", dim=TEST_EMBEDDING_DIM))
        self.calls = 0

    async def embed(self, texts: list[str]) -> np.ndarray:
        self.calls += 1
        if not texts:
            return np.array([])
        return np.array([mock_embedding(t) for t in texts])


BASE_LISTING = Listing(
    id="apt-test",
    title="Test Apartment",
    price=1500,
    bedrooms=2,
    bathrooms=1,
    location=Location("1 Test St", 42.36, -71.06, "downtown"),
    pet_friendly=False,
    parking=False,
    amenities=(),
    square_feet=800,
    available="2024-01-01",
)


def make_listing(**overrides) -> Listing:
    location = overrides.pop("location", None)
    neighborhood = overrides.pop("neighborhood", None)
    address = overrides.pop("address", None)
    listing = replace(BASE_LISTING, **overrides)
    if location is None and (neighborhood is not None or address is not None):
        location = replace(
            listing.location,
            neighborhood=neighborhood if neighborhood is not None else listing.location.neighborhood,
            address=address if address is not None else listing.location.address,
        )
    if location is not None:
        listing = replace(listing, location=location)
    return listing


@pytest.fixture
def catalog() -> Catalog:
    return Catalog.load()


@pytest_asyncio.fixture
async def vec_conn(tmp_path: Path) -> AsyncGenerator[aiosqlite.Connection]:
    conn = await database.connect(tmp_path / "search.db", vec=True)
    yield conn
    await conn.close()


@pytest_asyncio.fixture
async def store(vec_conn: aiosqlite.Connection) -> VectorStore:
    store = VectorStore(vec_conn, TEST_EMBEDDING_DIM)
    await store.init_schema()
    return store
