import uuid
from datetime import datetime

import aiosqlite

from nestfind.logging import get_logger
from nestfind.utils import normalize_query

_logger = get_logger(__name__)

LISTING_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_DNS, "listings.nestfind")
QUERY_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_DNS, "queries.nestfind")


def listing_store_id(listing_id: str) -> str:
    """Deterministic store id: the same external id always maps to the same uuid."""
    return str(uuid.uuid5(LISTING_NAMESPACE, listing_id))


def query_store_id(query: str) -> str:
    return str(uuid.uuid5(QUERY_NAMESPACE, normalize_query(query)))


def _similarity(distance: float) -> float:
    # cosine distance lies in [0, 2]
    return max(0.0, min(1.0, 1.0 - distance))


class VectorStore:
    """Two vec0 collections: embedded listings and successful past queries."""

    def __init__(self, conn: aiosqlite.Connection, embedding_dim: int):
        self.conn = conn
        self.embedding_dim = embedding_dim

    async def init_schema(self) -> None:
        await self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS listings (
                id INTEGER PRIMARY KEY,
                store_id TEXT NOT NULL UNIQUE,
                listing_id TEXT NOT NULL,
                content TEXT NOT NULL,
                indexed_at TEXT
            );

            CREATE TABLE IF NOT EXISTS past_queries (
                id INTEGER PRIMARY KEY,
                store_id TEXT NOT NULL UNIQUE,
                query TEXT NOT NULL,
                result_count INTEGER NOT NULL DEFAULT 0,
                created_at TEXT,
                last_used_at TEXT
            );
        """)
        await self.conn.execute(f"""
            CREATE VIRTUAL TABLE IF NOT EXISTS listings_vec USING vec0(
                row_id INTEGER PRIMARY KEY,
                embedding float[{self.embedding_dim}] distance_metric=cosine
            );
        """)
        await self.conn.execute(f"""
            CREATE VIRTUAL TABLE IF NOT EXISTS past_queries_vec USING vec0(
                row_id INTEGER PRIMARY KEY,
                embedding float[{self.embedding_dim}] distance_metric=cosine
            );
        """)
        await self.conn.commit()

    async def upsert_listing(self, listing_id: str, content: str, embedding: bytes) -> str:
        store_id = listing_store_id(listing_id)
        now = datetime.now().isoformat()

        existing = await self.conn.execute_fetchall(
            "SELECT id FROM listings WHERE store_id = ?",
            (store_id,),
        )
        if existing:
            row_id = existing[0]["id"]
            await self.conn.execute(
                "UPDATE listings SET content = ?, indexed_at = ? WHERE id = ?",
                (content, now, row_id),
            )
        else:
            cursor = await self.conn.execute(
                "INSERT INTO listings (store_id, listing_id, content, indexed_at) VALUES (?, ?, ?, ?)",
                (store_id, listing_id, content, now),
            )
            row_id = cursor.lastrowid

        await self.conn.execute("DELETE FROM listings_vec WHERE row_id = ?", (row_id,))
        await self.conn.execute(
            "INSERT INTO listings_vec(row_id, embedding) VALUES (?, ?)",
            (row_id, embedding),
        )
        await self.conn.commit()
        return store_id

    async def upsert_query(self, query: str, embedding: bytes, result_count: int) -> str:
        store_id = query_store_id(query)
        now = datetime.now().isoformat()

        existing = await self.conn.execute_fetchall(
            "SELECT id FROM past_queries WHERE store_id = ?",
            (store_id,),
        )
        if existing:
            await self.conn.execute(
                "UPDATE past_queries SET result_count = ?, last_used_at = ? WHERE id = ?",
                (result_count, now, existing[0]["id"]),
            )
            await self.conn.commit()
            return store_id

        cursor = await self.conn.execute(
            """
            INSERT INTO past_queries (store_id, query, result_count, created_at, last_used_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (store_id, query, result_count, now, now),
        )
        row_id = cursor.lastrowid
        await self.conn.execute(
            "INSERT INTO past_queries_vec(row_id, embedding) VALUES (?, ?)",
            (row_id, embedding),
        )
        await self.conn.commit()
        return store_id

    async def search_listings(self, query_embedding: bytes, limit: int) -> list[tuple[str, float]]:
        rows = await self.conn.execute_fetchall(
            """
            SELECT l.listing_id, v.distance
            FROM listings_vec v
            JOIN listings l ON l.id = v.row_id
            WHERE v.embedding MATCH ? AND k = ?
            ORDER BY v.distance
            """,
            (query_embedding, limit),
        )
        return [(row["listing_id"], _similarity(row["distance"])) for row in rows]

    async def search_queries(self, query_embedding: bytes, limit: int) -> list[tuple[str, float]]:
        rows = await self.conn.execute_fetchall(
            """
            SELECT q.query, v.distance
            FROM past_queries_vec v
            JOIN past_queries q ON q.id = v.row_id
            WHERE v.embedding MATCH ? AND k = ?
            ORDER BY v.distance
            """,
            (query_embedding, limit),
        )
        return [(row["query"], _similarity(row["distance"])) for row in rows]

    async def get_stats(self) -> dict[str, int]:
        listings = await self.conn.execute_fetchall("SELECT COUNT(*) AS cnt FROM listings")
        queries = await self.conn.execute_fetchall("SELECT COUNT(*) AS cnt FROM past_queries")
        return {"listings": listings[0]["cnt"], "past_queries": queries[0]["cnt"]}

    async def clear(self) -> None:
        for table in ("listings_vec", "listings", "past_queries_vec", "past_queries"):
            await self.conn.execute(f"DELETE FROM {table}")
        await self.conn.commit()
        _logger.info("Cleared vector store")
