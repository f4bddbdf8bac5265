import asyncio

import aiosqlite
import numpy as np

import nestfind.database as database
from nestfind.cache import SharedCache
from nestfind.catalog import Catalog
from nestfind.channel import Channel
from nestfind.config import Config, get_config
from nestfind.constants import INTERPRETER_TEMPERATURE
from nestfind.embedder import Embedder
from nestfind.errors import RetrievalError
from nestfind.events import IndexingCompleted, SearchCompleted, StageFailed
from nestfind.llm import LanguageService
from nestfind.logging import get_logger
from nestfind.observability import SearchLogger
from nestfind.orchestrator import SessionOrchestrator, StageTimeouts
from nestfind.query import QueryInterpreter
from nestfind.search.indexer import Indexer
from nestfind.search.ranker import HybridRanker
from nestfind.search.retriever import SemanticRetriever
from nestfind.search.store import VectorStore

_logger = get_logger(__name__)

SHUTDOWN_DRAIN_TIMEOUT = 5.0


class Runtime:
    def __init__(self, config: Config | None = None, catalog: Catalog | None = None):
        self.config = config or get_config()
        self.channel = Channel()
        self.catalog = catalog or Catalog.load(self.config.catalog_path)

        self.embedding_cache: SharedCache[str, np.ndarray] = SharedCache()
        self.embedder = Embedder(self.config.embedding, cache=self.embedding_cache)

        service = None
        if self.config.language_configured:
            service = LanguageService(
                self.config.llm_model,
                api_key=self.config.api_key_for(self.config.llm_model),
                temperature=INTERPRETER_TEMPERATURE,
            )
        self.interpreter = QueryInterpreter(service)
        self.ranker = HybridRanker(self.catalog.listings, self.config.ranking)
        self.search_logger = SearchLogger()

        self.store: VectorStore | None = None
        self.retriever: SemanticRetriever | None = None
        self.indexer: Indexer | None = None
        self.orchestrator = self._build_orchestrator()

        self._conn: aiosqlite.Connection | None = None
        self._connected = False

    def _build_orchestrator(self) -> SessionOrchestrator:
        return SessionOrchestrator(
            ranker=self.ranker,
            interpreter=self.interpreter,
            retriever=self.retriever,
            channel=self.channel,
            timeouts=StageTimeouts(
                retrieval=self.config.retrieval_timeout,
                interpretation=self.config.interpretation_timeout,
                ranking=self.config.ranking_timeout,
            ),
        )

    async def connect(self) -> None:
        if self._connected:
            return

        self.config.data_dir.mkdir(parents=True, exist_ok=True)

        try:
            self._conn = await database.connect(self.config.search_db_path, vec=True)
            self.store = VectorStore(self._conn, self.config.embedding_dim)
            await self.store.init_schema()
        except Exception as e:
            _logger.warning("Vector store unavailable, semantic retrieval disabled: %s", e)
            if self._conn:
                await self._conn.close()
                self._conn = None
            self.store = None
        else:
            self.retriever = SemanticRetriever(self.store, self.embedder, self.catalog)
            self.indexer = Indexer(self.retriever, channel=self.channel, batch_timeout=self.config.batch_timeout)
            self.orchestrator = self._build_orchestrator()

        self.channel.subscribe(SearchCompleted, self.search_logger.on_search_completed)
        self.channel.subscribe(StageFailed, self.search_logger.on_stage_failed)
        self.channel.subscribe(IndexingCompleted, self.search_logger.on_indexing_completed)
        self.channel.subscribe(SearchCompleted, self._on_search_completed)

        self._connected = True

    def start_indexing(self) -> None:
        if self.indexer:
            self.indexer.start(list(self.catalog.listings))

    async def seed_past_queries(self) -> int:
        if not self.indexer:
            return 0
        return await self.indexer.seed_past_queries()

    async def get_index_status(self) -> dict:
        if not self.indexer:
            return {"indexing": False, "progress": None, "error": "vector store unavailable", "stats": {}}
        status = self.indexer.get_status()
        status["stats"] = await self.store.get_stats()
        return status

    async def _on_search_completed(self, event: SearchCompleted) -> None:
        if not self.retriever or event.result_count <= 0 or not event.query.strip():
            return
        try:
            await self.retriever.store_successful_query(event.query, event.result_count)
        except RetrievalError as e:
            _logger.warning("Failed to store successful query: %s", e)

    async def close(self) -> None:
        if self.indexer:
            await self.indexer.stop()
        await self.channel.drain(timeout=SHUTDOWN_DRAIN_TIMEOUT)
        if self._conn:
            await self._conn.close()
            self._conn = None
        self._connected = False


_runtime: Runtime | None = None
_runtime_lock = asyncio.Lock()


async def _warm_up(runtime: Runtime) -> None:
    await runtime.seed_past_queries()
    runtime.start_indexing()


async def get_runtime_async() -> Runtime:
    global _runtime
    async with _runtime_lock:
        if _runtime is None:
            _runtime = Runtime()
            await _runtime.connect()
            if _runtime.config.index_on_startup:
                await _warm_up(_runtime)
    return _runtime


def get_runtime() -> Runtime:
    global _runtime
    if _runtime is None:
        raise RuntimeError("Runtime not initialized. Call get_runtime_async() first.")
    if not _runtime._connected:
        raise RuntimeError("Runtime not connected. Call await runtime.connect() first.")
    return _runtime


async def reset_runtime() -> None:
    global _runtime
    if _runtime is not None:
        await _runtime.close()
        _runtime = None
