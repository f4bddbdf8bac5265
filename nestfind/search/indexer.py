import asyncio
from dataclasses import asdict, dataclass, field
from enum import StrEnum

from nestfind.channel import Channel
from nestfind.constants import BATCH_TIMEOUT, INDEX_BATCH_DELAY, INDEX_BATCH_SIZE, SAMPLE_PAST_QUERIES
from nestfind.errors import RetrievalError
from nestfind.events import IndexingCompleted, IndexingStarted
from nestfind.logging import get_logger
from nestfind.models import Listing
from nestfind.search.retriever import SemanticRetriever
from nestfind.utils import ms_now, ms_since

_logger = get_logger(__name__)


class IndexStatus(StrEnum):
    PENDING = "pending"
    INDEXING = "indexing"
    DONE = "done"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass
class IndexProgress:
    total: int = 0
    done: int = 0
    failed: int = 0
    status: IndexStatus = IndexStatus.PENDING


@dataclass(frozen=True)
class IndexingResult:
    total: int
    indexed: int
    failed: int
    duration_ms: int
    errors: list[str] = field(default_factory=list)


class Indexer:
    """Embeds the catalog into the vector store in rate-limited batches."""

    def __init__(
        self,
        retriever: SemanticRetriever,
        channel: Channel | None = None,
        batch_size: int = INDEX_BATCH_SIZE,
        batch_delay: float = INDEX_BATCH_DELAY,
        batch_timeout: float = BATCH_TIMEOUT,
    ):
        self.retriever = retriever
        self.channel = channel
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.batch_timeout = batch_timeout
        self._progress = IndexProgress()
        self._error: str | None = None
        self._running = False
        self._task: asyncio.Task | None = None
        self.last_result: IndexingResult | None = None

    @property
    def progress(self) -> IndexProgress:
        return self._progress

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def running(self) -> bool:
        return self._running

    def start(self, listings: list[Listing]) -> None:
        if self._running:
            return
        if not listings:
            self._progress = IndexProgress(status=IndexStatus.SKIPPED)
            return
        self._running = True
        self._task = asyncio.create_task(self._run_background(listings))

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def wait(self) -> IndexingResult | None:
        if self._task:
            await self._task
        return self.last_result

    async def _run_background(self, listings: list[Listing]) -> None:
        try:
            await self.run(listings)
        except asyncio.CancelledError:
            self._progress.status = IndexStatus.ERROR
            raise
        except Exception as e:
            _logger.exception("Indexing failed")
            self._error = str(e)
            self._progress.status = IndexStatus.ERROR

    async def run(self, listings: list[Listing]) -> IndexingResult:
        self._running = True
        self._error = None
        self._progress = IndexProgress(total=len(listings), status=IndexStatus.INDEXING)
        start = ms_now()
        errors: list[str] = []

        if self.channel:
            self.channel.publish(IndexingStarted(total=len(listings)))

        try:
            batches = [listings[i : i + self.batch_size] for i in range(0, len(listings), self.batch_size)]
            for n, batch in enumerate(batches):
                if n > 0:
                    await asyncio.sleep(self.batch_delay)
                try:
                    await asyncio.wait_for(self.retriever.upsert_many(batch), timeout=self.batch_timeout)
                    self._progress.done += len(batch)
                except (RetrievalError, TimeoutError) as e:
                    self._progress.failed += len(batch)
                    reason = str(e) or "timed out"
                    errors.append(f"batch {n + 1}: {reason}")
                    _logger.warning("Batch %d/%d failed: %s", n + 1, len(batches), reason)
        finally:
            self._running = False

        result = IndexingResult(
            total=len(listings),
            indexed=self._progress.done,
            failed=self._progress.failed,
            duration_ms=ms_since(start),
            errors=errors,
        )
        self.last_result = result
        self._progress.status = IndexStatus.DONE if not result.failed else IndexStatus.ERROR
        if result.failed:
            self._error = f"{result.failed} of {result.total} listings failed to index"

        _logger.info(
            "Indexed %d/%d listings in %dms (%d failed)",
            result.indexed,
            result.total,
            result.duration_ms,
            result.failed,
        )
        if self.channel:
            self.channel.publish(
                IndexingCompleted(indexed=result.indexed, failed=result.failed, duration_ms=result.duration_ms)
            )
        return result

    async def seed_past_queries(self, queries: tuple[str, ...] = SAMPLE_PAST_QUERIES) -> int:
        stored = 0
        for query in queries:
            try:
                await self.retriever.store_successful_query(query, result_count=1)
                stored += 1
            except RetrievalError as e:
                _logger.warning("Failed to seed past query %r: %s", query, e)
        return stored

    def get_status(self) -> dict:
        return {
            "indexing": self._running,
            "progress": asdict(self._progress),
            "error": self._error,
            "last_result": asdict(self.last_result) if self.last_result else None,
        }
