import time
from collections import deque
from dataclasses import dataclass

from nestfind.constants import HIGH_RESULT_COUNT, RECENT_SEARCHES_SIZE
from nestfind.events import IndexingCompleted, SearchCompleted, StageFailed
from nestfind.logging import get_logger
from nestfind.models import SearchCriteria
from nestfind.utils import truncate

_logger = get_logger(__name__)


@dataclass
class SearchRecord:
    session_id: str
    query: str
    result_count: int
    search_time_ms: int
    confidence: float
    ts: float


def describe_criteria(criteria: SearchCriteria | None) -> str:
    if criteria is None or criteria.is_empty():
        return "any"
    parts = []
    if criteria.bedrooms is not None:
        parts.append(f"bedrooms={criteria.bedrooms}")
    if criteria.min_price is not None:
        parts.append(f"minPrice={criteria.min_price}")
    if criteria.max_price is not None:
        parts.append(f"maxPrice={criteria.max_price}")
    if criteria.location is not None:
        parts.append(f"location={criteria.location}")
    if criteria.pet_friendly is not None:
        parts.append(f"pets={criteria.pet_friendly}")
    if criteria.parking is not None:
        parts.append(f"parking={criteria.parking}")
    if criteria.amenities:
        parts.append(f"amenities={list(criteria.amenities)}")
    return " ".join(parts)


class SearchLogger:
    """Channel subscriber: logs each search and keeps running counters."""

    def __init__(self):
        self.started_at: float = time.time()
        self.total_searches: int = 0
        self.zero_result_searches: int = 0
        self.degraded_searches: int = 0
        self.total_search_ms: int = 0
        self.stage_failures: dict[str, int] = {}
        self.recent: deque[SearchRecord] = deque(maxlen=RECENT_SEARCHES_SIZE)
        self.last_indexing: dict | None = None

    async def on_search_completed(self, event: SearchCompleted) -> None:
        self.total_searches += 1
        self.total_search_ms += event.search_time_ms
        if event.degraded:
            self.degraded_searches += 1
        self.recent.append(
            SearchRecord(
                session_id=event.session_id,
                query=event.query,
                result_count=event.result_count,
                search_time_ms=event.search_time_ms,
                confidence=event.confidence,
                ts=time.time(),
            )
        )

        _logger.info(
            "Search %s: %d results in %dms (confidence %.2f) criteria: %s",
            event.session_id,
            event.result_count,
            event.search_time_ms,
            event.confidence,
            describe_criteria(event.criteria),
        )
        if event.result_count == 0:
            self.zero_result_searches += 1
            _logger.warning("Search %s returned no results for %r", event.session_id, truncate(event.query, 80))
        elif event.result_count > HIGH_RESULT_COUNT:
            _logger.info("Search %s matched broadly (%d results)", event.session_id, event.result_count)

    async def on_stage_failed(self, event: StageFailed) -> None:
        self.stage_failures[event.stage] = self.stage_failures.get(event.stage, 0) + 1

    async def on_indexing_completed(self, event: IndexingCompleted) -> None:
        self.last_indexing = {
            "indexed": event.indexed,
            "failed": event.failed,
            "duration_ms": event.duration_ms,
            "ts": time.time(),
        }

    def snapshot(self) -> dict:
        avg_ms = self.total_search_ms / self.total_searches if self.total_searches else 0.0
        return {
            "uptime_seconds": int(time.time() - self.started_at),
            "total_searches": self.total_searches,
            "zero_result_searches": self.zero_result_searches,
            "degraded_searches": self.degraded_searches,
            "avg_search_ms": round(avg_ms, 1),
            "stage_failures": dict(self.stage_failures),
            "recent": [
                {"query": r.query, "results": r.result_count, "confidence": r.confidence, "ts": r.ts}
                for r in self.recent
            ],
            "last_indexing": self.last_indexing,
        }
