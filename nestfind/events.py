from dataclasses import dataclass

from nestfind.models import SearchCriteria

# --- Search lifecycle ---


@dataclass(frozen=True)
class SearchCompleted:
    session_id: str
    query: str
    result_count: int
    search_time_ms: int
    confidence: float
    criteria: SearchCriteria | None = None
    degraded: bool = False


@dataclass(frozen=True)
class StageFailed:
    session_id: str
    stage: str
    reason: str


# --- Indexing ---


@dataclass(frozen=True)
class IndexingStarted:
    total: int


@dataclass(frozen=True)
class IndexingCompleted:
    indexed: int
    failed: int
    duration_ms: int
