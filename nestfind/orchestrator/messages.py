from dataclasses import dataclass

from nestfind.orchestrator.session import Stage


@dataclass(frozen=True)
class SearchRequest:
    query: str
    session_id: str | None = None


@dataclass(frozen=True)
class CatalogRequest:
    """Enumerate the catalog: the empty-query path under its own name."""

    session_id: str | None = None


@dataclass(frozen=True)
class StageReply:
    """A collaborator result delivered outside the session task that awaited it."""

    session_id: str
    stage: Stage
    payload: object = None
    error: BaseException | None = None


type Request = SearchRequest | CatalogRequest | StageReply
