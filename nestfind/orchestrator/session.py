from dataclasses import dataclass
from enum import StrEnum

from nestfind.errors import SessionConflictError
from nestfind.models import RetrievalContext, SearchCriteria
from nestfind.utils import ms_now, ms_since


class Stage(StrEnum):
    RECEIVED = "received"
    RETRIEVAL_PENDING = "retrieval_pending"
    INTERPRETATION_PENDING = "interpretation_pending"
    RANKING_PENDING = "ranking_pending"
    COMPLETED = "completed"


@dataclass
class SessionState:
    session_id: str
    query: str
    stage: Stage = Stage.RECEIVED
    context: RetrievalContext | None = None
    criteria: SearchCriteria | None = None
    started_ms: int = 0

    def elapsed_ms(self) -> int:
        return ms_since(self.started_ms)


class SessionRegistry:
    """Live sessions keyed by id. At most one state per id at a time."""

    def __init__(self):
        self._sessions: dict[str, SessionState] = {}
        self.correlation_misses = 0

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def open(self, session_id: str, query: str) -> SessionState:
        if session_id in self._sessions:
            raise SessionConflictError(session_id)
        state = SessionState(session_id=session_id, query=query, started_ms=ms_now())
        self._sessions[session_id] = state
        return state

    def get(self, session_id: str) -> SessionState | None:
        return self._sessions.get(session_id)

    def close(self, session_id: str) -> SessionState | None:
        state = self._sessions.pop(session_id, None)
        if state is not None:
            state.stage = Stage.COMPLETED
        return state

    def active(self) -> list[str]:
        return list(self._sessions)
