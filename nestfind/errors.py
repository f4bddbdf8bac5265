class NestfindError(Exception):
    """Base class for pipeline errors."""


class RetrievalError(NestfindError):
    """Vector store or embedder unreachable, or returned garbage."""


class LanguageServiceError(NestfindError):
    """The language service call failed (transport, quota, empty reply)."""


class InterpretationError(NestfindError):
    """Service reply could not be turned into search criteria."""


class RankingError(NestfindError):
    """Unexpected failure while filtering or scoring listings."""


class SessionConflictError(NestfindError):
    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} is already in flight")
        self.session_id = session_id
