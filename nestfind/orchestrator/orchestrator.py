import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from functools import partial
from typing import Protocol
from uuid import uuid4

from nestfind import constants
from nestfind.channel import Channel
from nestfind.errors import RankingError, RetrievalError
from nestfind.events import SearchCompleted, StageFailed
from nestfind.logging import get_logger
from nestfind.models import (
    Interpretation,
    Listing,
    RankedResult,
    RetrievalContext,
    ScoredListing,
    SearchCriteria,
    SearchMetadata,
)
from nestfind.orchestrator.messages import CatalogRequest, Request, SearchRequest, StageReply
from nestfind.orchestrator.session import SessionRegistry, SessionState, Stage
from nestfind.query.interpreter import QueryInterpreter
from nestfind.search.ranker import HybridRanker

_logger = get_logger(__name__)


class Retriever(Protocol):
    async def retrieve(self, text: str) -> RetrievalContext: ...


@dataclass(frozen=True)
class StageTimeouts:
    retrieval: float = constants.RETRIEVAL_TIMEOUT
    interpretation: float = constants.INTERPRETATION_TIMEOUT
    ranking: float = constants.RANKING_TIMEOUT


class SessionOrchestrator:
    """Drives one request through retrieval, interpretation and ranking.

    Each session runs as a single task. Stages are awaited in order, each under its
    own timeout; a timeout is handled exactly like a failure from the collaborator.
    Timed-out calls keep running and their late result comes back through
    handle() as a StageReply, where it is logged and dropped.
    """

    def __init__(
        self,
        ranker: HybridRanker,
        interpreter: QueryInterpreter,
        retriever: Retriever | None = None,
        channel: Channel | None = None,
        timeouts: StageTimeouts | None = None,
        registry: SessionRegistry | None = None,
    ):
        self.ranker = ranker
        self.interpreter = interpreter
        self.retriever = retriever
        self.channel = channel
        self.timeouts = timeouts or StageTimeouts()
        self.registry = registry or SessionRegistry()

    async def handle(self, request: Request) -> RankedResult | None:
        match request:
            case SearchRequest(query=query, session_id=session_id):
                return await self._run(query, session_id)
            case CatalogRequest(session_id=session_id):
                return await self._run("", session_id)
            case StageReply():
                self._on_stray_reply(request)
                return None
            case _:
                raise TypeError(f"Unknown request: {type(request).__name__}")

    async def search(self, query: str, session_id: str | None = None) -> RankedResult:
        return await self.handle(SearchRequest(query=query, session_id=session_id))

    async def _run(self, query: str, session_id: str | None) -> RankedResult:
        state = self.registry.open(session_id or str(uuid4()), query)
        try:
            result = await self._drive(state)
        finally:
            self.registry.close(state.session_id)

        if self.channel:
            self.channel.publish(
                SearchCompleted(
                    session_id=result.session_id,
                    query=query,
                    criteria=state.criteria,
                    result_count=result.total_results,
                    search_time_ms=result.metadata.search_time_ms,
                    confidence=result.metadata.confidence,
                    degraded=result.metadata.confidence == constants.RANKING_FAILURE_CONFIDENCE,
                )
            )
        return result

    async def _drive(self, state: SessionState) -> RankedResult:
        if not state.query.strip():
            criteria = SearchCriteria()
            state.criteria = criteria
            confidence = constants.EMPTY_QUERY_CONFIDENCE
            candidates: Sequence[ScoredListing] = ()
        else:
            state.stage = Stage.RETRIEVAL_PENDING
            state.context = await self._retrieve(state)

            state.stage = Stage.INTERPRETATION_PENDING
            interpretation = await self._interpret(state, state.context)
            criteria, confidence = interpretation.criteria, interpretation.confidence
            state.criteria = criteria

            candidates = state.context.listings
            state.context = None

        state.stage = Stage.RANKING_PENDING
        listings = await self._rank(state, criteria, candidates)
        if listings is None:
            return self._result(state, [], constants.RANKING_FAILURE_CONFIDENCE, elapsed_ms=0)

        return self._result(state, listings, confidence, elapsed_ms=state.elapsed_ms())

    def _result(
        self, state: SessionState, listings: list[Listing], confidence: float, elapsed_ms: int
    ) -> RankedResult:
        return RankedResult(
            session_id=state.session_id,
            listings=tuple(listings),
            metadata=SearchMetadata(
                total_results=len(listings),
                search_time_ms=elapsed_ms,
                confidence=confidence,
            ),
        )

    # --- Stages ---

    async def _retrieve(self, state: SessionState) -> RetrievalContext:
        if self.retriever is None:
            return RetrievalContext()
        try:
            return await self._await_stage(
                state,
                partial(self.retriever.retrieve, state.query),
                self.timeouts.retrieval,
            )
        except TimeoutError:
            self._stage_failed(state, "timed out")
        except RetrievalError as e:
            self._stage_failed(state, str(e))
        except Exception as e:
            _logger.exception("Unexpected retrieval failure for session %s", state.session_id)
            self._stage_failed(state, repr(e))
        return RetrievalContext()

    async def _interpret(self, state: SessionState, context: RetrievalContext) -> Interpretation:
        try:
            return await self._await_stage(
                state,
                partial(self.interpreter.interpret, state.query, context),
                self.timeouts.interpretation,
            )
        except TimeoutError:
            self._stage_failed(state, "timed out")
        except Exception as e:
            _logger.exception("Unexpected interpretation failure for session %s", state.session_id)
            self._stage_failed(state, repr(e))
        return self.interpreter.fallback(state.query, constants.UNEXPECTED_FAILURE_CONFIDENCE)

    async def _rank(
        self, state: SessionState, criteria: SearchCriteria, candidates: Sequence[ScoredListing]
    ) -> list[Listing] | None:
        if candidates:
            call = partial(asyncio.to_thread, self.ranker.rank, criteria, candidates)
        else:
            call = partial(asyncio.to_thread, self.ranker.search, criteria)

        try:
            return await self._await_stage(state, call, self.timeouts.ranking)
        except TimeoutError:
            self._stage_failed(state, "timed out")
        except RankingError as e:
            self._stage_failed(state, str(e))
        except Exception as e:
            _logger.exception("Unexpected ranking failure for session %s", state.session_id)
            self._stage_failed(state, repr(e))
        return None

    async def _await_stage[T](
        self, state: SessionState, call: Callable[[], Awaitable[T]], timeout: float
    ) -> T:
        stage = state.stage
        task = asyncio.ensure_future(call())
        done, _ = await asyncio.wait({task}, timeout=timeout)
        if task in done:
            return task.result()

        # Not cancelled: route the eventual outcome back as a stray reply.
        task.add_done_callback(lambda t: self._deliver_late(state.session_id, stage, t))
        raise TimeoutError(f"{stage} exceeded {timeout}s")

    def _deliver_late(self, session_id: str, stage: Stage, task: asyncio.Future) -> None:
        if task.cancelled():
            return
        error = task.exception()
        reply = StageReply(
            session_id=session_id,
            stage=stage,
            payload=None if error else task.result(),
            error=error,
        )
        self._on_stray_reply(reply)

    def _on_stray_reply(self, reply: StageReply) -> None:
        state = self.registry.get(reply.session_id)
        if state is None:
            self.registry.correlation_misses += 1
            _logger.warning(
                "Correlation miss: dropping %s reply for unknown session %s",
                reply.stage,
                reply.session_id,
            )
            return
        _logger.warning(
            "Dropping stale %s reply for session %s (now %s)",
            reply.stage,
            reply.session_id,
            state.stage,
        )

    def _stage_failed(self, state: SessionState, reason: str) -> None:
        _logger.warning("Session %s: %s failed, degrading (%s)", state.session_id, state.stage, reason)
        if self.channel:
            self.channel.publish(StageFailed(session_id=state.session_id, stage=state.stage, reason=reason))
