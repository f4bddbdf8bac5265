import asyncio
from collections import defaultdict
from collections.abc import Callable, Coroutine
from typing import Any

from nestfind.logging import get_logger

type Handler[T] = Callable[[T], Coroutine[Any, Any, None]]

_logger = get_logger(__name__)


class Channel:
    """Fire-and-forget bus for search and indexing events.

    Publishers (orchestrator, indexer) never wait on subscribers. Each handler runs
    as its own task and its failures are logged here. drain() lets shutdown and
    tests wait for the tasks still in flight.
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = defaultdict(list)
        self._pending: set[asyncio.Task] = set()

    def subscribe[T](self, event_type: type[T], handler: Handler[T]) -> None:
        if handler not in self._handlers[event_type]:
            self._handlers[event_type].append(handler)

    def unsubscribe[T](self, event_type: type[T], handler: Handler[T]) -> None:
        handlers = self._handlers.get(event_type)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def publish[T](self, event: T) -> int:
        handlers = self._handlers.get(type(event), [])
        for handler in handlers:
            task = asyncio.create_task(self._run(handler, event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        return len(handlers)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self, timeout: float | None = None) -> bool:
        """Wait for in-flight handlers. False if some were still running at the timeout."""
        if not self._pending:
            return True
        _, still_running = await asyncio.wait(set(self._pending), timeout=timeout)
        if still_running:
            _logger.warning("%d event handlers still running after %.1fs", len(still_running), timeout)
        return not still_running

    async def _run[T](self, handler: Handler[T], event: T) -> None:
        try:
            await handler(event)
        except Exception:
            _logger.exception(
                "Event handler %s failed for %s",
                handler.__qualname__,
                type(event).__name__,
            )
