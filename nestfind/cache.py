import threading
from collections import OrderedDict
from collections.abc import Awaitable, Callable


class SharedCache[K, V]:
    """Insert-if-absent key-value store shared across sessions.

    Values must be deterministic for their key: concurrent misses both compute,
    the first insert wins and every caller gets that value back.
    """

    def __init__(self, max_size: int = 10_000):
        self.max_size = max_size
        self._data: OrderedDict[K, V] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: K) -> bool:
        return key in self._data

    def get(self, key: K) -> V | None:
        with self._lock:
            value = self._data.get(key)
            if value is None:
                self.misses += 1
            else:
                self.hits += 1
                self._data.move_to_end(key)
            return value

    def put_if_absent(self, key: K, value: V) -> V:
        with self._lock:
            existing = self._data.get(key)
            if existing is not None:
                return existing
            self._data[key] = value
            if len(self._data) > self.max_size:
                self._data.popitem(last=False)
            return value

    async def get_or_compute(self, key: K, compute: Callable[[], Awaitable[V]]) -> V:
        if (value := self.get(key)) is not None:
            return value
        return self.put_if_absent(key, await compute())

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
