import threading
from collections.abc import Hashable
from typing import Generic, TypeVar

from diffs.store.base import Store

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class MemoryStore(Generic[K, V], Store[K, V]):
    """Process-local key-value table backing `mem` databases."""

    def __init__(self) -> None:
        self._table: dict[K, V] = {}
        self._lock = threading.RLock()

    def get(self, key: K) -> V | None:
        with self._lock:
            return self._table.get(key)

    def put(self, key: K, value: V) -> None:
        with self._lock:
            self._table[key] = value

    def remove(self, key: K) -> None:
        with self._lock:
            self._table.pop(key, None)

    def keys(self) -> list[K]:
        with self._lock:
            return list(self._table)
