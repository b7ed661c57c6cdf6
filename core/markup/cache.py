"""In-memory cache for values derived from markup templates."""

from __future__ import annotations

import threading
from collections.abc import Callable, Hashable
from typing import Generic, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class TemplateCache(Generic[K, V]):
    """Keep derived values keyed by template.

    Entries are pure functions of their key, so a racing computation may overwrite an
    entry with an equal value. Only the map update is serialized.
    """

    def __init__(self) -> None:
        self._entries: dict[K, V] = {}
        self._lock = threading.Lock()

    def get(self, key: K) -> V | None:
        return self._entries.get(key)

    def set(self, key: K, value: V) -> V:
        with self._lock:
            self._entries[key] = value
        return value

    def get_or_compute(self, key: K, factory: Callable[[K], V]) -> V:
        """Return the cached value for key, computing and storing it on first use."""

        try:
            return self._entries[key]
        except KeyError:
            pass
        return self.set(key, factory(key))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
