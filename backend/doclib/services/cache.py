"""In-memory result cache for list reads."""

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

Clock = Callable[[], float]


def now_ms() -> float:
    """Wall-clock time in epoch milliseconds."""
    return time.time() * 1000


@dataclass
class CacheEntry:
    """Snapshot of one resource list."""

    data: list[Any] | None = None
    timestamp: float | None = None


class CacheManager:
    """
    Time-bounded cache keyed by resource name ("subjects", "documents").

    Entries are replaced wholesale by ``set`` and reset by ``clear``. Staleness
    is checked lazily in ``is_valid``; nothing is evicted in the background.
    """

    def __init__(
        self,
        keys: tuple[str, ...],
        *,
        duration_ms: int,
        enabled: bool = True,
        clock: Clock = now_ms,
    ):
        self.duration_ms = duration_ms
        self.enabled = enabled
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {key: CacheEntry() for key in keys}

    def is_valid(self, key: str) -> bool:
        if not self.enabled:
            return False

        entry = self._entries.get(key)
        if entry is None or entry.data is None or entry.timestamp is None:
            return False

        age = self._clock() - entry.timestamp
        return age < self.duration_ms

    def get(self, key: str) -> list[Any] | None:
        entry = self._entries.get(key)
        return entry.data if entry is not None else None

    def set(self, key: str, data: list[Any]) -> None:
        self._entries[key] = CacheEntry(data=list(data), timestamp=self._clock())

    def clear(self, key: str | None = None) -> None:
        """Reset one entry, or every entry when no key is given."""
        if key is not None:
            self._entries[key] = CacheEntry()
            return
        for name in self._entries:
            self._entries[name] = CacheEntry()
