"""
SearchGuard - Rejects a lookup while an identical one is in flight.

Unlike request coalescing, a second caller is told "already in progress"
rather than sharing the first caller's result.
"""

from contextlib import contextmanager
from typing import Any, Iterator

from loguru import logger


class SearchGuard:
    """
    Set of in-flight (requester, query) keys.

    Usage:
        guard = SearchGuard()
        key = SearchGuard.make_key(user_id, plate)

        with guard.hold(key) as acquired:
            if not acquired:
                return "already searching"
            return await lookup(plate)
    """

    def __init__(self, debug: bool = False):
        self._in_flight: set[str] = set()
        self._debug = debug
        self._stats = GuardStats()

    @staticmethod
    def make_key(requester_id: str | int, query: str) -> str:
        return f"{requester_id}_{query}"

    def try_acquire(self, key: str) -> bool:
        """Mark `key` as held. False if it already was."""
        if key in self._in_flight:
            self._stats.rejected += 1
            self._log(f"BUSY: {key[:50]}")
            return False

        self._in_flight.add(key)
        self._stats.acquired += 1
        self._log(f"ACQUIRE: {key[:50]}")
        return True

    def release(self, key: str) -> None:
        """Clear the hold on `key`. Safe to call for a key that is not held."""
        self._in_flight.discard(key)
        self._log(f"RELEASE: {key[:50]}")

    @contextmanager
    def hold(self, key: str) -> Iterator[bool]:
        """Acquire for the duration of the block; release even if it raises."""
        acquired = self.try_acquire(key)
        try:
            yield acquired
        finally:
            if acquired:
                self.release(key)

    def is_held(self, key: str) -> bool:
        return key in self._in_flight

    def get_in_flight_count(self) -> int:
        return len(self._in_flight)

    def clear(self) -> None:
        self._in_flight.clear()

    def get_stats(self) -> "GuardStats":
        self._stats.in_flight = len(self._in_flight)
        return self._stats

    def _log(self, message: str) -> None:
        if self._debug:
            logger.debug(f"[SearchGuard] {message}")


class GuardStats:
    """Statistics for the search guard."""

    def __init__(self):
        self.acquired: int = 0
        self.rejected: int = 0
        self.in_flight: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "acquired": self.acquired,
            "rejected": self.rejected,
            "in_flight": self.in_flight,
        }
