"""
RateLimiter - Per-identity sliding-window admission control.

At most `max_requests` checks are admitted for one identity inside any
trailing `window`. Rejected checks are not recorded.
"""

import math
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable

from loguru import logger

from platebot.services.sweeper import PeriodicSweep


@dataclass
class RateWindow:
    """Admitted request instants for one identity, oldest first."""

    timestamps: deque[datetime] = field(default_factory=deque)
    last_seen: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class RateLimitResult:
    """Decision for a single admission check."""

    allowed: bool
    limit: int
    remaining: int
    reset_at: datetime | None = None
    retry_after: int = 0


class RateLimiter:
    """
    Sliding-window rate limiter keyed by identity (user id).

    Usage:
        limiter = RateLimiter(window=timedelta(minutes=1), max_requests=10)

        decision = limiter.check(user_id)
        if not decision.allowed:
            reply(f"retry in {decision.retry_after}s")
    """

    def __init__(
        self,
        window: timedelta = timedelta(minutes=1),
        max_requests: int = 10,
        clock: Callable[[], datetime] = datetime.now,
        autostart: bool = True,
        debug: bool = False,
    ):
        self.window = window
        self.max_requests = max_requests
        self._clock = clock
        self._debug = debug
        self._windows: dict[str, RateWindow] = {}
        self._sweep = PeriodicSweep("rate_limiter", window, self.cleanup)
        if autostart:
            self._sweep.start()

    def check(self, identity: str | int) -> RateLimitResult:
        """Admit or reject one request for `identity`. Never raises."""
        now = self._clock()
        key = str(identity)

        record = self._windows.get(key)
        if record is None:
            record = RateWindow(last_seen=now)
            self._windows[key] = record

        record.last_seen = now
        self._purge(record, now)

        if len(record.timestamps) >= self.max_requests:
            reset_at = record.timestamps[0] + self.window
            retry_after = math.ceil((reset_at - now).total_seconds())
            self._log(f"REJECT: {key} (retry after {retry_after}s)")
            return RateLimitResult(
                allowed=False,
                limit=self.max_requests,
                remaining=0,
                reset_at=reset_at,
                retry_after=retry_after,
            )

        record.timestamps.append(now)
        return RateLimitResult(
            allowed=True,
            limit=self.max_requests,
            remaining=self.max_requests - len(record.timestamps),
            reset_at=record.timestamps[0] + self.window,
            retry_after=0,
        )

    def reset_identity(self, identity: str | int) -> None:
        """Forget all recorded requests for an identity."""
        self._windows.pop(str(identity), None)

    def cleanup(self) -> int:
        """
        Purge old timestamps and drop identities that have been empty and
        idle for at least twice the window. Returns identities removed.
        """
        now = self._clock()
        idle_cutoff = self.window * 2
        to_delete = []

        for key, record in self._windows.items():
            self._purge(record, now)
            if not record.timestamps and now - record.last_seen >= idle_cutoff:
                to_delete.append(key)

        for key in to_delete:
            del self._windows[key]

        if to_delete:
            logger.debug(f"Rate limiter cleanup: removed {len(to_delete)} idle identities")

        return len(to_delete)

    def start(self) -> bool:
        """Start the periodic cleanup (needs a running event loop)."""
        return self._sweep.start()

    def destroy(self) -> None:
        """Stop the sweep and drop all state."""
        self._sweep.stop()
        self._windows.clear()

    def __len__(self) -> int:
        return len(self._windows)

    def get_stats(self) -> dict[str, Any]:
        now = self._clock()
        active_users = 0
        active_requests = 0
        for record in self._windows.values():
            count = sum(1 for t in record.timestamps if now - t < self.window)
            if count:
                active_users += 1
                active_requests += count

        return {
            "window_seconds": self.window.total_seconds(),
            "max_requests": self.max_requests,
            "total_users": len(self._windows),
            "active_users": active_users,
            "total_active_requests": active_requests,
            "average_requests_per_user": (
                round(active_requests / active_users, 2) if active_users else 0
            ),
        }

    def _purge(self, record: RateWindow, now: datetime) -> None:
        while record.timestamps and now - record.timestamps[0] >= self.window:
            record.timestamps.popleft()

    def _log(self, message: str) -> None:
        if self._debug:
            logger.debug(f"[RateLimiter] {message}")
