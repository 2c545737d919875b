"""In-process call orchestration state.

Holds the sliding-window rate limiter for call initiation and runs the
periodic maintenance task that expires stale calls.
"""

import asyncio
import contextlib
import logging
from datetime import datetime, timezone

from homemates import config
from homemates.calls.tracking import expire_stale_calls
from homemates.db.database import async_session

logger = logging.getLogger("homemates-calls")


class CallStore:
    """Concurrency-safe rate-limit windows plus a background maintenance task.

    All window operations are protected by an asyncio.Lock.
    """

    def __init__(self):
        self._requests: dict[str, list[datetime]] = {}
        self._lock = asyncio.Lock()
        self._maintenance_task: asyncio.Task | None = None
        self._expired_count: int = 0  # Total calls expired, for testing

    async def check_rate_limit(
        self, key: str, window_seconds: int, max_requests: int
    ) -> bool:
        """Record a request for ``key``. Returns True if allowed, False if blocked."""
        async with self._lock:
            now = datetime.now(timezone.utc)
            cutoff = now.timestamp() - window_seconds

            requests = [r for r in self._requests.get(key, []) if r.timestamp() > cutoff]
            if len(requests) >= max_requests:
                self._requests[key] = requests
                return False

            requests.append(now)
            self._requests[key] = requests
            return True

    async def prune_windows(self, window_seconds: int) -> int:
        """Drop keys with no requests inside the window. Returns keys removed."""
        async with self._lock:
            cutoff = datetime.now(timezone.utc).timestamp() - window_seconds
            stale = [
                key
                for key, requests in self._requests.items()
                if not any(r.timestamp() > cutoff for r in requests)
            ]
            for key in stale:
                del self._requests[key]
            return len(stale)

    async def reset(self) -> None:
        async with self._lock:
            self._requests.clear()
            self._expired_count = 0

    async def run_maintenance(self) -> int:
        """Prune rate-limit windows and expire stale calls. Returns calls expired."""
        await self.prune_windows(config.RATE_LIMIT_WINDOW_SECONDS)

        async with async_session() as session:
            expired = await expire_stale_calls(session, config.CALL_STALE_MINUTES)
            await session.commit()

        self._expired_count += expired
        if expired > 0:
            logger.info(f"Marked {expired} stale call(s) as no_answer")
        return expired

    async def start_maintenance_task(self, interval_seconds: int = 60) -> None:
        """Start background maintenance task."""
        if self._maintenance_task is None:
            self._maintenance_task = asyncio.create_task(
                self._periodic_maintenance(interval_seconds)
            )

    async def stop_maintenance_task(self) -> None:
        """Stop background maintenance task."""
        if self._maintenance_task:
            self._maintenance_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._maintenance_task
            self._maintenance_task = None

    async def _periodic_maintenance(self, interval_seconds: int) -> None:
        while True:
            await asyncio.sleep(interval_seconds)
            try:
                await self.run_maintenance()
            except Exception:
                logger.exception("Call maintenance failed")

    @property
    def total_expired(self) -> int:
        """Number of calls expired since start (for testing)."""
        return self._expired_count


# Global store instance
store = CallStore()
