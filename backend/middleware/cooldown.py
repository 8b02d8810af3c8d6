"""
Delay-based throttling for the search endpoint.

Requests from the same caller closer together than the cooldown are
delayed until the cooldown has passed; nothing is rejected.

Usage:
    search_cooldown = Cooldown(delay_ms=500)

    @app.get("/api/search", dependencies=[Depends(search_cooldown)])
    async def search(q: str = ""): ...
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict

from fastapi import Request

logger = logging.getLogger(__name__)

MAX_TRACKED_CALLERS = 10_000


def _caller_key(request: Request) -> str:
    """Identify the caller: user id header, else client IP."""
    user_id = request.headers.get("x-user-id")
    if user_id:
        return f"user:{user_id}"
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    if request.client:
        return f"ip:{request.client.host}"
    return "unknown"


class Cooldown:
    """FastAPI dependency enforcing a minimum spacing between calls per caller."""

    def __init__(
        self,
        delay_ms: int,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.delay = max(delay_ms, 0) / 1000.0
        self._clock = clock
        self._sleep = sleep
        self._next_slot: Dict[str, float] = {}

    def reserve(self, key: str) -> float:
        """Claim the caller's next slot and return how long to wait for it."""
        now = self._clock()
        if len(self._next_slot) > MAX_TRACKED_CALLERS:
            self._next_slot = {k: v for k, v in self._next_slot.items() if v > now}

        slot = max(now, self._next_slot.get(key, now))
        self._next_slot[key] = slot + self.delay
        return slot - now

    async def __call__(self, request: Request) -> None:
        if self.delay <= 0:
            return
        wait = self.reserve(_caller_key(request))
        if wait > 0:
            logger.debug(f"Throttling {request.url.path} for {wait:.3f}s")
            await self._sleep(wait)
