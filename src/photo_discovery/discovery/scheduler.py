"""Debouncing of bursts of search requests."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """Flag shared between a pending call and the scheduler that may supersede it."""

    def __init__(self):
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class CoalescingScheduler:
    """Run only the last of a burst of calls.

    Each ``submit`` waits ``delay`` seconds before running its factory. A newer
    submission cancels the pending one, whose ``submit`` then resolves to None
    and never surfaces a result, even if its factory had already started.

    Args:
        delay: Quiet period in seconds
        sleep: Awaitable sleep used for the quiet period; injectable for tests
    """

    def __init__(self, delay: float, sleep: Optional[Callable[[float], Awaitable[None]]] = None):
        self.delay = delay
        self._sleep = sleep or asyncio.sleep
        self._pending: Optional[CancellationToken] = None

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    async def submit(self, factory: Callable[[], Awaitable[T]]) -> Optional[T]:
        if self._pending is not None:
            self._pending.cancel()
        token = CancellationToken()
        self._pending = token

        await self._sleep(self.delay)
        if token.cancelled:
            logger.debug("Debounced call superseded before running")
            return None

        try:
            result = await factory()
        finally:
            if self._pending is token:
                self._pending = None
        if token.cancelled:
            logger.debug("Debounced call superseded while running; result discarded")
            return None
        return result

    def cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
