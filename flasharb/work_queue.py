# flasharb/work_queue.py
"""
Rate-limited pair check queue
Checks run one at a time with a minimum spacing between starts
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Iterable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PairCheckQueue:
    """
    Serialises per-pair checks against the RPC provider.
    A pass requested while another is still draining is dropped;
    the next block picks those pairs up again.
    """

    def __init__(self, check_delay: float = 0.2):
        self.check_delay = check_delay
        self.is_processing = False
        self._last_check = float("-inf")

    async def process(
        self,
        items: Iterable[T],
        handler: Callable[[T], Awaitable[None]],
    ) -> bool:
        """
        Run `handler` for each item in order.
        Returns False when refused because a pass is already running.
        """
        if self.is_processing:
            logger.debug("Pair check pass still running, dropping request")
            return False

        self.is_processing = True
        try:
            for item in list(items):
                elapsed = time.monotonic() - self._last_check
                if elapsed < self.check_delay:
                    await asyncio.sleep(self.check_delay - elapsed)

                self._last_check = time.monotonic()

                try:
                    await handler(item)
                except Exception as e:
                    logger.error(f"Error processing queue item {item}: {e}")
        finally:
            self.is_processing = False

        return True
