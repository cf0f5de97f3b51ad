from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

from app.core.config import NOTIFY_BACKOFF_SECONDS, NOTIFY_MAX_ATTEMPTS

logger = logging.getLogger(__name__)


class SideEffectRunner:
    """Fire-and-forget execution of post-booking side effects.

    Every effect runs as its own task with exponential backoff between
    attempts. A failure after the last attempt is logged (and handed to
    ``on_give_up``) but never propagates back to the booking that triggered
    it. Task references are kept so they are not garbage collected mid-flight
    and so tests and shutdown can ``drain()`` them.
    """

    def __init__(
        self,
        max_attempts: int = NOTIFY_MAX_ATTEMPTS,
        backoff_seconds: float = NOTIFY_BACKOFF_SECONDS,
    ):
        self.max_attempts = max(1, max_attempts)
        self.backoff_seconds = backoff_seconds
        self._tasks: Set[asyncio.Task] = set()

    def fire(
        self,
        name: str,
        effect: Callable[[], Awaitable[object]],
        on_give_up: Optional[Callable[[BaseException], None]] = None,
    ) -> asyncio.Task:
        task = asyncio.create_task(self._run(name, effect, on_give_up), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, name, effect, on_give_up) -> None:
        for attempt in range(1, self.max_attempts + 1):
            try:
                await effect()
                return
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                if attempt >= self.max_attempts:
                    logger.exception(f"Side effect '{name}' failed after {attempt} attempts")
                    if on_give_up is not None:
                        on_give_up(exc)
                    return
                delay = self.backoff_seconds * (2 ** (attempt - 1))
                logger.warning(f"Side effect '{name}' failed (attempt {attempt}): {exc}; retrying in {delay:.1f}s")
                await asyncio.sleep(delay)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for every in-flight side effect to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
