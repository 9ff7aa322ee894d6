from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL_SECONDS = 60.0


class RefreshScheduler:
    """Runs ``action`` every ``interval_seconds`` with at most one active loop.

    Ticks never overlap: the next interval starts only after the previous
    action returns. ``stop()`` is cooperative, so an action already running is
    allowed to finish; ``aclose()`` additionally abandons it, including any
    loop replaced by a later ``start()`` that has not exited yet.
    """

    def __init__(
        self,
        action: Callable[[], Awaitable[None]],
        interval_seconds: float = DEFAULT_REFRESH_INTERVAL_SECONDS,
    ) -> None:
        self._action = action
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self._stop_event: asyncio.Event | None = None
        self._retired: set[asyncio.Task[None]] = set()

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        self.stop()
        previous = self._task
        if previous is not None and not previous.done():
            self._retired.add(previous)
            previous.add_done_callback(self._retired.discard)
        stop_event = asyncio.Event()
        self._stop_event = stop_event
        self._task = asyncio.create_task(self._run(stop_event))
        logger.info("Background refresh started interval=%ss", self._interval)

    def stop(self) -> None:
        if self._stop_event is None or self._stop_event.is_set():
            return
        self._stop_event.set()
        logger.info("Background refresh stopped")

    async def aclose(self) -> None:
        self.stop()
        tasks = [task for task in (*self._retired, self._task) if task is not None and not task.done()]
        self._task = None
        self._retired.clear()
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
            if stop_event.is_set():
                break
            try:
                await self._action()
            except Exception:
                logger.exception("Background refresh failed")
