"""
HiWords Debouncer
Cancellable timer plus single-flight runner for coalescing bursts of events
"""

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class Debouncer:
    """
    Coalesce triggers into one run after a quiet period.

    A new trigger resets the pending timer. At most one run is in flight;
    a timer firing during a run schedules exactly one follow-up run.
    Must be triggered from inside a running event loop.
    """

    def __init__(self, delay: float, callback: Callable[[], Any], name: str = "debouncer"):
        self.delay = delay
        self.callback = callback
        self.name = name
        self._handle: Optional[asyncio.TimerHandle] = None
        self._running: Optional[asyncio.Task] = None
        self._rerun = False

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def running(self) -> bool:
        return self._running is not None and not self._running.done()

    def trigger(self):
        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self.delay, self._fire)

    def _fire(self):
        self._handle = None
        if self.running:
            self._rerun = True
            return
        self._running = asyncio.ensure_future(self._run())

    async def _run(self):
        while True:
            self._rerun = False
            try:
                result = self.callback()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"{self.name} run failed: {e}")
            if not self._rerun:
                break

    def cancel(self):
        """Drop the pending timer; an in-flight run is left to finish"""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._rerun = False

    async def flush(self):
        """Run now if a trigger is pending, and wait for any in-flight run"""
        had_pending = self._handle is not None
        if had_pending:
            self._handle.cancel()
            self._handle = None

        if self.running:
            await self._running
        if had_pending:
            self._running = asyncio.ensure_future(self._run())
            await self._running
