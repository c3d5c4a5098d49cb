"""Cancellable one-shot timers on the running event loop."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Optional


@dataclass(eq=False)
class TimerHandle:
    """Result of ``Timers.schedule``; ``cancel`` on it is always safe."""

    delay: float
    callback: Callable[[], None]
    fired: bool = False
    cancelled: bool = False
    _loop_handle: Optional[asyncio.TimerHandle] = field(default=None, repr=False)

    @property
    def pending(self) -> bool:
        return not (self.fired or self.cancelled)

    def cancel(self) -> None:
        if not self.pending:
            return
        self.cancelled = True
        if self._loop_handle is not None:
            self._loop_handle.cancel()
            self._loop_handle = None


class Timers:
    """Schedules callbacks with ``loop.call_later``.

    Must be used from inside a running loop.
    """

    def schedule(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(delay=max(0.0, delay), callback=callback)
        loop = asyncio.get_running_loop()
        handle._loop_handle = loop.call_later(handle.delay, self._fire, handle)
        return handle

    def cancel(self, handle: Optional[TimerHandle]) -> None:
        if handle is not None:
            handle.cancel()

    def fire_now(self, handle: Optional[TimerHandle]) -> bool:
        """Run a pending timer immediately. Returns False if it already ran or was cancelled."""
        if handle is None or not handle.pending:
            return False
        if handle._loop_handle is not None:
            handle._loop_handle.cancel()
            handle._loop_handle = None
        self._fire(handle)
        return True

    @staticmethod
    def _fire(handle: TimerHandle) -> None:
        if not handle.pending:
            return
        handle.fired = True
        handle._loop_handle = None
        handle.callback()
