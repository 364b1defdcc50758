"""
Cancellable delayed callbacks.

MessageBuffer does not touch asyncio timing directly. It depends on the
TimerScheduler protocol (schedule a coroutine after a delay, cancel it by
handle), which keeps the debounce logic testable with a scheduler that fires
on demand.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Protocol

logger = logging.getLogger(__name__)

TimerCallback = Callable[[], Awaitable[None]]


class TimerScheduler(Protocol):
    """Capability to run a callback after a delay, with cancellation."""

    def schedule(self, delay: float, callback: TimerCallback) -> Any:
        """Arm a timer and return an opaque handle."""
        ...

    def cancel(self, handle: Any) -> None:
        """Cancel a timer that has not fired yet. Unknown handles are ignored."""
        ...


class TimerHandle:
    """Handle to one armed asyncio timer."""

    def __init__(self, delay: float):
        self.delay = delay
        self.fired = False
        self.task: Optional[asyncio.Task] = None

    def __repr__(self) -> str:
        return f"TimerHandle(delay={self.delay}, fired={self.fired})"


class AsyncioTimerScheduler:
    """
    TimerScheduler backed by asyncio tasks.

    Each timer is a task that sleeps for the delay and then awaits the
    callback. Cancelling only interrupts the sleep: once a timer has fired,
    cancel() is a no-op, so a callback that is already running (an AI call in
    flight) is never interrupted by re-arming.
    """

    def schedule(self, delay: float, callback: TimerCallback) -> TimerHandle:
        handle = TimerHandle(delay)

        async def timer_task():
            await asyncio.sleep(delay)
            handle.fired = True
            await callback()

        handle.task = asyncio.create_task(timer_task())
        return handle

    def cancel(self, handle: Optional[TimerHandle]) -> None:
        if handle is None or handle.fired or handle.task is None:
            return
        if not handle.task.done():
            handle.task.cancel()
            logger.debug(f"Cancelled {handle!r}")
