"""
Timers for the sync orchestrator.

All timers live on the running asyncio loop. A Scheduler owns at most one
RepeatingTimer per concern; starting a concern that is already running is
a no-op and resetting it restarts its period from zero.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Coroutine, Optional

import structlog

logger = structlog.get_logger(__name__)

TimerCallback = Callable[[], Any]


class RepeatingTimer:
    """Runs a callback every interval until stopped."""

    def __init__(self, name: str, interval_ms: int, callback: TimerCallback):
        if interval_ms <= 0:
            raise ValueError(f"Timer interval must be positive, got {interval_ms}")
        self.name = name
        self.interval_ms = interval_ms
        self.callback = callback
        self.ticks = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name=f"timer-{self.name}")

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    def reset(self) -> None:
        self.stop()
        self.start()

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_ms / 1000)
            self.ticks += 1
            try:
                result = self.callback()
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # A failing tick must not kill the timer
                logger.error("Timer callback failed", timer=self.name, error=str(e), exc_info=True)


class Scheduler:
    """Named timers, started and stopped together."""

    def __init__(self):
        self._timers: dict[str, RepeatingTimer] = {}

    def add(self, name: str, interval_ms: int, callback: TimerCallback) -> RepeatingTimer:
        """Register a concern, replacing (and stopping) any previous timer for it."""
        previous = self._timers.pop(name, None)
        if previous is not None:
            previous.stop()

        timer = RepeatingTimer(name, interval_ms, callback)
        self._timers[name] = timer
        return timer

    def get(self, name: str) -> Optional[RepeatingTimer]:
        return self._timers.get(name)

    @property
    def names(self) -> list[str]:
        return list(self._timers)

    @property
    def running(self) -> list[str]:
        return [name for name, timer in self._timers.items() if timer.is_running]

    def start(self) -> None:
        for timer in self._timers.values():
            timer.start()

    def stop(self) -> None:
        for timer in self._timers.values():
            timer.stop()

    def reset(self, name: Optional[str] = None) -> None:
        """Restart one concern, or all of them."""
        if name is not None:
            self._timers[name].reset()
            return
        for timer in self._timers.values():
            timer.reset()


class Debouncer:
    """
    Delays an action until the trigger has been quiet for delay_ms.

    Only the waiting phase is cancellable. Once the delay elapses the action
    is handed to spawn and runs to completion on its own; a later trigger
    starts a fresh wait instead of interrupting it.
    """

    def __init__(
        self,
        delay_ms: int,
        spawn: Callable[[Coroutine[Any, Any, Any]], Any],
    ):
        self.delay_ms = delay_ms
        self.spawn = spawn
        self._pending: Optional[asyncio.Task] = None

    @property
    def pending(self) -> Optional[asyncio.Task]:
        if self._pending is not None and self._pending.done():
            self._pending = None
        return self._pending

    def schedule(self, action: Callable[[], Awaitable[Any]]) -> None:
        self.cancel()
        self._pending = asyncio.get_running_loop().create_task(self._wait_then_run(action))

    def cancel(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    async def _wait_then_run(self, action: Callable[[], Awaitable[Any]]) -> None:
        await asyncio.sleep(self.delay_ms / 1000)
        self._pending = None
        self.spawn(action())
