import asyncio
import inspect
import logging
from typing import Any, Callable, Optional
from ..scheduler import Clock

logger = logging.getLogger(__name__)


async def _maybe_await(result: Any) -> None:
    if inspect.isawaitable(result):
        await result


class Countdown:
    """
    One-second resolution countdown.

    on_tick(remaining) fires on start and after every second; on_expire()
    fires once when remaining reaches zero. Starting again replaces the
    running countdown.
    """

    def __init__(self, clock: Clock, name: str = "countdown"):
        self.clock = clock
        self.name = name
        self.total = 0
        self.remaining = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, duration_seconds: int, on_tick: Optional[Callable[[int], Any]] = None,
              on_expire: Optional[Callable[[], Any]] = None) -> None:
        self.stop()
        self.total = int(duration_seconds)
        self.remaining = self.total
        logger.debug(f"Starting {self.name}: {self.total}s")
        self._task = asyncio.ensure_future(self._run(on_tick, on_expire))

    def stop(self) -> None:
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        if task is asyncio.current_task():
            # Called from inside our own expiry callback; the run loop is already finishing.
            return
        logger.debug(f"Stopping {self.name} with {self.remaining}s left")
        task.cancel()

    async def _run(self, on_tick, on_expire) -> None:
        me = asyncio.current_task()
        try:
            if on_tick:
                await _maybe_await(on_tick(self.remaining))
            while self.remaining > 0:
                await self.clock.sleep(1)
                if self._task is not me:
                    return
                self.remaining -= 1
                if on_tick:
                    await _maybe_await(on_tick(self.remaining))
            if self._task is not me:
                return
            # Detach before expiring so the callback may start a new countdown.
            self._task = None
            logger.debug(f"{self.name} expired")
            if on_expire:
                await _maybe_await(on_expire())
        except Exception as e:
            logger.error(f"Error in {self.name} callback: {e}", exc_info=True)
