"""
Clock and phase scheduling for the game core.

All waiting in the core goes through a Clock so tests can swap in a
VirtualClock and drive time by hand. Display pacing (show the wrong answer,
then the reference answer, then close) is expressed as a list of named
Phase steps run by the Scheduler, which abandons the rest of the list as
soon as the owning clue attempt is no longer current.
"""

import asyncio
import heapq
import inspect
import itertools
import logging
from typing import Any, Awaitable, Callable, List, NamedTuple, Optional, Sequence, Set

logger = logging.getLogger(__name__)


class Clock:
    """Wall clock backed by the running event loop."""

    def now(self) -> float:
        return asyncio.get_running_loop().time()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class VirtualClock(Clock):
    """
    Manually advanced clock.

    Sleepers park on futures that are only released by advance(), in deadline
    order, letting the event loop settle after each release so continuations
    that schedule further sleeps are picked up within the same advance.
    """

    SETTLE_ROUNDS = 25

    def __init__(self):
        self._now = 0.0
        self._sleepers = []
        self._counter = itertools.count()

    def now(self) -> float:
        return self._now

    async def sleep(self, seconds: float) -> None:
        future = asyncio.get_running_loop().create_future()
        heapq.heappush(self._sleepers, (self._now + max(seconds, 0.0), next(self._counter), future))
        await future

    async def settle(self) -> None:
        for _ in range(self.SETTLE_ROUNDS):
            await asyncio.sleep(0)

    async def advance(self, seconds: float) -> None:
        target = self._now + seconds
        await self.settle()
        while self._sleepers and self._sleepers[0][0] <= target:
            deadline, _, future = heapq.heappop(self._sleepers)
            if future.done():
                continue
            self._now = deadline
            future.set_result(None)
            await self.settle()
        self._now = target
        await self.settle()


class Phase(NamedTuple):
    """One paced step: wait `delay` seconds, then run `action`."""
    name: str
    delay: float
    action: Callable[[], Any]


class Scheduler:
    """Runs phase sequences and background tasks against one clock."""

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or Clock()
        self._tasks: Set[asyncio.Task] = set()

    def spawn(self, coro: Awaitable, name: Optional[str] = None) -> asyncio.Task:
        """Start a background task, keeping a reference until it finishes."""
        task = asyncio.ensure_future(coro)
        if name:
            task.set_name(name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Background task {task.get_name()} failed: {error!r}", exc_info=error)

    async def sleep(self, seconds: float) -> None:
        await self.clock.sleep(seconds)

    async def run_phases(self, phases: Sequence[Phase], still_current: Callable[[], bool]) -> bool:
        """
        Run phases in order.

        Returns False if the sequence was abandoned because still_current()
        turned false after one of the waits.
        """
        for phase in phases:
            if phase.delay > 0:
                await self.clock.sleep(phase.delay)
            if not still_current():
                logger.debug(f"Abandoning phase '{phase.name}': attempt no longer current")
                return False
            logger.debug(f"Running phase '{phase.name}'")
            result = phase.action()
            if inspect.isawaitable(result):
                await result
        return True

    async def shutdown(self) -> None:
        tasks: List[asyncio.Task] = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
