"""Dual-timer polling scheduler.

Two periodic asyncio tasks, one for status checks and one for progress
notices, feed a single event queue. A consumer task dispatches the events in
arrival order, so the interleaving of status and notice ticks is well
defined. Time is read through an injectable ``sleep`` coroutine function,
letting tests drive the timers with a manual clock.

Lifecycle:
- start(): arm both timers (no-op if already armed)
- stop(): disarm both timers (safe to call repeatedly or before start)

Status checks run as their own task so that a slow provider call does not
hold up notices; while one is in flight, further status ticks are skipped.
stop() never cancels an in-flight check: the check itself calls stop() when
it reaches a terminal outcome.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[Any]]
TickHandler = Callable[[], Awaitable[Any]]


class TickKind(str, Enum):
    """Events produced by the scheduler's timers."""

    STATUS = "status"
    NOTICE = "notice"


class PollingScheduler:
    """Owns the status and notice timers with a shared start/stop lifecycle.

    Attributes:
        check_interval: Seconds between status ticks
        notice_interval: Seconds between notice ticks
    """

    def __init__(
        self,
        on_status: TickHandler,
        on_notice: TickHandler,
        check_interval: float,
        notice_interval: float,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """Initialize the scheduler.

        Args:
            on_status: Coroutine function run on each status tick
            on_notice: Coroutine function run on each notice tick
            check_interval: Status period in seconds (> 0)
            notice_interval: Notice period in seconds (> 0)
            sleep: Coroutine function used to wait between ticks

        Raises:
            ValueError: If either interval is not positive
        """
        if check_interval <= 0 or notice_interval <= 0:
            raise ValueError("Polling intervals must be positive")

        self._on_status = on_status
        self._on_notice = on_notice
        self.check_interval = check_interval
        self.notice_interval = notice_interval
        self._sleep = sleep

        self._status_task: Optional[asyncio.Task[None]] = None
        self._notice_task: Optional[asyncio.Task[None]] = None
        self._consumer_task: Optional[asyncio.Task[None]] = None
        self._queue: Optional[asyncio.Queue[TickKind]] = None
        self._check_task: Optional[asyncio.Task[None]] = None
        self._stopped: Optional[asyncio.Event] = None

    @property
    def is_running(self) -> bool:
        """True while the timers are armed."""
        return self._status_task is not None

    @property
    def check_in_flight(self) -> bool:
        return self._check_task is not None and not self._check_task.done()

    def start(self) -> bool:
        """Arm both timers. Must be called from within a running event loop.

        Returns:
            True if the timers were armed, False if they already were
        """
        if self._status_task is not None:
            return False

        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[TickKind] = asyncio.Queue()
        self._queue = queue
        if self._stopped is None:
            self._stopped = asyncio.Event()
        self._stopped.clear()

        self._consumer_task = loop.create_task(self._consume(queue))
        self._status_task = loop.create_task(
            self._tick_every(self.check_interval, TickKind.STATUS, queue)
        )
        self._notice_task = loop.create_task(
            self._tick_every(self.notice_interval, TickKind.NOTICE, queue)
        )
        logger.debug(
            "Polling started (check every %ss, notice every %ss)",
            self.check_interval,
            self.notice_interval,
        )
        return True

    def stop(self) -> None:
        """Disarm both timers. Idempotent."""
        was_running = self._status_task is not None
        current = _current_task()

        for task in (self._status_task, self._notice_task):
            if task is not None and task is not current:
                task.cancel()
        consumer = self._consumer_task
        if consumer is not None and consumer is not current:
            consumer.cancel()

        # A consumer stopping itself exits after its current event
        queue = self._queue
        self._status_task = None
        self._notice_task = None
        self._consumer_task = None
        self._queue = None
        if queue is not None:
            _drain(queue)
        if self._stopped is not None:
            self._stopped.set()

        if was_running:
            logger.debug("Polling stopped")

    async def wait_stopped(self) -> None:
        """Wait until stop() is called; returns immediately if not running."""
        if self._stopped is None or not self.is_running:
            return
        await self._stopped.wait()

    async def wait_idle(self) -> None:
        """Wait for queued events and any in-flight status check to finish."""
        queue = self._queue
        if queue is not None:
            await queue.join()
        check = self._check_task
        if check is not None and not check.done():
            await asyncio.gather(check, return_exceptions=True)

    async def aclose(self) -> None:
        """Stop polling and wait for an in-flight status check to settle."""
        self.stop()
        check = self._check_task
        if check is not None and not check.done():
            await asyncio.gather(check, return_exceptions=True)

    async def _tick_every(
        self,
        interval: float,
        kind: TickKind,
        queue: asyncio.Queue[TickKind],
    ) -> None:
        while True:
            await self._sleep(interval)
            if queue is not self._queue:
                return
            queue.put_nowait(kind)

    async def _consume(self, queue: asyncio.Queue[TickKind]) -> None:
        while queue is self._queue:
            kind = await queue.get()
            try:
                if queue is not self._queue:
                    return
                if kind is TickKind.STATUS:
                    self._dispatch_status()
                else:
                    await self._run_notice()
            finally:
                queue.task_done()

    def _dispatch_status(self) -> None:
        if self.check_in_flight:
            logger.debug("Status check still in flight, skipping tick")
            return
        self._check_task = asyncio.get_running_loop().create_task(self._run_status())

    async def _run_status(self) -> None:
        try:
            await self._on_status()
        except Exception:
            logger.exception("Status check raised unexpectedly")

    async def _run_notice(self) -> None:
        try:
            await self._on_notice()
        except Exception:
            logger.exception("Progress notice raised unexpectedly")


def _drain(queue: asyncio.Queue[TickKind]) -> None:
    while True:
        try:
            queue.get_nowait()
        except asyncio.QueueEmpty:
            return
        queue.task_done()


def _current_task() -> Optional[asyncio.Task[Any]]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
