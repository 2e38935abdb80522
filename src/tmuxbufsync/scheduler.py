#!/usr/bin/env python3
"""Trigger scheduling for the sync engine.

All triggers feed one asyncio.Queue consumed by a single dispatcher task,
so engine operations started by the scheduler never overlap:
- startup: one sync_now when the dispatcher starts
- timer: sync_now every `frequency` seconds, dropped while a sync is in
  progress or another timer sync is already queued
- buffer change: push after `debounce` seconds without further changes,
  dropped while a sync is in progress
- manual request: sync_now queued behind any in-flight sync; requests
  made before it starts share its result

stop() cancels the timer and debounce tasks, fails manual requests that
have not started, and lets the in-flight operation finish before the
dispatcher exits.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import TYPE_CHECKING

from tmuxbufsync.sync_engine import SyncResult

if TYPE_CHECKING:
    from tmuxbufsync.config import SyncConfig
    from tmuxbufsync.sync_engine import SyncEngine

logger = logging.getLogger(__name__)


class SchedulerState(enum.Enum):
    IDLE = "idle"
    SYNC_IN_PROGRESS = "sync-in-progress"
    STOPPED = "stopped"


class Trigger(enum.Enum):
    STARTUP = "startup"
    TIMER = "timer"
    BUFFER_CHANGE = "buffer-change"
    MANUAL = "manual"
    STOP = "stop"


class SchedulerStopped(Exception):
    """Raised to manual requesters when the scheduler stops first."""


class Scheduler:
    """Drives a SyncEngine from startup, timer, change and manual triggers.

    Args:
        engine: The sync engine for the configured namespace.
        config: Sync configuration (namespace, count, frequency, debounce).
    """

    def __init__(self, engine: SyncEngine, config: SyncConfig) -> None:
        self.engine = engine
        self.config = config
        self.state = SchedulerState.IDLE
        self._queue: asyncio.Queue[Trigger] = asyncio.Queue()
        self._timer_queued = False
        self._manual_future: asyncio.Future[SyncResult] | None = None
        self._timer_task: asyncio.Task | None = None
        self._debounce_task: asyncio.Task | None = None
        self._stopping = False

    async def run(self) -> None:
        """Run the dispatcher until stop() is called."""
        self._queue.put_nowait(Trigger.STARTUP)
        self._timer_task = asyncio.create_task(self._timer_loop())
        try:
            while True:
                trigger = await self._queue.get()
                if trigger is Trigger.STOP:
                    break
                if self._stopping:
                    continue
                await self._dispatch(trigger)
        finally:
            self._cancel_background()
            self._fail_pending_manual()
            self.state = SchedulerState.STOPPED
            logger.debug("Scheduler stopped")

    async def _dispatch(self, trigger: Trigger) -> None:
        namespace, count = self.config.namespace, self.config.count
        future = None
        if trigger is Trigger.TIMER:
            self._timer_queued = False
        elif trigger is Trigger.MANUAL:
            future, self._manual_future = self._manual_future, None

        logger.debug("Dispatching %s trigger", trigger.value)
        self.state = SchedulerState.SYNC_IN_PROGRESS
        try:
            if trigger is Trigger.BUFFER_CHANGE:
                result = await self.engine.push(namespace, count)
            else:
                result = await self.engine.sync_now(namespace, count)
        except Exception as e:
            if future is not None and not future.done():
                future.set_exception(e)
            raise
        finally:
            self.state = SchedulerState.IDLE
        if future is not None and not future.done():
            future.set_result(result)

    async def _timer_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.frequency)
            self.on_timer()

    def on_timer(self) -> None:
        """Queue a periodic sync unless one is running or already queued."""
        if self._stopping or self.state is SchedulerState.SYNC_IN_PROGRESS or self._timer_queued:
            logger.debug("Timer sync skipped, sync already pending")
            return
        self._timer_queued = True
        self._queue.put_nowait(Trigger.TIMER)

    def on_buffer_change(self) -> None:
        """Schedule a debounced push after a local copy."""
        if self._stopping:
            return
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = asyncio.create_task(self._debounced_push())

    async def _debounced_push(self) -> None:
        await asyncio.sleep(self.config.debounce)
        if self.state is SchedulerState.SYNC_IN_PROGRESS:
            logger.debug("Change push skipped, sync in progress")
            return
        self._queue.put_nowait(Trigger.BUFFER_CHANGE)

    def request_sync(self) -> asyncio.Future[SyncResult]:
        """Queue a manual sync_now and return a future for its result.

        Requests made before the queued sync starts share one future.

        Raises:
            SchedulerStopped: If the scheduler is stopping.
        """
        if self._stopping:
            raise SchedulerStopped("scheduler is stopping")
        if self._manual_future is None or self._manual_future.done():
            self._manual_future = asyncio.get_running_loop().create_future()
            self._queue.put_nowait(Trigger.MANUAL)
        return self._manual_future

    def stop(self) -> None:
        """Stop scheduling; the in-flight operation is allowed to finish."""
        if self._stopping:
            return
        self._stopping = True
        self._cancel_background()
        self._queue.put_nowait(Trigger.STOP)

    def _cancel_background(self) -> None:
        for task in (self._timer_task, self._debounce_task):
            if task is not None and not task.done():
                task.cancel()

    def _fail_pending_manual(self) -> None:
        if self._manual_future is not None and not self._manual_future.done():
            self._manual_future.set_exception(SchedulerStopped("scheduler stopped"))
        self._manual_future = None

