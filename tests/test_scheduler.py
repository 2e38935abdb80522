#!/usr/bin/env python3
"""
Tests for the Scheduler dispatcher.

Uses a gated fake engine so tests can hold a sync in flight and observe
how timer, change, manual and stop triggers behave around it.
"""
import asyncio
from dataclasses import replace

import pytest

from tmuxbufsync.config import SyncConfig
from tmuxbufsync.scheduler import Scheduler, SchedulerState, SchedulerStopped
from tmuxbufsync.sync_engine import SyncResult


class GatedEngine:
    """Fake engine whose operations wait for a gate to open."""

    def __init__(self, open_gate: bool = True) -> None:
        self.gate = asyncio.Event()
        if open_gate:
            self.gate.set()
        self.calls: list[str] = []
        self.active = 0
        self.max_active = 0
        self.finished = 0

    async def _op(self, name: str) -> SyncResult:
        self.calls.append(name)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await self.gate.wait()
        finally:
            self.active -= 1
        self.finished += 1
        return SyncResult(pulled=len(self.calls))

    async def sync_now(self, namespace=None, count=None) -> SyncResult:
        return await self._op("sync_now")

    async def push(self, namespace=None, count=None) -> SyncResult:
        return await self._op("push")


@pytest.fixture
def sched_config(config: SyncConfig) -> SyncConfig:
    return replace(config, frequency=3600.0, debounce=0.01)


async def settle(delay: float = 0.05) -> None:
    await asyncio.sleep(delay)


async def stop_and_wait(scheduler: Scheduler, task: asyncio.Task) -> None:
    scheduler.stop()
    await asyncio.wait_for(task, timeout=1.0)


@pytest.mark.asyncio
async def test_startup_runs_one_sync(sched_config: SyncConfig) -> None:
    """Test the dispatcher performs one sync_now on startup."""
    engine = GatedEngine()
    scheduler = Scheduler(engine, sched_config)
    task = asyncio.create_task(scheduler.run())
    await settle()

    assert engine.calls == ["sync_now"]
    assert scheduler.state is SchedulerState.IDLE
    await stop_and_wait(scheduler, task)
    assert scheduler.state is SchedulerState.STOPPED


@pytest.mark.asyncio
async def test_timer_triggers_periodic_sync(sched_config: SyncConfig) -> None:
    """Test the timer fires sync_now at the configured frequency."""
    engine = GatedEngine()
    scheduler = Scheduler(engine, replace(sched_config, frequency=0.02))
    task = asyncio.create_task(scheduler.run())
    await settle(0.15)
    await stop_and_wait(scheduler, task)

    assert engine.calls.count("sync_now") >= 3


@pytest.mark.asyncio
async def test_timer_skipped_while_sync_in_progress(sched_config: SyncConfig) -> None:
    """Test timer ticks during an in-flight sync are dropped."""
    engine = GatedEngine(open_gate=False)
    scheduler = Scheduler(engine, sched_config)
    task = asyncio.create_task(scheduler.run())
    await settle()
    assert scheduler.state is SchedulerState.SYNC_IN_PROGRESS

    scheduler.on_timer()
    scheduler.on_timer()
    engine.gate.set()
    await settle()

    assert engine.calls == ["sync_now"]
    await stop_and_wait(scheduler, task)


@pytest.mark.asyncio
async def test_buffer_changes_debounced_into_one_push(sched_config: SyncConfig) -> None:
    """Test a burst of copies results in a single push."""
    engine = GatedEngine()
    scheduler = Scheduler(engine, sched_config)
    task = asyncio.create_task(scheduler.run())
    await settle()

    for _ in range(5):
        scheduler.on_buffer_change()
        await asyncio.sleep(0)
    await settle()

    assert engine.calls == ["sync_now", "push"]
    await stop_and_wait(scheduler, task)


@pytest.mark.asyncio
async def test_manual_requests_coalesce_and_queue(sched_config: SyncConfig) -> None:
    """Test manual requests during a sync share one queued sync_now."""
    engine = GatedEngine(open_gate=False)
    scheduler = Scheduler(engine, sched_config)
    task = asyncio.create_task(scheduler.run())
    await settle()

    first = scheduler.request_sync()
    second = scheduler.request_sync()
    assert first is second
    assert engine.calls == ["sync_now"]

    engine.gate.set()
    result = await asyncio.wait_for(first, timeout=1.0)

    assert result.ok is True
    assert engine.calls == ["sync_now", "sync_now"]
    assert engine.max_active == 1
    await stop_and_wait(scheduler, task)


@pytest.mark.asyncio
async def test_stop_lets_in_flight_sync_finish(sched_config: SyncConfig) -> None:
    """Test stop waits for the current sync instead of cancelling it."""
    engine = GatedEngine(open_gate=False)
    scheduler = Scheduler(engine, sched_config)
    task = asyncio.create_task(scheduler.run())
    await settle()

    scheduler.stop()
    await settle()
    assert not task.done()

    engine.gate.set()
    await asyncio.wait_for(task, timeout=1.0)

    assert engine.finished == 1
    assert scheduler.state is SchedulerState.STOPPED


@pytest.mark.asyncio
async def test_stop_fails_queued_manual_request(sched_config: SyncConfig) -> None:
    """Test a manual request that never started is failed on stop."""
    engine = GatedEngine(open_gate=False)
    scheduler = Scheduler(engine, sched_config)
    task = asyncio.create_task(scheduler.run())
    await settle()

    pending = scheduler.request_sync()
    scheduler.stop()
    engine.gate.set()
    await asyncio.wait_for(task, timeout=1.0)

    with pytest.raises(SchedulerStopped):
        await pending
    assert engine.calls == ["sync_now"]


@pytest.mark.asyncio
async def test_request_after_stop_raises(sched_config: SyncConfig) -> None:
    """Test manual requests are refused once stopping."""
    scheduler = Scheduler(GatedEngine(), sched_config)
    scheduler.stop()

    with pytest.raises(SchedulerStopped):
        scheduler.request_sync()
