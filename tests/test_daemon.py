#!/usr/bin/env python3
"""
Tests for daemon mode and one-shot operations.

Runs the real daemon loop against in-memory collaborators and drives it
through its control socket.
"""
import asyncio
import os
import signal
from unittest.mock import AsyncMock, patch

import pytest

from conftest import FakeBufferSource, FakeStore
from tmuxbufsync.config import SyncConfig
from tmuxbufsync.control_client import send_request
from tmuxbufsync.daemon import build_engine, load_status, run_daemon, run_once
from tmuxbufsync.errors import DaemonAlreadyRunning
from tmuxbufsync.state_file import StateFile
from tmuxbufsync.sync_engine import SyncEngine


async def wait_for_socket(path: str) -> None:
    for _ in range(100):
        if os.path.exists(path):
            return
        await asyncio.sleep(0.01)
    raise AssertionError(f"socket {path} never appeared")


@pytest.mark.asyncio
async def test_daemon_serves_control_requests(
    config: SyncConfig, source: FakeBufferSource, store: FakeStore
) -> None:
    """Test the daemon syncs on request, reports status and exits on SIGTERM."""
    engine = SyncEngine(config, source, store, StateFile(config.state_dir))
    source.copy("hello")
    socket_path = str(config.socket_path)

    with patch("tmuxbufsync.daemon.build_engine", return_value=engine):
        task = asyncio.create_task(run_daemon(config))
        await wait_for_socket(socket_path)

        reply = await send_request(socket_path, "sync-now")
        assert reply["ok"] is True

        status = await send_request(socket_path, "sync-status")
        assert status["status"]["known_remote_count"] == 1

        source.copy("second")
        assert (await send_request(socket_path, "buffer-changed")) == {"ok": True}
        await asyncio.sleep(0.1)
        assert len(store.data["ns1"]) == 2

        os.kill(os.getpid(), signal.SIGTERM)
        await asyncio.wait_for(task, timeout=2.0)

    assert not os.path.exists(socket_path)


@pytest.mark.asyncio
async def test_run_once_uses_built_engine(config: SyncConfig) -> None:
    """Test run_once performs a single sync_now."""
    with patch("tmuxbufsync.daemon.build_engine") as mock_build:
        engine = mock_build.return_value
        engine.sync_now = AsyncMock(return_value="result")
        result = await run_once(config)

    assert result == "result"
    engine.sync_now.assert_awaited_once_with("ns1", 5)


def test_load_status_reads_state_file(config: SyncConfig) -> None:
    """Test load_status reports the persisted state."""
    state = StateFile(config.state_dir).load("ns1")
    state.record_error("store unreachable")
    StateFile(config.state_dir).save("ns1", state)

    status = load_status(config)

    assert status.last_error == "store unreachable"
    assert status.namespace == "ns1"


def test_build_engine_wires_real_collaborators(config: SyncConfig) -> None:
    """Test build_engine uses tmux, atuin and the configured state dir."""
    engine = build_engine(config)

    assert type(engine.source).__name__ == "TmuxBufferSource"
    assert type(engine.store).__name__ == "AtuinKvStore"
    assert engine.store.attempts == config.retry_attempts
    assert engine.state_file.state_dir == config.state_dir


@pytest.mark.asyncio
async def test_second_daemon_leaves_live_socket(config: SyncConfig) -> None:
    """Test a daemon refused at startup does not remove the running daemon's socket."""
    config.socket_path.parent.mkdir(parents=True, exist_ok=True)
    server = await asyncio.start_unix_server(lambda r, w: w.close(), path=str(config.socket_path))
    try:
        with pytest.raises(DaemonAlreadyRunning):
            await run_daemon(config)
        assert config.socket_path.exists()
    finally:
        server.close()
        await server.wait_closed()
