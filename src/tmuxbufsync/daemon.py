#!/usr/bin/env python3
"""Daemon mode and one-shot operations.

The daemon runs the Scheduler and serves the control socket until SIGINT
or SIGTERM. On a signal the scheduler stops taking new work, the
in-flight sync finishes, and the control server closes.

When no daemon is running, the CLI uses run_once and load_status to work
directly against tmux, atuin and the state file.
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import TYPE_CHECKING

from tmuxbufsync.atuin_store import AtuinKvStore
from tmuxbufsync.control_handler import handle_control_client
from tmuxbufsync.control_socket import claim_socket, release_socket
from tmuxbufsync.scheduler import Scheduler
from tmuxbufsync.state_file import StateFile
from tmuxbufsync.status import Status, report
from tmuxbufsync.sync_engine import SyncEngine, SyncResult
from tmuxbufsync.tmux_source import TmuxBufferSource

if TYPE_CHECKING:
    from tmuxbufsync.config import SyncConfig

logger = logging.getLogger(__name__)


def build_engine(config: SyncConfig) -> SyncEngine:
    """Create a SyncEngine wired to tmux, atuin and the state file."""
    source = TmuxBufferSource(timeout=config.command_timeout)
    store = AtuinKvStore(
        timeout=config.command_timeout,
        attempts=config.retry_attempts,
        sync=config.atuin_sync,
    )
    return SyncEngine(config, source, store, StateFile(config.state_dir))


async def run_daemon(config: SyncConfig) -> None:
    """Run the scheduler and control socket until a stop signal arrives.

    Args:
        config: Sync configuration.

    Raises:
        DaemonAlreadyRunning: If another daemon already owns the control socket.
        ControlSocketError: If the control socket path cannot be used.
    """
    engine = build_engine(config)
    scheduler = Scheduler(engine, config)

    claim_socket(config.socket_path)
    socket_path = str(config.socket_path)

    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGINT, scheduler.stop)
    loop.add_signal_handler(signal.SIGTERM, scheduler.stop)

    server = await asyncio.start_unix_server(
        lambda r, w: handle_control_client(scheduler, r, w),
        path=socket_path,
    )
    logger.info(
        "Syncing namespace %s as %s every %gs, control socket %s",
        config.namespace, config.server_id, config.frequency, socket_path,
    )
    try:
        async with server:
            await scheduler.run()
            server.close()
    finally:
        release_socket(config.socket_path)


async def run_once(config: SyncConfig) -> SyncResult:
    """Run a single sync_now without a daemon."""
    engine = build_engine(config)
    return await engine.sync_now(config.namespace, config.count)


def load_status(config: SyncConfig) -> Status:
    """Build a status snapshot from the persisted state file."""
    state = StateFile(config.state_dir).load(config.namespace)
    return report(config, state)
