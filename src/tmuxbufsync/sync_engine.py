#!/usr/bin/env python3
"""Synchronization engine.

SyncEngine is the only component allowed to push to or pull from a
namespace. Each operation holds a per-namespace asyncio.Lock for its whole
duration, so within one process at most one push, pull or sync_now is in
flight per namespace. Cross-server consistency does not depend on this
lock; it comes from entries being content-addressed and sequenced per
origin.

Transport and tmux failures never escape an operation. They are logged,
stored as last_error in the namespace's SyncState and reported through
the returned SyncResult. Work completed before the failure is kept.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tmuxbufsync.errors import LocalBufferUnavailable, TransportError
from tmuxbufsync.sync_handlers import pull_batch, push_batch
from tmuxbufsync.sync_state import SyncState

if TYPE_CHECKING:
    from tmuxbufsync.atuin_store import RemoteStore
    from tmuxbufsync.config import SyncConfig
    from tmuxbufsync.state_file import StateFile
    from tmuxbufsync.tmux_source import BufferSource

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of one engine operation.

    Attributes:
        ok: False if the operation was aborted by a failure.
        pulled: Entries loaded into local buffers.
        pushed: Entries written to the namespace.
        evicted: Entries deleted to enforce the retention bound.
        skipped: Corrupt remote entries skipped during pull.
        error: Failure message when ok is False.
    """

    ok: bool = True
    pulled: int = 0
    pushed: int = 0
    evicted: int = 0
    skipped: int = 0
    error: str | None = None


class SyncEngine:
    """Pushes local buffers to and pulls remote buffers from namespaces.

    Args:
        config: Sync configuration.
        source: Local buffer source (tmux).
        store: Remote key-value store.
        state_file: Optional persistence for per-namespace state.
    """

    def __init__(
        self,
        config: SyncConfig,
        source: BufferSource,
        store: RemoteStore,
        state_file: StateFile | None = None,
    ) -> None:
        self.config = config
        self.source = source
        self.store = store
        self.state_file = state_file
        self._states: dict[str, SyncState] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def state_for(self, namespace: str | None = None) -> SyncState:
        """Return the state of namespace, loading it from disk on first use."""
        namespace = namespace or self.config.namespace
        if namespace not in self._states:
            if self.state_file is not None:
                self._states[namespace] = self.state_file.load(namespace)
            else:
                self._states[namespace] = SyncState()
        return self._states[namespace]

    def _lock_for(self, namespace: str) -> asyncio.Lock:
        if namespace not in self._locks:
            self._locks[namespace] = asyncio.Lock()
        return self._locks[namespace]

    async def push(self, namespace: str | None = None, count: int | None = None) -> SyncResult:
        """Push this server's new local buffers to namespace."""
        return await self._run(namespace, count, pull=False, push=True)

    async def pull(self, namespace: str | None = None, count: int | None = None) -> SyncResult:
        """Pull other servers' entries from namespace into local buffers."""
        return await self._run(namespace, count, pull=True, push=False)

    async def sync_now(self, namespace: str | None = None, count: int | None = None) -> SyncResult:
        """Pull then push as one critical section."""
        return await self._run(namespace, count, pull=True, push=True)

    async def _run(
        self,
        namespace: str | None,
        count: int | None,
        pull: bool,
        push: bool,
    ) -> SyncResult:
        namespace = namespace or self.config.namespace
        count = count or self.config.count
        result = SyncResult()

        async with self._lock_for(namespace):
            state = self.state_for(namespace)
            try:
                if pull:
                    pulled = await pull_batch(
                        state, self.config.server_id, self.source, self.store, namespace, count,
                        limit=self.config.count,
                    )
                    state.last_pull_at = time.time()
                    result.pulled, result.skipped = pulled.pulled, pulled.skipped
                if push:
                    pushed = await push_batch(
                        state, self.config.server_id, self.source, self.store, namespace, count,
                        limit=self.config.count,
                    )
                    state.last_push_at = time.time()
                    result.pushed, result.evicted = pushed.pushed, pushed.evicted
            except (TransportError, LocalBufferUnavailable) as e:
                logger.error("Sync of namespace %s failed: %s", namespace, e)
                state.record_error(str(e))
                result.ok = False
                result.error = str(e)
            else:
                if pull and push:
                    state.clear_error()
                logger.debug(
                    "Namespace %s: pulled %d, pushed %d, evicted %d, skipped %d",
                    namespace, result.pulled, result.pushed, result.evicted, result.skipped,
                )
            finally:
                self._save(namespace, state)
        return result

    def _save(self, namespace: str, state: SyncState) -> None:
        if self.state_file is None:
            return
        try:
            self.state_file.save(namespace, state)
        except OSError as e:
            logger.warning("Could not save sync state for %s: %s", namespace, e)
