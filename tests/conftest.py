#!/usr/bin/env python3
"""Pytest fixtures for tmux-buffer-sync tests.

Provides in-memory fakes of the tmux buffer source and the remote
key-value store, plus configuration and engine fixtures wired to them.
"""

import shutil
from pathlib import Path

import pytest

from tmuxbufsync.codec import RemoteKey, parse_key
from tmuxbufsync.config import SyncConfig
from tmuxbufsync.errors import CorruptEntry, LocalBufferUnavailable, RetentionConflict, TransportError
from tmuxbufsync.state_file import StateFile
from tmuxbufsync.sync_engine import SyncEngine
from tmuxbufsync.tmux_source import LocalBuffer


def has_binary(name: str) -> bool:
    """Check whether an executable is available on PATH."""
    return shutil.which(name) is not None


class FakeBufferSource:
    """In-memory tmux buffer stack, most recent first."""

    def __init__(self) -> None:
        self.buffers: list[LocalBuffer] = []
        self.fail = False
        self.loads: list[str] = []
        self.deleted: list[str] = []
        self.copies = 0

    def copy(self, content: str, name: str | None = None) -> str:
        """Simulate a local copy, returning the new buffer name."""
        name = name or f"buffer{self.copies:04d}"
        self.copies += 1
        self.buffers.insert(0, LocalBuffer(name, content))
        return name

    def contents(self) -> list[str]:
        return [b.content for b in self.buffers]

    async def list_recent(self, count: int | None = None) -> list[LocalBuffer]:
        if self.fail:
            raise LocalBufferUnavailable("no server running")
        return list(self.buffers if count is None else self.buffers[:count])

    async def load(self, name: str, content: str) -> None:
        if self.fail:
            raise LocalBufferUnavailable("no server running")
        self.buffers = [b for b in self.buffers if b.name != name]
        self.buffers.insert(0, LocalBuffer(name, content))
        self.loads.append(name)

    async def delete(self, name: str) -> None:
        if self.fail:
            raise LocalBufferUnavailable("no server running")
        self.buffers = [b for b in self.buffers if b.name != name]
        self.deleted.append(name)

    async def show_latest(self) -> str:
        return self.buffers[0].content if self.buffers else ""


class FakeStore:
    """In-memory namespaced key-value store shared by fake servers."""

    def __init__(self) -> None:
        self.data: dict[str, dict[str, str]] = {}
        self.fail = False
        self.fail_after_puts: int | None = None
        self.puts: list[tuple[str, str]] = []
        self.deletes: list[str] = []

    def _check(self) -> None:
        if self.fail:
            raise TransportError("store unreachable")

    async def put(self, namespace: str, key: str, value: str) -> None:
        self._check()
        if self.fail_after_puts is not None and len(self.puts) >= self.fail_after_puts:
            raise TransportError("connection reset")
        self.puts.append((namespace, key))
        self.data.setdefault(namespace, {})[key] = value

    async def get(self, namespace: str, key: str) -> str:
        self._check()
        try:
            return self.data[namespace][key]
        except KeyError:
            raise RetentionConflict(key) from None

    async def list(self, namespace: str) -> list[RemoteKey]:
        self._check()
        keys = []
        for key in self.data.get(namespace, {}):
            try:
                keys.append(parse_key(key))
            except CorruptEntry:
                continue
        return keys

    async def delete(self, namespace: str, key: str) -> None:
        self._check()
        if key not in self.data.get(namespace, {}):
            raise RetentionConflict(key)
        del self.data[namespace][key]
        self.deletes.append(key)


@pytest.fixture
def store() -> FakeStore:
    """Create an empty shared fake store."""
    return FakeStore()


@pytest.fixture
def source() -> FakeBufferSource:
    """Create an empty fake tmux buffer source."""
    return FakeBufferSource()


@pytest.fixture
def config(tmp_path: Path) -> SyncConfig:
    """Create a config for server A with N=5 in namespace ns1."""
    return SyncConfig(
        server_id="A",
        namespace="ns1",
        count=5,
        frequency=60.0,
        debounce=0.01,
        state_dir=tmp_path / "state-A",
        socket_path=tmp_path / "A.sock",
    )


@pytest.fixture
def engine(config: SyncConfig, source: FakeBufferSource, store: FakeStore) -> SyncEngine:
    """Create an engine for server A backed by the fakes."""
    return SyncEngine(config, source, store, StateFile(config.state_dir))


def make_engine(
    server_id: str,
    store: FakeStore,
    tmp_path: Path,
    namespace: str = "ns1",
    count: int = 5,
) -> tuple[SyncEngine, FakeBufferSource]:
    """Create another server's engine sharing the given store."""
    cfg = SyncConfig(
        server_id=server_id,
        namespace=namespace,
        count=count,
        state_dir=tmp_path / f"state-{server_id}",
        socket_path=tmp_path / f"{server_id}.sock",
    )
    src = FakeBufferSource()
    return SyncEngine(cfg, src, store, StateFile(cfg.state_dir)), src
