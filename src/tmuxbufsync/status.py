#!/usr/bin/env python3
"""Read-only status view of the sync engine.

report() assembles a Status snapshot from in-memory engine state and never
performs I/O. render_status() turns a snapshot into the text printed by
`sync-status`.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tmuxbufsync.config import SyncConfig
    from tmuxbufsync.sync_state import SyncState


@dataclass(frozen=True)
class Status:
    """Snapshot of one namespace's sync state."""

    server_id: str
    namespace: str
    count: int
    frequency: float
    last_push_at: float | None
    last_pull_at: float | None
    last_error: str | None
    local_buffer_count: int
    known_remote_count: int

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> Status:
        """Build a Status from a dict, ignoring unknown keys."""
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})


def report(config: SyncConfig, state: SyncState) -> Status:
    """Assemble a status snapshot.

    Args:
        config: Sync configuration.
        state: Sync state of the configured namespace.

    Returns:
        The snapshot.
    """
    return Status(
        server_id=config.server_id,
        namespace=config.namespace,
        count=config.count,
        frequency=config.frequency,
        last_push_at=state.last_push_at,
        last_pull_at=state.last_pull_at,
        last_error=state.last_error,
        local_buffer_count=state.local_buffer_count,
        known_remote_count=len(state.known_remote_ids),
    )


def _format_time(timestamp: float | None) -> str:
    if timestamp is None:
        return "never"
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S")


def render_status(status: Status) -> str:
    """Render a status snapshot as aligned text lines."""
    rows = [
        ("server", status.server_id),
        ("namespace", status.namespace),
        ("sync count", str(status.count)),
        ("sync frequency", f"{status.frequency:g}s"),
        ("last push", _format_time(status.last_push_at)),
        ("last pull", _format_time(status.last_pull_at)),
        ("local buffers", str(status.local_buffer_count)),
        ("known remote", str(status.known_remote_count)),
        ("last error", status.last_error or "none"),
    ]
    width = max(len(label) for label, _ in rows)
    return "\n".join(f"{label + ':':<{width + 1}} {value}" for label, value in rows)
