#!/usr/bin/env python3
"""Synchronizable buffer entry.

A BufferEntry is created when a local copy is first observed on its origin
server and keeps the same id, origin and sequence on every server it is
pulled into.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from tmuxbufsync.hashing import compute_entry_id, compute_hash

# Local buffer names starting with this prefix hold entries pulled from
# another server. The rest of the name is the entry id.
PULLED_BUFFER_PREFIX: str = "sync_"


@dataclass(frozen=True)
class BufferEntry:
    """A single synchronizable buffer.

    Attributes:
        origin: Identifier of the server that first created the buffer.
        sequence: Per-origin counter assigned at creation time.
        content: The buffer text.
        captured_at: Creation time in seconds since the epoch. Display and
            eviction order only, never used for identity.
        id: Stable identifier derived from origin, content hash and sequence.
    """

    origin: str
    sequence: int
    content: str
    captured_at: float
    id: str = field(init=False)

    def __post_init__(self) -> None:
        entry_id = compute_entry_id(self.origin, compute_hash(self.content), self.sequence)
        object.__setattr__(self, "id", entry_id)


def pulled_buffer_name(entry_id: str) -> str:
    """Return the local tmux buffer name for a pulled entry."""
    return f"{PULLED_BUFFER_PREFIX}{entry_id}"


def pulled_entry_id(buffer_name: str) -> str | None:
    """Return the entry id carried by a pulled buffer name, or None.

    Args:
        buffer_name: A local tmux buffer name.

    Returns:
        The entry id if the name marks a pulled buffer, None for a buffer
        created on this server.
    """
    if not buffer_name.startswith(PULLED_BUFFER_PREFIX):
        return None
    entry_id = buffer_name[len(PULLED_BUFFER_PREFIX):]
    return entry_id or None
