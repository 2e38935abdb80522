#!/usr/bin/env python3
"""Per-namespace synchronization state.

SyncState holds everything the engine remembers between rounds for one
namespace: timestamps, the last error, which entry ids are known to exist
remotely, and the sequence numbers allocated to local buffers. It is
mutated only by the sync engine while holding the namespace lock.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from tmuxbufsync.entry import BufferEntry
from tmuxbufsync.hashing import compute_hash


@dataclass
class LocalEntryRecord:
    """Identity allocated to a local buffer the first time it was seen."""

    sequence: int
    captured_at: float


@dataclass
class SyncState:
    """State for synchronizing one namespace.

    Attributes:
        last_push_at: Time of the last successful push, or None.
        last_pull_at: Time of the last successful pull, or None.
        last_error: Message of the last recorded failure, or None.
        last_error_at: Time the last error was recorded, or None.
        known_remote_ids: Entry ids already observed in the namespace.
        local_sequence_counter: Last sequence number allocated locally.
        local_entries: Allocated identities keyed by "<buffer name>:<content hash>".
        local_buffer_count: Number of local buffers seen in the last round.
    """

    last_push_at: float | None = None
    last_pull_at: float | None = None
    last_error: str | None = None
    last_error_at: float | None = None
    known_remote_ids: set[str] = field(default_factory=set)
    local_sequence_counter: int = 0
    local_entries: dict[str, LocalEntryRecord] = field(default_factory=dict)
    local_buffer_count: int = 0

    def entry_for_local(self, origin: str, name: str, content: str) -> BufferEntry:
        """Return the entry for a local buffer, allocating a sequence if new.

        Args:
            origin: This server's identifier.
            name: tmux buffer name.
            content: Buffer content.

        Returns:
            The buffer's entry, identical across calls for the same buffer.
        """
        record_key = f"{name}:{compute_hash(content)}"
        record = self.local_entries.get(record_key)
        if record is None:
            self.local_sequence_counter += 1
            record = LocalEntryRecord(self.local_sequence_counter, time.time())
            self.local_entries[record_key] = record
        return BufferEntry(
            origin=origin,
            sequence=record.sequence,
            content=content,
            captured_at=record.captured_at,
        )

    def forget_local_entries(self, keep: set[str]) -> None:
        """Drop allocated identities for buffers no longer present locally.

        Args:
            keep: Record keys of buffers still present.
        """
        for record_key in list(self.local_entries):
            if record_key not in keep:
                del self.local_entries[record_key]

    def record_error(self, message: str) -> None:
        """Record a failure message."""
        self.last_error = message
        self.last_error_at = time.time()

    def clear_error(self) -> None:
        """Clear the recorded failure after a fully successful sync."""
        self.last_error = None
        self.last_error_at = None
