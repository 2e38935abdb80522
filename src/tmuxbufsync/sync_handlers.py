#!/usr/bin/env python3
"""Pull, push and eviction batches.

These functions carry the merge and loop prevention rules. They are called
only by SyncEngine, which holds the namespace lock around them and turns
their TransportError and LocalBufferUnavailable failures into last_error:
- pull_batch: absorb other servers' entries into local tmux buffers
- push_batch: publish this server's own new buffers, then enforce retention
- evict_excess: delete the oldest remote entries beyond the retention bound

Loop prevention: a pulled entry is loaded under a name carrying its id
(sync_<id>). push_batch skips every such buffer, so an entry is only ever
written to the namespace by its origin server.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tmuxbufsync.codec import RemoteKey, decode, encode, entry_key, validate_content_size
from tmuxbufsync.entry import BufferEntry, pulled_buffer_name, pulled_entry_id
from tmuxbufsync.errors import CorruptEntry, RetentionConflict
from tmuxbufsync.hashing import compute_hash

if TYPE_CHECKING:
    from tmuxbufsync.atuin_store import RemoteStore
    from tmuxbufsync.sync_state import SyncState
    from tmuxbufsync.tmux_source import BufferSource, LocalBuffer

logger = logging.getLogger(__name__)


@dataclass
class PullOutcome:
    """Counts from one pull batch."""

    pulled: int = 0
    skipped: int = 0


@dataclass
class PushOutcome:
    """Counts from one push batch."""

    pushed: int = 0
    evicted: int = 0


def newest_first(keys: list[RemoteKey]) -> list[RemoteKey]:
    """Order remote keys most recent first."""
    return sorted(keys, key=RemoteKey.eviction_order, reverse=True)


async def pull_batch(
    state: SyncState,
    server_id: str,
    source: BufferSource,
    store: RemoteStore,
    namespace: str,
    count: int,
    limit: int | None = None,
) -> PullOutcome:
    """Load up to count of the most recent remote entries into tmux.

    Entries already known, already present as local buffers, or created by
    this server are skipped. Undecodable entries are logged and skipped
    without aborting the batch. New entries are loaded oldest first so the
    newest ends up on top of the tmux buffer stack. Afterwards only the
    limit most recent pulled buffers are kept locally.

    Args:
        state: Sync state of the namespace.
        server_id: This server's origin identifier.
        source: Local buffer source.
        store: Remote store.
        namespace: Remote namespace.
        count: Maximum number of remote entries considered.
        limit: Number of pulled buffers kept locally, defaults to count.

    Returns:
        Counts of pulled and skipped entries.

    Raises:
        TransportError: If the remote store fails.
        LocalBufferUnavailable: If tmux fails.
    """
    outcome = PullOutcome()
    keys = newest_first(await store.list(namespace))[:count]
    local = await source.list_recent()
    local_ids = {entry_id for entry_id in map(pulled_entry_id, (b.name for b in local)) if entry_id}

    newly_known: set[str] = set()
    fetched: list[BufferEntry] = []
    for remote_key in keys:
        if remote_key.entry_id in state.known_remote_ids:
            continue
        if remote_key.entry_id in local_ids:
            newly_known.add(remote_key.entry_id)
            continue
        try:
            entry = decode(await store.get(namespace, remote_key.key))
            if entry.id != remote_key.entry_id:
                raise CorruptEntry(f"key carries id {remote_key.entry_id}, value carries {entry.id}")
        except CorruptEntry as e:
            logger.warning("Skipping corrupt entry %s in %s: %s", remote_key.key, namespace, e)
            outcome.skipped += 1
            continue
        except RetentionConflict:
            logger.debug("Entry %s evicted before it could be pulled", remote_key.key)
            continue
        if entry.origin == server_id:
            newly_known.add(entry.id)
            continue
        fetched.append(entry)

    loaded: list[str] = []
    for entry in sorted(fetched, key=lambda e: (e.captured_at, e.sequence)):
        name = pulled_buffer_name(entry.id)
        await source.load(name, entry.content)
        loaded.insert(0, name)
        newly_known.add(entry.id)
        outcome.pulled += 1
        logger.debug("Pulled entry %s from %s (seq %d)", entry.id, entry.origin, entry.sequence)

    state.known_remote_ids |= newly_known

    # Pulled buffers beyond the newest limit are dropped; own buffers are left to tmux
    pulled_names = [name for name in loaded + [b.name for b in local] if pulled_entry_id(name)]
    stale = pulled_names[limit or count:]
    for name in stale:
        await source.delete(name)
        logger.debug("Deleted stale pulled buffer %s", name)
    state.local_buffer_count = len(local) + len(loaded) - len(stale)
    return outcome


async def push_batch(
    state: SyncState,
    server_id: str,
    source: BufferSource,
    store: RemoteStore,
    namespace: str,
    count: int,
    limit: int | None = None,
) -> PushOutcome:
    """Write the newest count of this server's own buffers.

    Buffers pulled from other servers do not take up room in the batch.
    Empty buffers, oversized buffers and entries already known remotely
    are skipped. If anything was written, the namespace is trimmed back
    to limit entries.

    Args:
        state: Sync state of the namespace.
        server_id: This server's origin identifier.
        source: Local buffer source.
        store: Remote store.
        namespace: Remote namespace.
        count: Number of own buffers considered.
        limit: Retention bound of the namespace, defaults to count.

    Returns:
        Counts of pushed and evicted entries.

    Raises:
        TransportError: If the remote store fails.
        LocalBufferUnavailable: If tmux fails.
    """
    outcome = PushOutcome()
    local = await source.list_recent()
    state.local_buffer_count = len(local)

    window_ids: set[str] = set()
    own: list[LocalBuffer] = []
    for buffer in local:
        foreign_id = pulled_entry_id(buffer.name)
        if foreign_id is not None:
            window_ids.add(foreign_id)
        else:
            own.append(buffer)

    window_records: set[str] = set()
    candidates: list[BufferEntry] = []
    # Oldest first so newly allocated sequences follow creation order
    for buffer in reversed(own[:count]):
        if not buffer.content:
            continue
        if not validate_content_size(buffer.content):
            logger.warning("Buffer %s exceeds the size limit, not pushing", buffer.name)
            continue
        entry = state.entry_for_local(server_id, buffer.name, buffer.content)
        window_records.add(f"{buffer.name}:{compute_hash(buffer.content)}")
        window_ids.add(entry.id)
        if entry.id not in state.known_remote_ids:
            candidates.append(entry)

    if not candidates:
        logger.debug("Nothing new to push to %s", namespace)
        return outcome

    pushed_ids: set[str] = set()
    for entry in candidates:
        await store.put(namespace, entry_key(entry), encode(entry))
        pushed_ids.add(entry.id)
        outcome.pushed += 1
        logger.debug("Pushed entry %s (seq %d) to %s", entry.id, entry.sequence, namespace)

    outcome.evicted, remote_ids = await evict_excess(store, namespace, limit or count)

    # Keep ids still relevant locally or remotely so the set stays bounded
    state.known_remote_ids = (state.known_remote_ids | pushed_ids) & (remote_ids | window_ids)
    state.forget_local_entries(window_records)
    return outcome


async def evict_excess(store: RemoteStore, namespace: str, limit: int) -> tuple[int, set[str]]:
    """Delete the oldest entries until the namespace holds at most limit.

    Entries are evicted by earliest captured_at, ties broken by lowest
    sequence. A victim already removed by another server counts as evicted.

    Args:
        store: Remote store.
        namespace: Remote namespace.
        limit: Retention bound.

    Returns:
        Tuple of (number of entries evicted, ids remaining in the namespace).

    Raises:
        TransportError: If the remote store fails.
    """
    keys = await store.list(namespace)
    excess = len(keys) - limit
    if excess <= 0:
        return 0, {k.entry_id for k in keys}

    ordered = sorted(keys, key=RemoteKey.eviction_order)
    victims, survivors = ordered[:excess], ordered[excess:]
    for victim in victims:
        try:
            await store.delete(namespace, victim.key)
        except RetentionConflict:
            logger.debug("Entry %s already evicted by another server", victim.key)
        else:
            logger.debug("Evicted entry %s from %s", victim.key, namespace)
    return len(victims), {k.entry_id for k in survivors}
