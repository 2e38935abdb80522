#!/usr/bin/env python3
"""Exception hierarchy for tmux-buffer-sync.

All errors raised by the sync engine and its collaborators derive from
BufferSyncError so the CLI can report them uniformly. How each one
propagates:
- TransportError: aborts the current push or pull batch, recorded as last_error
- CorruptEntry: isolated to a single remote entry, which is skipped
- RetentionConflict: eviction target already gone, treated as success
- LocalBufferUnavailable: tmux call failed, aborts push/pull immediately
- ConfigError: invalid configuration value, reported as a usage error
- ControlSocketError: daemon cannot claim its socket, the daemon refuses to start
"""


class BufferSyncError(Exception):
    """Base class for tmux-buffer-sync errors."""


class TransportError(BufferSyncError):
    """Remote key-value store unreachable, failed or timed out."""


class CorruptEntry(BufferSyncError):
    """Remote value or key that cannot be decoded into a BufferEntry."""


class RetentionConflict(BufferSyncError):
    """Remote key already removed, usually evicted by another server."""


class LocalBufferUnavailable(BufferSyncError):
    """The tmux server could not be queried or updated."""


class ConfigError(BufferSyncError):
    """Invalid configuration value."""


class ControlSocketError(BufferSyncError):
    """The daemon's control socket path cannot be used."""


class DaemonAlreadyRunning(ControlSocketError):
    """Another daemon is listening on the control socket."""
