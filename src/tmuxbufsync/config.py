#!/usr/bin/env python3
"""Sync configuration.

SyncConfig is built once at startup and passed explicitly to the engine,
scheduler and daemon. Values are resolved in order: command-line option,
environment variable (both handled by click), tmux global option, default.
"""

from __future__ import annotations

import logging
import os
import socket
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from tmuxbufsync.errors import ConfigError, LocalBufferUnavailable
from tmuxbufsync.retry_constants import COMMAND_TIMEOUT, RETRY_ATTEMPTS

if TYPE_CHECKING:
    from tmuxbufsync.tmux_source import TmuxBufferSource

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE: str = "tmux-buffer-sync"
DEFAULT_COUNT: int = 10
DEFAULT_FREQUENCY: float = 60.0
DEFAULT_DEBOUNCE: float = 1.0

# tmux global options consulted when no option or environment value is given.
TMUX_OPTIONS: dict[str, str] = {
    "count": "@sync-count",
    "frequency": "@sync-frequency",
    "namespace": "@sync-namespace",
}


def default_state_dir() -> Path:
    """Return $XDG_STATE_HOME/tmux-buffer-sync (or ~/.local/state/...)."""
    base = os.environ.get("XDG_STATE_HOME") or os.path.join(os.path.expanduser("~"), ".local", "state")
    return Path(base) / "tmux-buffer-sync"


def default_socket_path() -> Path:
    """Return the daemon control socket path."""
    runtime_dir = os.environ.get("XDG_RUNTIME_DIR")
    if runtime_dir:
        return Path(runtime_dir) / "tmux-buffer-sync.sock"
    return default_state_dir() / "daemon.sock"


@dataclass
class SyncConfig:
    """Configuration shared by the sync engine, scheduler and daemon.

    Attributes:
        server_id: Origin identifier of this server.
        namespace: Remote namespace shared by cooperating servers.
        count: Retention bound N and push/pull batch size.
        frequency: Seconds between periodic syncs.
        debounce: Seconds of quiet after a copy before pushing.
        command_timeout: Seconds allowed per tmux or atuin command.
        retry_attempts: Attempts per remote call before giving up.
        atuin_sync: Whether to run `atuin sync` before listing.
        state_dir: Directory holding persisted sync state.
        socket_path: Daemon control socket path.
    """

    server_id: str = field(default_factory=socket.gethostname)
    namespace: str = DEFAULT_NAMESPACE
    count: int = DEFAULT_COUNT
    frequency: float = DEFAULT_FREQUENCY
    debounce: float = DEFAULT_DEBOUNCE
    command_timeout: float = COMMAND_TIMEOUT
    retry_attempts: int = RETRY_ATTEMPTS
    atuin_sync: bool = True
    state_dir: Path = field(default_factory=default_state_dir)
    socket_path: Path = field(default_factory=default_socket_path)

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """Check value ranges.

        Raises:
            ConfigError: If any value is out of range.
        """
        if not self.server_id:
            raise ConfigError("server id must not be empty")
        if not self.namespace or "/" in self.namespace:
            raise ConfigError(f"invalid namespace: {self.namespace!r}")
        if self.count < 1:
            raise ConfigError(f"sync count must be at least 1, got {self.count}")
        if self.frequency <= 0:
            raise ConfigError(f"sync frequency must be positive, got {self.frequency}")
        if self.debounce < 0:
            raise ConfigError(f"debounce must not be negative, got {self.debounce}")
        if self.command_timeout <= 0:
            raise ConfigError(f"command timeout must be positive, got {self.command_timeout}")
        if self.retry_attempts < 1:
            raise ConfigError(f"retry attempts must be at least 1, got {self.retry_attempts}")


def _parse_tmux_value(name: str, raw: str) -> int | float | str:
    try:
        if name == "count":
            return int(raw)
        if name == "frequency":
            return float(raw)
    except ValueError as e:
        raise ConfigError(f"not a number: {raw!r}") from e
    return raw


async def read_tmux_options(source: TmuxBufferSource) -> dict[str, int | float | str]:
    """Read sync options from tmux global options.

    A tmux server that cannot be reached contributes nothing; the defaults
    apply instead. An option set to an unusable value is logged and ignored.

    Args:
        source: tmux buffer source used to query options.

    Returns:
        Mapping of SyncConfig field names to values for the options that are set.
    """
    values: dict[str, int | float | str] = {}
    for name, option in TMUX_OPTIONS.items():
        try:
            raw = await source.show_option(option)
        except LocalBufferUnavailable as e:
            logger.debug("tmux options unavailable: %s", e)
            return values
        if raw is None:
            continue
        try:
            value = _parse_tmux_value(name, raw)
            SyncConfig(**{name: value})
        except ConfigError as e:
            logger.warning("Ignoring tmux option %s: %s", option, e)
            continue
        values[name] = value
    return values


def build_config(
    overrides: dict[str, object],
    tmux_values: dict[str, int | float | str] | None = None,
) -> SyncConfig:
    """Merge explicit values over tmux option values over defaults.

    Args:
        overrides: Values from the command line or environment. None values
            are treated as unset.
        tmux_values: Values read from tmux global options.

    Returns:
        A validated SyncConfig.

    Raises:
        ConfigError: If the merged configuration is invalid.
    """
    merged: dict[str, object] = dict(tmux_values or {})
    merged.update({k: v for k, v in overrides.items() if v is not None})
    if "state_dir" in merged:
        merged["state_dir"] = Path(str(merged["state_dir"]))
    if "socket_path" in merged:
        merged["socket_path"] = Path(str(merged["socket_path"]))
    return SyncConfig(**merged)
