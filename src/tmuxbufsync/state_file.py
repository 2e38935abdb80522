#!/usr/bin/env python3
"""Persistence of SyncState as a per-namespace JSON status file.

The file lets the local sequence counter survive restarts and lets
`sync-status` report the last recorded state when no daemon is running.
Writes go to a temporary file in the same directory and are moved into
place with os.replace so a reader never sees a partial file.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import asdict
from pathlib import Path

from tmuxbufsync.sync_state import LocalEntryRecord, SyncState

logger = logging.getLogger(__name__)

STATE_FILE_VERSION: int = 1


def state_to_dict(state: SyncState) -> dict:
    """Convert state to a JSON-serializable dict."""
    data = asdict(state)
    data["known_remote_ids"] = sorted(state.known_remote_ids)
    data["version"] = STATE_FILE_VERSION
    return data


def state_from_dict(data: dict) -> SyncState:
    """Build state from a dict produced by state_to_dict.

    Raises:
        KeyError, TypeError, ValueError: If the data is malformed.
    """
    return SyncState(
        last_push_at=data.get("last_push_at"),
        last_pull_at=data.get("last_pull_at"),
        last_error=data.get("last_error"),
        last_error_at=data.get("last_error_at"),
        known_remote_ids=set(data.get("known_remote_ids", [])),
        local_sequence_counter=int(data.get("local_sequence_counter", 0)),
        local_entries={
            key: LocalEntryRecord(int(rec["sequence"]), float(rec["captured_at"]))
            for key, rec in data.get("local_entries", {}).items()
        },
        local_buffer_count=int(data.get("local_buffer_count", 0)),
    )


class StateFile:
    """Loads and saves SyncState files under a state directory.

    Args:
        state_dir: Directory holding one <namespace>.json per namespace.
    """

    def __init__(self, state_dir: Path) -> None:
        self.state_dir = Path(state_dir)

    def path_for(self, namespace: str) -> Path:
        return self.state_dir / f"{namespace}.json"

    def load(self, namespace: str) -> SyncState:
        """Load the state for namespace.

        A missing file yields a fresh state. An unreadable or malformed file
        is logged and also yields a fresh state.
        """
        path = self.path_for(namespace)
        try:
            with open(path, encoding="utf-8") as f:
                return state_from_dict(json.load(f))
        except FileNotFoundError:
            return SyncState()
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Ignoring unreadable state file %s: %s", path, e)
            return SyncState()

    def save(self, namespace: str, state: SyncState) -> None:
        """Atomically write the state for namespace.

        Raises:
            OSError: If the state directory cannot be written.
        """
        self.state_dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(namespace)
        fd, tmp_path = tempfile.mkstemp(dir=self.state_dir, prefix=f".{namespace}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(state_to_dict(state), f, indent=2)
            os.replace(tmp_path, path)
        except BaseException:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
