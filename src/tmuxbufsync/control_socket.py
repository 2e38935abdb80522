#!/usr/bin/env python3
"""Ownership of the daemon's control socket path.

One daemon serves each socket path. Before listening, the daemon claims
the path: a socket left behind by a crashed daemon refuses connections
and is removed, while a socket that still accepts connections belongs to
a live daemon and the new one must not start. Anything at the path that
is not a socket is left alone.
"""

from __future__ import annotations

import logging
import socket
import stat
from contextlib import suppress
from pathlib import Path

from tmuxbufsync.errors import ControlSocketError, DaemonAlreadyRunning

logger = logging.getLogger(__name__)


def claim_socket(socket_path: Path) -> None:
    """Prepare socket_path for a new daemon to listen on.

    Creates the parent directory and removes a stale socket.

    Args:
        socket_path: Path of the control socket.

    Raises:
        DaemonAlreadyRunning: If a daemon accepts connections on the path.
        ControlSocketError: If the path is not a socket or cannot be checked.
    """
    try:
        socket_path.parent.mkdir(parents=True, exist_ok=True)
        mode = socket_path.stat().st_mode
    except FileNotFoundError:
        return
    except OSError as e:
        raise ControlSocketError(f"Cannot access socket {socket_path}: {e}") from e
    if not stat.S_ISSOCK(mode):
        raise ControlSocketError(f"{socket_path} exists and is not a socket")

    with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as client:
        try:
            client.connect(str(socket_path))
        except ConnectionRefusedError:
            logger.info("Removing stale control socket %s", socket_path)
            socket_path.unlink()
            return
        except OSError as e:
            raise ControlSocketError(f"Cannot access socket {socket_path}: {e}") from e
    raise DaemonAlreadyRunning(f"A daemon is already listening on {socket_path}")


def release_socket(socket_path: Path) -> None:
    """Remove the control socket on shutdown."""
    with suppress(FileNotFoundError):
        socket_path.unlink()
