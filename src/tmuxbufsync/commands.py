#!/usr/bin/env python3
"""Subprocess execution for the tmux and atuin command-line tools.

Both collaborators are driven through their CLIs. run_command runs one
command with a timeout and maps every failure mode (missing binary,
timeout, non-zero exit) onto the error class the caller asks for.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress

from tmuxbufsync.errors import BufferSyncError

logger = logging.getLogger(__name__)


async def run_command(
    args: list[str],
    *,
    timeout: float,
    error_class: type[BufferSyncError],
    input_data: bytes | None = None,
) -> bytes:
    """Run a command and return its standard output.

    Args:
        args: Program and arguments.
        timeout: Seconds to wait before killing the command.
        error_class: Exception raised on any failure.
        input_data: Bytes written to the command's standard input, if any.

    Returns:
        Raw standard output bytes.

    Raises:
        error_class: If the command cannot start, times out, or exits non-zero.
    """
    logger.debug("Running %s", " ".join(args[:4]))
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdin=asyncio.subprocess.PIPE if input_data is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise error_class(f"Cannot run {args[0]}: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(input_data), timeout=timeout)
    except asyncio.TimeoutError as e:
        with suppress(ProcessLookupError):
            proc.kill()
        await proc.wait()
        raise error_class(f"{' '.join(args[:2])} timed out after {timeout}s") from e

    if proc.returncode != 0:
        message = stderr.decode("utf-8", errors="replace").strip() or f"exit status {proc.returncode}"
        raise error_class(f"{' '.join(args[:3])} failed: {message}")
    return stdout
