#!/usr/bin/env python3
"""Local buffer source backed by tmux paste buffers.

tmux keeps named paste buffers in a stack, most recent first. This module
lists, reads and writes them through the tmux CLI so the sync engine never
talks to tmux directly. Every failure surfaces as LocalBufferUnavailable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from tmuxbufsync.commands import run_command
from tmuxbufsync.errors import LocalBufferUnavailable
from tmuxbufsync.retry_constants import COMMAND_TIMEOUT

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocalBuffer:
    """A named local paste buffer."""

    name: str
    content: str


class BufferSource(Protocol):
    """Capability the sync engine needs from the local multiplexer."""

    async def list_recent(self, count: int | None = None) -> list[LocalBuffer]: ...

    async def load(self, name: str, content: str) -> None: ...

    async def delete(self, name: str) -> None: ...

    async def show_latest(self) -> str: ...


class TmuxBufferSource:
    """BufferSource implementation that shells out to tmux.

    Args:
        tmux: Path or name of the tmux binary.
        timeout: Seconds allowed per tmux command.
    """

    def __init__(self, tmux: str = "tmux", timeout: float = COMMAND_TIMEOUT) -> None:
        self.tmux = tmux
        self.timeout = timeout

    async def _tmux(self, *args: str, input_data: bytes | None = None) -> bytes:
        return await run_command(
            [self.tmux, *args],
            timeout=self.timeout,
            error_class=LocalBufferUnavailable,
            input_data=input_data,
        )

    async def list_names(self) -> list[str]:
        """Return buffer names, most recent first."""
        output = await self._tmux("list-buffers", "-F", "#{buffer_name}")
        return [name for name in output.decode("utf-8", errors="replace").splitlines() if name]

    async def list_recent(self, count: int | None = None) -> list[LocalBuffer]:
        """Return up to count most recent buffers with their content.

        Args:
            count: Maximum number of buffers, or None for all of them.

        Returns:
            Buffers ordered most recent first.

        Raises:
            LocalBufferUnavailable: If any tmux call fails.
        """
        names = await self.list_names()
        if count is not None:
            names = names[:count]
        buffers = []
        for name in names:
            content = await self._tmux("show-buffer", "-b", name)
            buffers.append(LocalBuffer(name, content.decode("utf-8", errors="replace")))
        return buffers

    async def load(self, name: str, content: str) -> None:
        """Create or overwrite the named buffer.

        Raises:
            LocalBufferUnavailable: If tmux rejects the buffer.
        """
        await self._tmux("load-buffer", "-b", name, "-", input_data=content.encode("utf-8"))
        logger.debug("Loaded %d chars into tmux buffer %s", len(content), name)

    async def delete(self, name: str) -> None:
        """Delete the named buffer.

        Raises:
            LocalBufferUnavailable: If tmux rejects the deletion.
        """
        await self._tmux("delete-buffer", "-b", name)

    async def show_latest(self) -> str:
        """Return the content of the most recent buffer, or "" if there is none."""
        names = await self.list_names()
        if not names:
            return ""
        content = await self._tmux("show-buffer", "-b", names[0])
        return content.decode("utf-8", errors="replace")

    async def show_option(self, option: str) -> str | None:
        """Return a global tmux option value, or None when unset."""
        output = await self._tmux("show-option", "-gqv", option)
        value = output.decode("utf-8", errors="replace").strip()
        return value or None
