#!/usr/bin/env python3
"""Remote store adapter backed by the atuin key-value store.

atuin's kv subcommands give every server sharing an atuin account a
namespaced key-value store, synchronized through the atuin server. This
adapter exposes put/get/list/delete over that store. Each command is
bounded by a timeout and retried with exponential backoff via tenacity;
once attempts are exhausted the TransportError reaches the sync engine.
"""

from __future__ import annotations

import logging
from typing import Protocol

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from tmuxbufsync.codec import RemoteKey, parse_key
from tmuxbufsync.commands import run_command
from tmuxbufsync.errors import CorruptEntry, RetentionConflict, TransportError
from tmuxbufsync.retry_constants import (
    COMMAND_TIMEOUT,
    INITIAL_WAIT,
    MAX_WAIT,
    RETRY_ATTEMPTS,
    WAIT_MULTIPLIER,
)

logger = logging.getLogger(__name__)


class RemoteStore(Protocol):
    """Capability the sync engine needs from the shared key-value store."""

    async def put(self, namespace: str, key: str, value: str) -> None: ...

    async def get(self, namespace: str, key: str) -> str: ...

    async def list(self, namespace: str) -> list[RemoteKey]: ...

    async def delete(self, namespace: str, key: str) -> None: ...


class AtuinKvStore:
    """RemoteStore implementation that shells out to `atuin kv`.

    Args:
        atuin: Path or name of the atuin binary.
        timeout: Seconds allowed per atuin command.
        attempts: Attempts per call before a TransportError surfaces.
        sync: Run `atuin sync` before listing so other servers' writes
            are visible and local writes are uploaded.
    """

    def __init__(
        self,
        atuin: str = "atuin",
        timeout: float = COMMAND_TIMEOUT,
        attempts: int = RETRY_ATTEMPTS,
        sync: bool = True,
    ) -> None:
        self.atuin = atuin
        self.timeout = timeout
        self.attempts = attempts
        self.sync = sync

    async def _atuin(self, *args: str) -> str:
        """Run an atuin command with retry, returning decoded stdout."""
        retrying = AsyncRetrying(
            wait=wait_exponential(multiplier=WAIT_MULTIPLIER, min=INITIAL_WAIT, max=MAX_WAIT),
            retry=retry_if_exception_type(TransportError),
            stop=stop_after_attempt(self.attempts),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                output = await run_command(
                    [self.atuin, *args],
                    timeout=self.timeout,
                    error_class=TransportError,
                )
        return output.decode("utf-8", errors="replace")

    async def put(self, namespace: str, key: str, value: str) -> None:
        """Store value under key.

        Raises:
            TransportError: If atuin fails after all attempts.
        """
        await self._atuin("kv", "set", "--namespace", namespace, "--key", key, value)

    async def get(self, namespace: str, key: str) -> str:
        """Fetch the value stored under key.

        Raises:
            RetentionConflict: If the key no longer exists.
            TransportError: If atuin fails after all attempts.
        """
        output = await self._atuin("kv", "get", "--namespace", namespace, key)
        # atuin kv get prints the value followed by a newline
        value = output[:-1] if output.endswith("\n") else output
        if not value:
            raise RetentionConflict(f"Key {key} not found in namespace {namespace}")
        return value

    async def list(self, namespace: str) -> list[RemoteKey]:
        """List parsed keys in namespace, skipping keys that do not parse.

        Raises:
            TransportError: If atuin fails after all attempts.
        """
        if self.sync:
            await self._atuin("sync")
        output = await self._atuin("kv", "list", "--namespace", namespace)
        keys = []
        for line in output.splitlines():
            raw = line.strip()
            if not raw:
                continue
            try:
                keys.append(parse_key(raw))
            except CorruptEntry as e:
                logger.warning("Ignoring foreign key in namespace %s: %s", namespace, e)
        return keys

    async def delete(self, namespace: str, key: str) -> None:
        """Delete key from namespace.

        Raises:
            RetentionConflict: If the key was already removed.
            TransportError: If atuin fails after all attempts.
        """
        try:
            await self._atuin("kv", "delete", "--namespace", namespace, key)
        except TransportError as e:
            if "not found" in str(e).lower():
                raise RetentionConflict(f"Key {key} already removed from {namespace}") from e
            raise
