#!/usr/bin/env python3
"""Daemon control connection handler.

Each connection to the control socket carries one request. The handler
maps it onto the scheduler or the status reporter and writes one JSON
reply before closing the connection.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from tmuxbufsync.protocol import (
    REQUEST_BUFFER_CHANGED,
    REQUEST_SYNC_NOW,
    REQUEST_SYNC_STATUS,
    ProtocolError,
    encode_reply,
    read_netstring,
)
from tmuxbufsync.scheduler import SchedulerStopped
from tmuxbufsync.status import report

if TYPE_CHECKING:
    from tmuxbufsync.scheduler import Scheduler

logger = logging.getLogger(__name__)

# Seconds allowed for a client to send its request.
REQUEST_READ_TIMEOUT: float = 5.0


async def dispatch_request(scheduler: Scheduler, request: str) -> dict:
    """Execute one control request and return its reply.

    Args:
        scheduler: The running scheduler.
        request: Request name.

    Returns:
        Reply object with at least an "ok" field.
    """
    if request == REQUEST_SYNC_NOW:
        try:
            result = await scheduler.request_sync()
        except SchedulerStopped as e:
            return {"ok": False, "error": str(e)}
        return {
            "ok": result.ok,
            "error": result.error,
            "pulled": result.pulled,
            "pushed": result.pushed,
            "evicted": result.evicted,
            "skipped": result.skipped,
        }
    if request == REQUEST_SYNC_STATUS:
        status = report(scheduler.config, scheduler.engine.state_for(scheduler.config.namespace))
        return {"ok": True, "status": status.to_dict()}
    if request == REQUEST_BUFFER_CHANGED:
        scheduler.on_buffer_change()
        return {"ok": True}
    return {"ok": False, "error": f"unknown request: {request!r}"}


async def handle_control_client(
    scheduler: Scheduler,
    reader: asyncio.StreamReader,
    writer: asyncio.StreamWriter,
) -> None:
    """Serve one control connection.

    Args:
        scheduler: The running scheduler.
        reader: The asyncio StreamReader for the connection.
        writer: The asyncio StreamWriter for the connection.
    """
    try:
        content = await asyncio.wait_for(read_netstring(reader), timeout=REQUEST_READ_TIMEOUT)
        request = content.decode("utf-8", errors="replace")
        logger.debug("Control request: %s", request)
        reply = await dispatch_request(scheduler, request)
        writer.write(encode_reply(reply))
        await writer.drain()
    except (ProtocolError, asyncio.TimeoutError) as e:
        logger.warning("Bad control request: %s", e)
    except ConnectionError as e:
        logger.debug("Control client went away: %s", e)
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except ConnectionError:
            pass
