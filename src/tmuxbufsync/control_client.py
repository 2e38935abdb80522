#!/usr/bin/env python3
"""Client side of the daemon control socket.

The CLI commands try the daemon first. When no daemon listens on the
socket, send_request raises DaemonUnavailable and the caller falls back to
working in-process.
"""

from __future__ import annotations

import asyncio
import logging

from tmuxbufsync.protocol import decode_reply, encode_netstring, read_netstring

logger = logging.getLogger(__name__)


class DaemonUnavailable(Exception):
    """No daemon accepts connections on the control socket."""


async def connect_to_daemon(
    socket_path: str,
) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Connect to the daemon via its Unix domain socket.

    Args:
        socket_path: Path to the control socket.

    Returns:
        Tuple of (StreamReader, StreamWriter) for the connection.

    Raises:
        DaemonUnavailable: If the socket is missing or refuses connections.
    """
    try:
        return await asyncio.open_unix_connection(socket_path)
    except OSError as e:
        raise DaemonUnavailable(f"No daemon at {socket_path}: {e}") from e


async def send_request(socket_path: str, request: str) -> dict:
    """Send one request to the daemon and return its reply.

    Args:
        socket_path: Path to the control socket.
        request: Request name.

    Returns:
        The decoded reply object.

    Raises:
        DaemonUnavailable: If no daemon is listening.
        ProtocolError: If the reply is malformed or the connection drops.
    """
    reader, writer = await connect_to_daemon(socket_path)
    try:
        writer.write(encode_netstring(request.encode("utf-8")))
        await writer.drain()
        reply = decode_reply(await read_netstring(reader))
        logger.debug("Daemon replied to %s: %s", request, reply)
        return reply
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except ConnectionError:
            pass
