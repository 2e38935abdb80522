#!/usr/bin/env python3
"""
Netstring framing for the daemon control socket.

Each control connection carries exactly one request and one reply, both
framed as netstrings. Format: <length>:<content>, where length is ASCII
decimal digits, followed by a colon, the raw content bytes, and a trailing
comma.

Example: "8:sync-now," encodes the request "sync-now".

Requests are bare command names (the REQUEST_* constants). Replies are
JSON objects.
"""

from __future__ import annotations

import asyncio
import json

# Maximum size of a control message in bytes (1 MB).
# Status replies are small; anything larger is a protocol violation.
MAX_MESSAGE_SIZE: int = 1048576

# Maximum digits in the length field.
MAX_LENGTH_DIGITS: int = 7

REQUEST_SYNC_NOW: str = "sync-now"
REQUEST_SYNC_STATUS: str = "sync-status"
REQUEST_BUFFER_CHANGED: str = "buffer-changed"


class ProtocolError(Exception):
    """
    Exception raised for control protocol errors.

    Raised when netstring parsing fails due to invalid format, size
    violations, or connection issues during message reading.
    """


def encode_netstring(data: bytes) -> bytes:
    """
    Encode raw bytes as a netstring.

    Args:
        data: Message bytes to encode.

    Returns:
        Netstring-encoded bytes in format "<length>:<content>,".
    """
    return f"{len(data)}:".encode("ascii") + data + b","


async def read_netstring(reader: asyncio.StreamReader) -> bytes:
    """
    Read and decode a netstring from an async stream.

    Args:
        reader: asyncio StreamReader to read from.

    Returns:
        Decoded content bytes.

    Raises:
        ProtocolError: On invalid format, size violation, or connection closed.
    """
    length_bytes = b""
    while len(length_bytes) < MAX_LENGTH_DIGITS + 1:
        byte = await reader.read(1)
        if not byte:
            raise ProtocolError("Connection closed while reading length field")
        if byte == b":":
            break
        if not byte.isdigit():
            raise ProtocolError(f"Invalid character in length field: {byte!r}")
        length_bytes += byte
    else:
        raise ProtocolError("Length field exceeds maximum digits")
    if not length_bytes:
        raise ProtocolError("Empty length field")
    length = int(length_bytes.decode("ascii"))
    if length > MAX_MESSAGE_SIZE:
        raise ProtocolError(f"Message size {length} exceeds limit {MAX_MESSAGE_SIZE}")
    try:
        content = await reader.readexactly(length)
    except asyncio.IncompleteReadError as e:
        raise ProtocolError(f"Connection closed after {e.partial!r} bytes") from e
    comma = await reader.read(1)
    if comma != b",":
        raise ProtocolError(f"Expected comma terminator, got {comma!r}")
    return content


def encode_reply(reply: dict) -> bytes:
    """Encode a JSON reply as a netstring."""
    return encode_netstring(json.dumps(reply).encode("utf-8"))


def decode_reply(content: bytes) -> dict:
    """
    Decode a JSON reply.

    Args:
        content: Netstring payload received from the daemon.

    Returns:
        The reply object.

    Raises:
        ProtocolError: If the payload is not a JSON object.
    """
    try:
        reply = json.loads(content)
    except ValueError as e:
        raise ProtocolError(f"Invalid reply: {e}") from e
    if not isinstance(reply, dict):
        raise ProtocolError(f"Invalid reply type: {type(reply).__name__}")
    return reply
