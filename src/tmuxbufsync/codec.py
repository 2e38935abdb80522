#!/usr/bin/env python3
"""
Remote value and key encoding for buffer entries.

Values are compact JSON objects. Decoding is forward compatible: fields
added by newer versions are ignored, so servers running slightly different
releases can share a namespace. Decoding recomputes the entry id from its
fields and rejects values whose stored id disagrees.

Keys embed the capture time and sequence ahead of the id:

    "<captured_at_ms:013d>.<sequence:010d>.<id>"

so listing a namespace yields everything needed to order and evict entries
without fetching their values, and pushing the same entry twice always
writes the same key.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass

from tmuxbufsync.entry import BufferEntry
from tmuxbufsync.errors import CorruptEntry

# Maximum size of buffer content in bytes (64 KB).
# Values are passed to atuin as a single command-line argument, which the
# kernel caps at 128 KB; this leaves room for JSON escaping.
# Larger buffers are never pushed and are rejected when decoded.
MAX_CONTENT_SIZE: int = 65536

# Format version written into every value.
FORMAT_VERSION: int = 1

_REQUIRED_FIELDS: dict[str, tuple[type, ...]] = {
    "id": (str,),
    "origin": (str,),
    "sequence": (int,),
    "captured_at": (int, float),
    "content": (str,),
}


@dataclass(frozen=True)
class RemoteKey:
    """A parsed remote key.

    Attributes:
        key: The raw key as stored remotely.
        entry_id: Id of the entry stored under the key.
        captured_at: Capture time in seconds since the epoch (ms precision).
        sequence: Per-origin sequence number of the entry.
    """

    key: str
    entry_id: str
    captured_at: float
    sequence: int

    def eviction_order(self) -> tuple[float, int, str]:
        """Sort key placing the next entry to evict first."""
        return (self.captured_at, self.sequence, self.entry_id)


def validate_content_size(content: str) -> bool:
    """
    Check if content size is within the allowed limit.

    Args:
        content: Buffer text to validate.

    Returns:
        True if the UTF-8 size is <= MAX_CONTENT_SIZE, False otherwise.
    """
    return len(content.encode("utf-8", errors="replace")) <= MAX_CONTENT_SIZE


def encode(entry: BufferEntry) -> str:
    """
    Encode an entry as a remote value.

    Args:
        entry: The entry to encode.

    Returns:
        Compact JSON text.
    """
    return json.dumps(
        {
            "v": FORMAT_VERSION,
            "id": entry.id,
            "origin": entry.origin,
            "sequence": entry.sequence,
            "captured_at": entry.captured_at,
            "content": entry.content,
        },
        separators=(",", ":"),
        ensure_ascii=False,
    )


def decode(value: str | bytes) -> BufferEntry:
    """
    Decode a remote value into an entry.

    Args:
        value: JSON text as returned by the remote store.

    Returns:
        The decoded entry.

    Raises:
        CorruptEntry: On invalid JSON, missing or ill-typed fields,
            oversized content, or an id that does not match the fields.
    """
    try:
        data = json.loads(value)
    except (ValueError, UnicodeDecodeError) as e:
        raise CorruptEntry(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise CorruptEntry(f"Expected object, got {type(data).__name__}")

    for name, types in _REQUIRED_FIELDS.items():
        if name not in data:
            raise CorruptEntry(f"Missing field: {name}")
        # bool is an int subclass but never a valid sequence or timestamp
        if isinstance(data[name], bool) or not isinstance(data[name], types):
            raise CorruptEntry(f"Invalid type for field {name}: {type(data[name]).__name__}")

    if data["sequence"] < 0:
        raise CorruptEntry(f"Negative sequence: {data['sequence']}")
    if not math.isfinite(data["captured_at"]):
        raise CorruptEntry("Non-finite captured_at")
    if not data["origin"]:
        raise CorruptEntry("Empty origin")
    if not validate_content_size(data["content"]):
        raise CorruptEntry(f"Content exceeds {MAX_CONTENT_SIZE} bytes")

    entry = BufferEntry(
        origin=data["origin"],
        sequence=data["sequence"],
        content=data["content"],
        captured_at=float(data["captured_at"]),
    )
    if entry.id != data["id"]:
        raise CorruptEntry(f"Id mismatch: stored {data['id']}, computed {entry.id}")
    return entry


def entry_key(entry: BufferEntry) -> str:
    """Return the remote key an entry is stored under."""
    captured_ms = int(round(entry.captured_at * 1000))
    return f"{captured_ms:013d}.{entry.sequence:010d}.{entry.id}"


def parse_key(key: str) -> RemoteKey:
    """
    Parse a remote key.

    Args:
        key: Raw key as listed by the remote store.

    Returns:
        The parsed key.

    Raises:
        CorruptEntry: If the key does not follow the key layout.
    """
    parts = key.split(".")
    if len(parts) != 3 or not all(parts):
        raise CorruptEntry(f"Malformed key: {key!r}")
    captured_ms, sequence, entry_id = parts
    if not captured_ms.isdigit() or not sequence.isdigit():
        raise CorruptEntry(f"Malformed key: {key!r}")
    return RemoteKey(
        key=key,
        entry_id=entry_id,
        captured_at=int(captured_ms) / 1000,
        sequence=int(sequence),
    )
