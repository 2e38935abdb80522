#!/usr/bin/env python3
"""
SHA-256 hashing for buffer identity and loop prevention.

Every synchronized buffer carries an id derived only from its origin server,
the hash of its content and the per-origin sequence number. Two servers that
observe the same (origin, content, sequence) compute the same id without
talking to each other, which makes pushes idempotent and lets a pull skip
entries that are already present locally.

This module provides:
- compute_hash(): SHA-256 hex digest of buffer content
- compute_entry_id(): stable entry id from (origin, content_hash, sequence)
"""
import hashlib

__all__ = ["compute_hash", "compute_entry_id", "ENTRY_ID_LENGTH"]

# Number of hex characters kept from the id digest (128 bits).
ENTRY_ID_LENGTH: int = 32


def compute_hash(data: str | bytes) -> str:
    """
    Compute SHA-256 hash of buffer content.

    Args:
        data: Buffer content. Text is hashed as UTF-8.

    Returns:
        Hexadecimal string representation of the SHA-256 digest.
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def compute_entry_id(origin: str, content_hash: str, sequence: int) -> str:
    """
    Compute the stable id of a buffer entry.

    Args:
        origin: Identifier of the server that created the entry.
        content_hash: SHA-256 hex digest of the entry content.
        sequence: Per-origin sequence number of the entry.

    Returns:
        Truncated hexadecimal SHA-256 digest identifying the entry.
    """
    material = f"{origin}\0{content_hash}\0{sequence}".encode("utf-8")
    return hashlib.sha256(material).hexdigest()[:ENTRY_ID_LENGTH]
