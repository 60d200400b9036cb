#!/usr/bin/env python3
"""
SHA-256 hashing for clipboard images.

Images are compared by digest rather than by bytes, both when suppressing
echoes and when checking whether the local clipboard already holds an
incoming image.

This module provides:
- compute_hash(): SHA-256 hex digest of content bytes
- EMPTY_HASH: digest of empty input, the "no image" sentinel
"""
import hashlib

__all__ = ["compute_hash", "EMPTY_HASH"]


def compute_hash(data: bytes) -> str:
    """
    Compute SHA-256 hash of clipboard content.

    Args:
        data: Raw clipboard content bytes to hash.

    Returns:
        Hexadecimal string representation of the SHA-256 digest.
    """
    return hashlib.sha256(data).hexdigest()


EMPTY_HASH: str = compute_hash(b"")
