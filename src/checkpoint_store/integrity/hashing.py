"""
SHA-256 hashing for file contents and captured file sets.
"""

import hashlib
from typing import Any

from .canonical import canonical_json


def compute_hash(data: bytes | str) -> str:
    """
    Compute hash of raw bytes or text.

    Text is encoded as UTF-8 first.
    Returns hex-encoded SHA-256 digest.
    """
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).hexdigest()


def compute_object_hash(obj: Any) -> str:
    """
    Compute hash of a structured object using canonical JSON encoding.

    Same structure always produces same hash, independent of dict ordering.
    """
    return compute_hash(canonical_json(obj))


def compute_files_hash(files: dict) -> str:
    """
    Compute the integrity hash of a captured file set.

    Only the file mapping is hashed; the record's own hash field is
    never part of the input.
    """
    return compute_object_hash(files)


def verify_hash(data: bytes | str, expected_hash: str) -> bool:
    """Return True if data hashes to expected_hash."""
    return compute_hash(data) == expected_hash
