"""
Canonical encoding for deterministic hashing.

Ensures same input always produces same hash.
"""

import json
from typing import Any


def canonical_json(obj: Any) -> bytes:
    """
    Encode an object to canonical JSON bytes.

    Rules:
    - Keys sorted alphabetically
    - No whitespace
    - UTF-8 encoding
    - NaN and infinity rejected

    Same input always produces same output.
    """
    return canonical_json_str(obj).encode('utf-8')


def canonical_json_str(obj: Any) -> str:
    """Encode an object to canonical JSON string."""
    return json.dumps(
        obj,
        sort_keys=True,
        separators=(',', ':'),
        ensure_ascii=False,
        allow_nan=False,
    )


def pretty_json(obj: Any) -> str:
    """
    Encode an object for on-disk records.

    Sorted keys and two-space indent, so a record written twice is
    byte-identical and diffs cleanly.
    """
    return json.dumps(obj, indent=2, sort_keys=True, ensure_ascii=False)
