"""
Integrity verification for snapshot records.

Provides tamper detection for single records and whole stores.
"""

from typing import Callable, Iterable, List, Tuple

from ..errors import IntegrityError, SnapshotNotFoundError
from ..model.snapshot import Snapshot
from .hashing import compute_hash


def verify_snapshot_integrity(snapshot: Snapshot) -> None:
    """
    Verify that a snapshot's stored hash matches its file set.

    Raises IntegrityError if mismatch detected.
    """
    actual = snapshot.compute_hash()
    if actual != snapshot.hash:
        raise IntegrityError(snapshot.id, snapshot.hash, actual)


def find_corrupted_files(snapshot: Snapshot) -> List[str]:
    """
    List captured files whose per-file hash no longer matches their content.

    Narrows an integrity failure down to individual files.
    """
    corrupted = []
    for name, entry in sorted(snapshot.files.items()):
        content = entry.get('content')
        if not isinstance(content, str) or compute_hash(content) != entry.get('hash'):
            corrupted.append(name)
    return corrupted


def scan_for_tampering(
    snapshot_ids: Iterable[str],
    load_func: Callable[[str], Snapshot],
) -> Tuple[int, List[str], List[str]]:
    """
    Verify every listed snapshot.

    load_func: loads a Snapshot by identifier

    Returns (verified_count, tampered_ids, errors).
    """
    verified = 0
    tampered = []
    errors = []

    for snapshot_id in snapshot_ids:
        try:
            snapshot = load_func(snapshot_id)
            verify_snapshot_integrity(snapshot)
            verified += 1
        except IntegrityError:
            tampered.append(snapshot_id)
            detail = find_corrupted_files(snapshot)
            suffix = f" (files: {', '.join(detail)})" if detail else ""
            errors.append(f"{snapshot_id}: hash mismatch{suffix}")
        except SnapshotNotFoundError as e:
            errors.append(f"{snapshot_id}: {e}")
        except Exception as e:
            tampered.append(snapshot_id)
            errors.append(f"{snapshot_id}: unreadable record: {e}")

    return verified, tampered, errors
