"""
Result objects returned by store operations.
"""

from enum import Enum
from typing import Dict, List, Optional


class RestoreStatus(str, Enum):
    COMPLETE = 'complete'
    PARTIAL = 'partial'
    FAILED = 'failed'


class RestoreResult:
    """
    Outcome of restoring a snapshot.

    Distinguishes a full restore, a restore where some files could not
    be written, and one where nothing could be written at all.
    """

    def __init__(
        self,
        snapshot_id: str,
        backup_id: Optional[str] = None,
        restored: Optional[List[str]] = None,
        failed: Optional[Dict[str, str]] = None,
    ):
        self.snapshot_id = snapshot_id
        self.backup_id = backup_id
        self.restored = list(restored or [])
        self.failed = dict(failed or {})

    @property
    def status(self) -> RestoreStatus:
        if not self.failed:
            return RestoreStatus.COMPLETE
        if self.restored:
            return RestoreStatus.PARTIAL
        return RestoreStatus.FAILED

    @property
    def ok(self) -> bool:
        return self.status is not RestoreStatus.FAILED

    def to_dict(self) -> dict:
        return {
            'snapshot_id': self.snapshot_id,
            'backup_id': self.backup_id,
            'status': self.status.value,
            'restored': self.restored,
            'failed': self.failed,
        }

    def __repr__(self) -> str:
        return (
            f"RestoreResult(snapshot_id={self.snapshot_id}, "
            f"status={self.status.value}, restored={len(self.restored)}, "
            f"failed={len(self.failed)})"
        )


class ChangeSet:
    """Added, removed and modified keys between two mappings."""

    def __init__(
        self,
        added: Optional[List[str]] = None,
        removed: Optional[List[str]] = None,
        modified: Optional[List[str]] = None,
    ):
        self.added = sorted(added or [])
        self.removed = sorted(removed or [])
        self.modified = sorted(modified or [])

    @classmethod
    def between(cls, old: dict, new: dict, key=None) -> 'ChangeSet':
        """
        Compare two mappings by key set, then by value.

        ``key`` extracts the compared value from each entry; entries are
        compared whole when it is omitted.
        """
        key = key or (lambda value: value)
        added = [name for name in new if name not in old]
        removed = [name for name in old if name not in new]
        modified = [
            name for name in old
            if name in new and key(old[name]) != key(new[name])
        ]
        return cls(added, removed, modified)

    def is_empty(self) -> bool:
        return not (self.added or self.removed or self.modified)

    def to_dict(self) -> dict:
        return {
            'added': self.added,
            'removed': self.removed,
            'modified': self.modified,
        }


class SnapshotDiff:
    """File-granular difference between two snapshots."""

    def __init__(self, source_id: str, target_id: str, files: ChangeSet, dependencies: ChangeSet):
        self.source_id = source_id
        self.target_id = target_id
        self.files = files
        self.dependencies = dependencies

    def is_empty(self) -> bool:
        return self.files.is_empty() and self.dependencies.is_empty()

    def to_dict(self) -> dict:
        return {
            'source_id': self.source_id,
            'target_id': self.target_id,
            'files': self.files.to_dict(),
            'dependencies': self.dependencies.to_dict(),
        }
