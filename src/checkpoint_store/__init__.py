"""
Checkpoint Store - snapshot and restore tracked project files.

This package provides:
- Hashed snapshots of an allow-list of project files
- Integrity-checked restore with an automatic pre-restore backup
- File-level comparison of snapshots
- A result tracker for prompt/result sessions

Main entry point:
    CheckpointStore - primary interface for all snapshot operations

Example usage:
    from checkpoint_store import CheckpointStore

    store = CheckpointStore('/path/to/project')
    store.initialize()

    snapshot = store.create('Before refactor', {'author': 'me'})
    result = store.restore(snapshot.id)
"""

from .config import StoreConfig
from .engine import CheckpointStore
from .errors import (
    CheckpointError,
    SnapshotNotFoundError,
    IntegrityError,
    CaptureError,
    PersistenceError,
    ConfigurationError,
    InvariantViolationError,
)
from .model.results import ChangeSet, RestoreResult, RestoreStatus, SnapshotDiff
from .model.snapshot import Snapshot, SnapshotSummary
from .tracking.result_tracker import ResultTracker

__version__ = '0.1.0'

__all__ = [
    # Main entry points
    'CheckpointStore',
    'ResultTracker',
    'StoreConfig',

    # Errors
    'CheckpointError',
    'SnapshotNotFoundError',
    'IntegrityError',
    'CaptureError',
    'PersistenceError',
    'ConfigurationError',
    'InvariantViolationError',

    # Models
    'Snapshot',
    'SnapshotSummary',
    'SnapshotDiff',
    'ChangeSet',
    'RestoreResult',
    'RestoreStatus',
]
