"""
Checkpoint Store.

Main entry point coordinating capture, storage and integrity checks.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from .capture.project_state import ProjectStateCapture
from .config import StoreConfig
from .errors import (
    CheckpointError,
    IntegrityError,
    PersistenceError,
    SnapshotNotFoundError,
)
from .integrity.canonical import canonical_json
from .integrity.verification import scan_for_tampering, verify_snapshot_integrity
from .invariants import create_store_invariants
from .model.results import ChangeSet, RestoreResult, SnapshotDiff
from .model.snapshot import Snapshot, SnapshotSummary
from .report import render_report
from .storage.layout import StorageLayout
from .storage.record_store import RecordStore

logger = logging.getLogger(__name__)


class CheckpointStore:
    """
    Snapshot, list, compare and restore project files.

    This is the primary interface for:
    - Creating snapshots of the tracked project files
    - Restoring files from a verified snapshot
    - Listing, comparing and deleting snapshots
    - Scanning the store for tampering

    A store instance assumes it is the only caller mutating its files
    at a time, except for sequence allocation which is safe across
    processes.
    """

    def __init__(self, config: StoreConfig | str | Path | None = None):
        """
        Initialize a checkpoint store.

        Args:
            config: a StoreConfig, or a project root path using default settings
        """
        if not isinstance(config, StoreConfig):
            config = StoreConfig(project_root=config if config is not None else Path('.'))
        self.config = config
        self.project_root = config.project_root
        self.layout = StorageLayout(config.logs_path)
        self.records = RecordStore(self.layout)
        self.capturer = ProjectStateCapture(
            project_root=config.project_root,
            tracked_files=config.tracked_files,
            excluded_names=config.excluded_names,
            max_depth=config.max_depth,
            manifest=config.manifest,
        )
        # Most recently created or restored snapshot of this instance only
        self.current_id: Optional[str] = None

    def initialize(self) -> None:
        """
        Create the store directories.

        Safe to call multiple times (idempotent).
        """
        self.layout.initialize()

    # ========== Snapshots ==========

    def create(self, description: str, metadata: Optional[dict] = None) -> Snapshot:
        """
        Capture the tracked files and persist a new snapshot.

        Args:
            description: free-text label
            metadata: caller-defined values stored verbatim

        Returns:
            Snapshot: the stored record

        Raises PersistenceError if metadata would not read back unchanged
        from JSON, or if the record or report cannot be written;
        in that case no identifier is registered.
        """
        metadata = _check_metadata(metadata)
        self.initialize()
        sequence = self.records.allocate_sequence()

        try:
            snapshot = self._build_snapshot(sequence, description, metadata)
            self.records.put_record(snapshot.id, snapshot.to_dict())
            try:
                self.records.put_report(snapshot.id, render_report(snapshot))
            except PersistenceError:
                self.records.delete_record(snapshot.id)
                raise
        except Exception:
            logger.error("Failed to create snapshot #%d (%s)", sequence, description)
            self.records.release_sequence(sequence)
            raise

        self.current_id = snapshot.id
        logger.info(
            "Created snapshot %s with %d files (%s)",
            snapshot.id, snapshot.file_count(), description,
        )
        return snapshot

    def _build_snapshot(self, sequence: int, description: str, metadata: Optional[dict]) -> Snapshot:
        now = datetime.now(timezone.utc)
        date_str = now.strftime('%Y%m%d')
        time_str = now.strftime('%H%M%S')
        state = self.capturer.capture()

        return Snapshot(
            id=f"V{sequence:03d}_{date_str}_{time_str}",
            flag_id=f"FLAG-{date_str}-{time_str}-{sequence:03d}",
            sequence=sequence,
            timestamp=now.isoformat(),
            description=description,
            metadata=metadata,
            files=state.files,
            missing_files=state.missing_files,
            structure=state.structure,
            dependencies=state.dependencies,
            environment=state.environment,
        )

    def load(self, snapshot_id: str) -> Snapshot:
        """
        Load a stored snapshot without verifying it.

        Raises SnapshotNotFoundError if missing, PersistenceError if unreadable.
        """
        record = self.records.get_record(snapshot_id)
        try:
            return Snapshot.from_dict(record)
        except (TypeError, ValueError) as e:
            raise PersistenceError("parse_record", str(self.layout.get_record_path(snapshot_id)), e)

    def list_snapshots(self) -> List[SnapshotSummary]:
        """
        List stored snapshots, newest first.

        Records that cannot be read are logged and skipped.
        """
        summaries = []
        for snapshot_id in self.records.list_record_ids():
            try:
                summaries.append(self.load(snapshot_id).summary())
            except CheckpointError as e:
                logger.warning("Skipping unreadable snapshot %s: %s", snapshot_id, e)

        summaries.sort(key=lambda s: (s.timestamp, s.sequence), reverse=True)
        return summaries

    def restore(self, snapshot_id: str) -> RestoreResult:
        """
        Restore the files captured in a snapshot.

        The snapshot is verified first; on mismatch IntegrityError is
        raised and nothing is touched. Otherwise the current state is
        saved as a backup snapshot before any file is overwritten, so
        every restore adds one snapshot to the store.

        Files not in the snapshot are never deleted. A file that cannot be
        written is recorded in the result and the rest still proceed.

        Raises SnapshotNotFoundError, IntegrityError, or PersistenceError
        if the backup cannot be stored.
        """
        logger.info("Restoring snapshot %s", snapshot_id)
        snapshot = self.load(snapshot_id)

        try:
            verify_snapshot_integrity(snapshot)
        except IntegrityError:
            logger.error("Refusing to restore %s: integrity check failed", snapshot_id)
            raise

        backup = self.create(
            f"Backup before restoring {snapshot_id}",
            {'type': 'backup', 'rollback_target': snapshot_id},
        )

        result = RestoreResult(snapshot_id, backup_id=backup.id)
        for name, entry in sorted(snapshot.files.items()):
            try:
                self._restore_file(name, entry)
                result.restored.append(name)
                logger.debug("Restored %s", name)
            except (OSError, KeyError, TypeError, ValueError) as e:
                result.failed[name] = str(e)
                logger.error("Failed to restore %s: %s", name, e)

        if result.ok:
            self.current_id = snapshot_id
        logger.info(
            "Restore of %s %s: %d restored, %d failed (backup %s)",
            snapshot_id, result.status.value, len(result.restored),
            len(result.failed), backup.id,
        )
        return result

    def _restore_file(self, name: str, entry: dict) -> None:
        target = (self.project_root / name).resolve()
        if not target.is_relative_to(self.project_root):
            raise ValueError(f"path escapes project root: {name}")

        content = entry['content']
        if not isinstance(content, str):
            raise TypeError(f"content of {name} is not text")

        target.parent.mkdir(parents=True, exist_ok=True)
        with target.open('w', encoding='utf-8', newline='') as f:
            f.write(content)

    def compare(self, source_id: str, target_id: str) -> SnapshotDiff:
        """
        Compare two snapshots at file granularity.

        ``added`` are files only in the target, ``removed`` only in the
        source, ``modified`` in both with differing content hash.
        Dependencies are compared per manifest section as ``section.name``.

        Raises SnapshotNotFoundError if either snapshot is missing.
        """
        source = self.load(source_id)
        target = self.load(target_id)

        files = ChangeSet.between(source.files, target.files, key=lambda entry: entry.get('hash'))
        dependencies = ChangeSet.between(
            _flatten_dependencies(source.dependencies),
            _flatten_dependencies(target.dependencies),
        )
        return SnapshotDiff(source_id, target_id, files, dependencies)

    def delete(self, snapshot_id: str) -> bool:
        """
        Delete a snapshot record and its report.

        Returns False if the report was already gone.
        Raises SnapshotNotFoundError if the record doesn't exist.
        """
        if not self.records.has_record(snapshot_id):
            raise SnapshotNotFoundError(snapshot_id)

        self.records.delete_record(snapshot_id)
        report_deleted = self.records.delete_report(snapshot_id)

        if self.current_id == snapshot_id:
            self.current_id = None

        if not report_deleted:
            logger.warning("Deleted snapshot %s but its report was already missing", snapshot_id)
            return False

        logger.info("Deleted snapshot %s", snapshot_id)
        return True

    def get_report(self, snapshot_id: str) -> Optional[str]:
        """Return the Markdown report of a snapshot, or None if missing."""
        return self.records.get_report(snapshot_id)

    # ========== Integrity Verification ==========

    def verify(self, snapshot_id: str) -> bool:
        """
        Verify one snapshot's integrity.

        Returns True if valid.
        Raises IntegrityError if its hash doesn't match its files.
        """
        verify_snapshot_integrity(self.load(snapshot_id))
        return True

    def verify_all(self) -> Dict[str, object]:
        """
        Scan every stored snapshot and check store invariants.

        Returns dict with:
            - verified: count of intact snapshots
            - tampered: identifiers whose hash check failed or that can't be read
            - errors: list of error messages
            - invariants: result of the invariant registry
        """
        verified, tampered, errors = scan_for_tampering(
            self.records.list_record_ids(), self.load
        )
        invariants = create_store_invariants(self).verify_all()

        if tampered or not invariants['all_passed']:
            logger.warning(
                "Store verification found %d tampered snapshots and %d failed invariants",
                len(tampered), len(invariants['failed']),
            )

        return {
            'verified': verified,
            'tampered': tampered,
            'errors': errors,
            'invariants': invariants,
        }

    # ========== Statistics ==========

    def get_statistics(self) -> Dict[str, int]:
        return self.layout.get_storage_stats()

    def __repr__(self) -> str:
        stats = self.get_statistics()
        return (
            f"CheckpointStore("
            f"root={self.project_root}, "
            f"snapshots={stats.get('records', 0)})"
        )

    # Defined last so the builtin stays usable in the annotations above
    list = list_snapshots


def _flatten_dependencies(dependencies: dict) -> dict:
    flat = {}
    for section, entries in sorted((dependencies or {}).items()):
        if isinstance(entries, dict):
            for name, value in entries.items():
                flat[f"{section}.{name}"] = value
    return flat


def _check_metadata(metadata: Optional[dict]) -> dict:
    """Return metadata if it round-trips through JSON unchanged."""
    if metadata is None:
        return {}
    if not isinstance(metadata, dict):
        raise PersistenceError(
            "serialize_metadata", "metadata", TypeError("metadata must be a mapping")
        )
    try:
        decoded = json.loads(canonical_json(metadata))
    except (TypeError, ValueError) as e:
        raise PersistenceError("serialize_metadata", "metadata", e)
    if decoded != metadata:
        # Non-string keys and tuples come back altered
        raise PersistenceError(
            "serialize_metadata", "metadata",
            ValueError("metadata does not survive a JSON round trip"),
        )
    return metadata
