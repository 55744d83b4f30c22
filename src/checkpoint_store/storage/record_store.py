"""
Snapshot record storage.

One JSON record and one Markdown report per snapshot, written atomically.
"""

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Optional

from ..errors import PersistenceError, SnapshotNotFoundError
from ..integrity.canonical import pretty_json
from .layout import StorageLayout

logger = logging.getLogger(__name__)

_SEQUENCE_IN_ID = re.compile(r'^V(\d+)_')


class RecordStore:
    """
    Persists snapshot records and reports.

    Records are never rewritten once stored. Sequence numbers are
    allocated by exclusively creating a claim marker, so two writers
    can never receive the same number.
    """

    def __init__(self, layout: StorageLayout):
        self.layout = layout

    # ========== Sequence allocation ==========

    def allocate_sequence(self) -> int:
        """
        Claim the next free sequence number.

        Starts after the highest claimed or stored sequence and walks
        forward until an exclusive create succeeds.
        """
        seq = self._highest_known_sequence() + 1
        while True:
            claim_path = self.layout.get_claim_path(seq)
            try:
                fd = os.open(str(claim_path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                seq += 1
                continue
            except OSError as e:
                raise PersistenceError("claim_sequence", str(claim_path), e)
            os.close(fd)
            return seq

    def release_sequence(self, seq: int) -> None:
        """Give back a claimed sequence number whose record was never written."""
        claim_path = self.layout.get_claim_path(seq)
        try:
            claim_path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not release sequence claim %s: %s", claim_path, e)

    def _highest_known_sequence(self) -> int:
        highest = 0
        claimed = self.layout.list_claimed_sequences()
        if claimed:
            highest = claimed[-1]
        for snapshot_id in self.layout.list_record_ids():
            match = _SEQUENCE_IN_ID.match(snapshot_id)
            if match:
                highest = max(highest, int(match.group(1)))
        return highest

    # ========== Records ==========

    def put_record(self, snapshot_id: str, record: dict) -> Path:
        """
        Write a snapshot record.

        Raises PersistenceError if the record already exists or the write fails.
        """
        path = self.layout.get_record_path(snapshot_id)
        if path.exists():
            raise PersistenceError(
                "write_record", str(path), FileExistsError("record already exists")
            )
        try:
            text = pretty_json(record)
        except (TypeError, ValueError) as e:
            raise PersistenceError("serialize_record", str(path), e)
        write_atomic(path, text.encode('utf-8'))
        return path

    def get_record(self, snapshot_id: str) -> dict:
        """
        Load a snapshot record.

        Raises SnapshotNotFoundError if it doesn't exist.
        Raises PersistenceError if it can't be read or parsed.
        """
        path = self.layout.get_record_path(snapshot_id)

        if not path.exists():
            raise SnapshotNotFoundError(snapshot_id)

        try:
            return json.loads(path.read_text(encoding='utf-8'))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise PersistenceError("read_record", str(path), e)

    def has_record(self, snapshot_id: str) -> bool:
        return self.layout.record_exists(snapshot_id)

    def delete_record(self, snapshot_id: str) -> bool:
        """
        Delete a snapshot record.

        Returns True if deleted, False if didn't exist.
        """
        return self._unlink(self.layout.get_record_path(snapshot_id), "delete_record")

    def list_record_ids(self) -> list[str]:
        return self.layout.list_record_ids()

    # ========== Reports ==========

    def put_report(self, snapshot_id: str, text: str) -> Path:
        path = self.layout.get_report_path(snapshot_id)
        write_atomic(path, text.encode('utf-8'))
        return path

    def get_report(self, snapshot_id: str) -> Optional[str]:
        """Return the report text, or None if there is no report."""
        path = self.layout.get_report_path(snapshot_id)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding='utf-8')
        except OSError as e:
            raise PersistenceError("read_report", str(path), e)

    def delete_report(self, snapshot_id: str) -> bool:
        return self._unlink(self.layout.get_report_path(snapshot_id), "delete_report")

    # ========== Internals ==========

    @staticmethod
    def _unlink(path: Path, operation: str) -> bool:
        if not path.exists():
            return False
        try:
            path.unlink()
            return True
        except OSError as e:
            raise PersistenceError(operation, str(path), e)


def write_atomic(path: Path, data: bytes) -> None:
    """
    Write a file atomically.

    Uses temp file + rename for atomicity.
    """
    dir_path = path.parent
    fd = None
    temp_path = None
    try:
        dir_path.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            dir=str(dir_path),
            prefix='.tmp_',
            suffix=path.suffix,
        )

        with os.fdopen(fd, 'wb') as f:
            fd = None
            f.write(data)

        os.replace(temp_path, path)
        temp_path = None

    except Exception as e:
        if fd is not None:
            try:
                os.close(fd)
            except OSError:
                pass
        if temp_path is not None and os.path.exists(temp_path):
            try:
                os.unlink(temp_path)
            except OSError:
                pass
        if isinstance(e, OSError):
            raise PersistenceError("write_file", str(path), e)
        raise
