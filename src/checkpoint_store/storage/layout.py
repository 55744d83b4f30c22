"""
Filesystem layout for checkpoint records.
"""

from pathlib import Path

from ..errors import PersistenceError, SnapshotNotFoundError

RECORD_SUFFIX = '.json'
REPORT_SUFFIX = '.md'


class StorageLayout:
    """
    Manages the directories owned by the checkpoint store.

    Layout:
        logs_root/
            checkpoints/
                <id>.json        # full snapshot record
                .claims/
                    <seq>        # one empty marker per allocated sequence
            versions/
                <id>.md          # human-readable report
    """

    def __init__(self, logs_root: Path):
        """Initialize storage layout at given root."""
        self.logs_root = Path(logs_root).resolve()
        self.records_dir = self.logs_root / "checkpoints"
        self.reports_dir = self.logs_root / "versions"
        self.claims_dir = self.records_dir / ".claims"

    def initialize(self) -> None:
        """
        Create all store directories.

        Idempotent - safe to call multiple times.
        """
        try:
            self.records_dir.mkdir(parents=True, exist_ok=True)
            self.reports_dir.mkdir(parents=True, exist_ok=True)
            self.claims_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError("initialize", str(self.logs_root), e)

    def get_record_path(self, snapshot_id: str) -> Path:
        return self.records_dir / (self._check_name(snapshot_id) + RECORD_SUFFIX)

    def get_report_path(self, snapshot_id: str) -> Path:
        return self.reports_dir / (self._check_name(snapshot_id) + REPORT_SUFFIX)

    def get_claim_path(self, sequence: int) -> Path:
        return self.claims_dir / f"{sequence:06d}"

    def list_record_ids(self) -> list[str]:
        """List identifiers of all stored records."""
        if not self.records_dir.exists():
            return []

        try:
            return sorted(
                f.stem for f in self.records_dir.iterdir()
                if f.is_file() and f.suffix == RECORD_SUFFIX and not f.name.startswith('.')
            )
        except OSError as e:
            raise PersistenceError("list_records", str(self.records_dir), e)

    def list_claimed_sequences(self) -> list[int]:
        if not self.claims_dir.exists():
            return []

        try:
            return sorted(
                int(f.name) for f in self.claims_dir.iterdir()
                if f.is_file() and f.name.isdigit()
            )
        except OSError as e:
            raise PersistenceError("list_claims", str(self.claims_dir), e)

    def record_exists(self, snapshot_id: str) -> bool:
        return self.get_record_path(snapshot_id).exists()

    def report_exists(self, snapshot_id: str) -> bool:
        return self.get_report_path(snapshot_id).exists()

    @staticmethod
    def _check_name(snapshot_id: str) -> str:
        """
        Check that an identifier can name a file inside the store.

        Empty names, dotfiles and names holding path separators never
        refer to a stored snapshot, so they raise SnapshotNotFoundError.
        """
        if (
            not isinstance(snapshot_id, str)
            or not snapshot_id
            or snapshot_id.startswith('.')
            or any(sep in snapshot_id for sep in ('/', '\\', '\0'))
        ):
            raise SnapshotNotFoundError(snapshot_id)
        return snapshot_id

    def get_storage_stats(self) -> dict:
        """
        Get storage statistics.

        Returns dict with:
        - records: number of stored snapshot records
        - reports: number of stored reports
        - total_size_bytes: combined size of records and reports
        """
        stats = {
            'records': 0,
            'reports': 0,
            'total_size_bytes': 0,
        }

        for directory, suffix, key in (
            (self.records_dir, RECORD_SUFFIX, 'records'),
            (self.reports_dir, REPORT_SUFFIX, 'reports'),
        ):
            if not directory.exists():
                continue
            try:
                for f in directory.iterdir():
                    if f.is_file() and f.suffix == suffix:
                        stats[key] += 1
                        stats['total_size_bytes'] += f.stat().st_size
            except OSError:
                pass  # Best effort

        return stats
