"""
Snapshot object model.

A snapshot is an immutable, hashed record of selected project files,
a shallow directory listing and the dependency manifest at one point in time.
"""

from typing import Optional, List

from ..integrity.hashing import compute_files_hash


class Snapshot:
    """
    Immutable checkpoint record.

    The integrity hash covers ``files`` only. Everything else
    (description, metadata, structure, dependencies) is informational.
    """

    REQUIRED_FIELDS = ('id', 'sequence', 'timestamp', 'files', 'hash')

    def __init__(
        self,
        id: str,
        sequence: int,
        timestamp: str,
        description: str,
        files: dict,
        hash: Optional[str] = None,
        flag_id: Optional[str] = None,
        metadata: Optional[dict] = None,
        missing_files: Optional[List[str]] = None,
        structure: Optional[dict] = None,
        dependencies: Optional[dict] = None,
        environment: Optional[dict] = None,
    ):
        self.id = id
        self.sequence = sequence
        self.timestamp = timestamp
        self.description = description
        self.files = dict(files)
        self.flag_id = flag_id
        self.metadata = dict(metadata or {})
        self.missing_files = list(missing_files or [])
        self.structure = structure or {}
        self.dependencies = dependencies or {}
        self.environment = environment or {}
        self.hash = hash if hash is not None else self.compute_hash()

    def compute_hash(self) -> str:
        """Recompute the integrity hash from the captured file set."""
        return compute_files_hash(self.files)

    def is_intact(self) -> bool:
        """Check that the stored hash still matches the file set."""
        return self.compute_hash() == self.hash

    def to_dict(self) -> dict:
        """Convert snapshot to its stored record representation."""
        return {
            'id': self.id,
            'flag_id': self.flag_id,
            'sequence': self.sequence,
            'timestamp': self.timestamp,
            'description': self.description,
            'metadata': self.metadata,
            'files': self.files,
            'missing_files': self.missing_files,
            'structure': self.structure,
            'dependencies': self.dependencies,
            'environment': self.environment,
            'hash': self.hash,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Snapshot':
        """
        Reconstruct snapshot from a stored record.

        The stored hash is kept as-is, never recomputed, so that tampering
        remains detectable.

        Raises ValueError if data is invalid.
        """
        if not isinstance(data, dict):
            raise ValueError("Snapshot record must be a mapping")

        for field in cls.REQUIRED_FIELDS:
            if field not in data:
                raise ValueError(f"Snapshot record missing {field!r} field")

        if not isinstance(data['files'], dict):
            raise ValueError("Snapshot files must be a mapping")

        return cls(
            id=data['id'],
            sequence=int(data['sequence']),
            timestamp=data['timestamp'],
            description=data.get('description', ''),
            files=data['files'],
            hash=data['hash'],
            flag_id=data.get('flag_id'),
            metadata=data.get('metadata'),
            missing_files=data.get('missing_files'),
            structure=data.get('structure'),
            dependencies=data.get('dependencies'),
            environment=data.get('environment'),
        )

    def summary(self) -> 'SnapshotSummary':
        return SnapshotSummary(
            id=self.id,
            flag_id=self.flag_id,
            sequence=self.sequence,
            timestamp=self.timestamp,
            description=self.description,
            metadata=self.metadata,
        )

    def file_count(self) -> int:
        return len(self.files)

    def total_size(self) -> int:
        """Sum of captured file sizes in bytes."""
        return sum(entry.get('size', 0) for entry in self.files.values())

    def __eq__(self, other) -> bool:
        if not isinstance(other, Snapshot):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return (
            f"Snapshot(id={self.id}, files={len(self.files)}, "
            f"hash={self.hash[:8]}...)"
        )


class SnapshotSummary:
    """Lightweight listing entry for a stored snapshot."""

    def __init__(
        self,
        id: str,
        sequence: int,
        timestamp: str,
        description: str,
        flag_id: Optional[str] = None,
        metadata: Optional[dict] = None,
    ):
        self.id = id
        self.sequence = sequence
        self.timestamp = timestamp
        self.description = description
        self.flag_id = flag_id
        self.metadata = dict(metadata or {})

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'flag_id': self.flag_id,
            'sequence': self.sequence,
            'timestamp': self.timestamp,
            'description': self.description,
            'metadata': self.metadata,
        }

    def __repr__(self) -> str:
        return f"SnapshotSummary(id={self.id}, description={self.description!r})"
