"""
Error types for checkpoint store operations.

Single-shot steps (record lookup, integrity check, persistence) raise.
Best-effort steps (per-file capture, per-file restore) are logged and
collected into result objects instead.
"""


class CheckpointError(Exception):
    """Base exception for all checkpoint store errors."""
    pass


class SnapshotNotFoundError(CheckpointError):
    """Raised when a requested snapshot identifier has no stored record."""

    def __init__(self, snapshot_id: str):
        self.snapshot_id = snapshot_id
        super().__init__(f"Snapshot not found: {snapshot_id}")


class IntegrityError(CheckpointError):
    """Raised when a snapshot's stored hash does not match its file set."""

    def __init__(self, snapshot_id: str, expected: str, actual: str):
        self.snapshot_id = snapshot_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Integrity check failed: {snapshot_id}\n"
            f"Stored hash: {expected}\n"
            f"Computed hash: {actual}"
        )


class CaptureError(CheckpointError):
    """Raised when a single item cannot be captured."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot capture {path}: {reason}")


class PersistenceError(CheckpointError):
    """Raised when reading or writing store records fails."""

    def __init__(self, operation: str, path: str, cause: Exception = None):
        self.operation = operation
        self.path = path
        self.cause = cause
        msg = f"Storage error during {operation}: {path}"
        if cause:
            msg += f"\nCause: {cause}"
        super().__init__(msg)


class ConfigurationError(CheckpointError):
    """Raised when store configuration is invalid."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid configuration: {reason}")


class InvariantViolationError(CheckpointError):
    """Raised when a store-wide invariant is violated."""

    def __init__(self, invariant: str, details: str):
        self.invariant = invariant
        self.details = details
        super().__init__(f"Invariant violation: {invariant}\nDetails: {details}")
