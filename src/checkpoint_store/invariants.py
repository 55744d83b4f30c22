"""
Store-wide invariants and their verification.
"""

from typing import Callable, List

from .errors import CheckpointError, InvariantViolationError


class Invariant:
    """
    Represents a store invariant that must always hold.
    """

    def __init__(self, name: str, description: str, check_func: Callable[[], List[str]]):
        """
        Define an invariant.

        Args:
            name: short invariant name
            description: what the invariant guarantees
            check_func: returns a list of violations, empty if it holds
        """
        self.name = name
        self.description = description
        self.check_func = check_func

    def verify(self) -> bool:
        """
        Verify this invariant holds.

        Returns True if holds, raises InvariantViolationError if not.
        """
        try:
            violations = self.check_func()
        except Exception as e:
            raise InvariantViolationError(
                self.name,
                f"Check raised exception: {e}\n{self.description}"
            )
        if violations:
            raise InvariantViolationError(self.name, "; ".join(violations))
        return True


class InvariantRegistry:
    """Ordered collection of invariants verified together."""

    def __init__(self):
        self.invariants: List[Invariant] = []

    def register(self, name: str, description: str, check_func: Callable[[], List[str]]) -> None:
        self.invariants.append(Invariant(name, description, check_func))

    def verify_all(self) -> dict:
        """
        Verify all registered invariants.

        Returns dict with:
            - passed: list of invariant names that passed
            - failed: list of (name, error) tuples for failed invariants
            - all_passed: bool indicating if all passed
        """
        result = {
            'passed': [],
            'failed': [],
            'all_passed': True,
        }

        for invariant in self.invariants:
            try:
                invariant.verify()
                result['passed'].append(invariant.name)
            except InvariantViolationError as e:
                result['failed'].append((invariant.name, str(e)))
                result['all_passed'] = False

        return result


def create_store_invariants(store) -> InvariantRegistry:
    """
    Create the invariants every checkpoint store must maintain.

    ``store`` is a CheckpointStore; records that fail to load are
    reported by the tamper scan, not here.
    """
    registry = InvariantRegistry()

    def loaded_records():
        loaded = []
        for snapshot_id in store.records.list_record_ids():
            try:
                loaded.append((snapshot_id, store.load(snapshot_id)))
            except CheckpointError:
                continue
        return loaded

    def loadable_snapshots():
        return [snapshot for _, snapshot in loaded_records()]

    def check_identifiers_match_files():
        return [
            f"record {snapshot_id}.json holds id {snapshot.id}"
            for snapshot_id, snapshot in loaded_records()
            if snapshot_id != snapshot.id
        ]

    def check_unique_sequences():
        seen = {}
        violations = []
        for snapshot in loadable_snapshots():
            if snapshot.sequence in seen:
                violations.append(
                    f"sequence {snapshot.sequence} used by {seen[snapshot.sequence]} and {snapshot.id}"
                )
            seen[snapshot.sequence] = snapshot.id
        return violations

    def check_creation_order():
        ordered = sorted(loadable_snapshots(), key=lambda s: s.sequence)
        return [
            f"{later.id} is numbered after {earlier.id} but was created before it"
            for earlier, later in zip(ordered, ordered[1:])
            if later.timestamp < earlier.timestamp
        ]

    def check_reports_present():
        return [
            f"report missing for {snapshot_id}"
            for snapshot_id in store.records.list_record_ids()
            if not store.layout.report_exists(snapshot_id)
        ]

    registry.register(
        "unique_identifiers",
        "Every sequence number is used by exactly one snapshot",
        check_unique_sequences,
    )
    registry.register(
        "record_naming",
        "Each record file is named after the snapshot it holds",
        check_identifiers_match_files,
    )
    registry.register(
        "creation_order",
        "Sequence numbers increase with creation time",
        check_creation_order,
    )
    registry.register(
        "reports_present",
        "Every stored record has a companion report",
        check_reports_present,
    )

    return registry
