"""
Test restoring snapshots.
"""

import json

import pytest

from checkpoint_store import RestoreStatus, SnapshotNotFoundError
from checkpoint_store.integrity.hashing import compute_files_hash, compute_hash


class TestRestore:
    """Test restore semantics."""

    def test_round_trip(self, store, project):
        """Modified files read back as captured after restore."""
        snapshot = store.create("baseline")
        (project / "a.txt").write_text("z", encoding="utf-8")

        result = store.restore(snapshot.id)

        assert result.status is RestoreStatus.COMPLETE
        assert result.ok
        assert (project / "a.txt").read_text(encoding="utf-8") == "x"
        assert (project / "b.txt").read_text(encoding="utf-8") == "y"

    def test_files_outside_snapshot_untouched(self, store, project):
        snapshot = store.create("baseline")
        (project / "later.txt").write_text("new", encoding="utf-8")

        store.restore(snapshot.id)

        assert (project / "later.txt").read_text(encoding="utf-8") == "new"

    def test_deleted_tracked_file_is_recreated(self, store, project):
        snapshot = store.create("baseline")
        (project / "b.txt").unlink()

        result = store.restore(snapshot.id)

        assert "b.txt" in result.restored
        assert (project / "b.txt").read_text(encoding="utf-8") == "y"

    def test_nested_file_parents_created(self, make_store, project):
        (project / "docs").mkdir()
        (project / "docs" / "guide.md").write_text("# Guide\n", encoding="utf-8")
        store = make_store(tracked_files=["docs/guide.md"])
        snapshot = store.create("docs")

        (project / "docs" / "guide.md").unlink()
        (project / "docs").rmdir()

        store.restore(snapshot.id)

        assert (project / "docs" / "guide.md").read_text(encoding="utf-8") == "# Guide\n"

    def test_line_endings_preserved(self, make_store, project):
        (project / "crlf.txt").write_bytes(b"one\r\ntwo\r\n")
        store = make_store(tracked_files=["crlf.txt"])
        snapshot = store.create("crlf")
        (project / "crlf.txt").write_bytes(b"changed")

        store.restore(snapshot.id)

        assert (project / "crlf.txt").read_bytes() == b"one\r\ntwo\r\n"

    def test_restore_creates_backup(self, store, project):
        """Every restore first snapshots the current state."""
        snapshot = store.create("baseline")
        (project / "a.txt").write_text("z", encoding="utf-8")

        result = store.restore(snapshot.id)

        backup = store.load(result.backup_id)
        assert backup.metadata == {'type': 'backup', 'rollback_target': snapshot.id}
        assert backup.files["a.txt"]["content"] == "z"
        assert len(store.list()) == 2

    def test_restore_is_undoable(self, store, project):
        snapshot = store.create("baseline")
        (project / "a.txt").write_text("z", encoding="utf-8")

        result = store.restore(snapshot.id)
        store.restore(result.backup_id)

        assert (project / "a.txt").read_text(encoding="utf-8") == "z"

    def test_restore_updates_current_id(self, store, project):
        snapshot = store.create("baseline")
        store.create("later")

        result = store.restore(snapshot.id)

        assert store.current_id == snapshot.id
        assert result.snapshot_id == snapshot.id

    def test_restore_unknown_snapshot(self, store):
        with pytest.raises(SnapshotNotFoundError):
            store.restore("V404_20000101_000000")

        assert store.list() == []

    def test_partial_restore_continues(self, store, project):
        """A file that can't be written doesn't stop the others."""
        snapshot = store.create("baseline")
        (project / "a.txt").unlink()
        (project / "a.txt").mkdir()
        (project / "b.txt").write_text("changed", encoding="utf-8")

        result = store.restore(snapshot.id)

        assert result.status is RestoreStatus.PARTIAL
        assert result.ok
        assert set(result.failed) == {"a.txt"}
        assert "b.txt" in result.restored
        assert (project / "b.txt").read_text(encoding="utf-8") == "y"

    def test_path_outside_root_rejected(self, store, project, tmp_path):
        """Entries escaping the project root are reported, never written."""
        snapshot = store.create("baseline")
        path = store.layout.get_record_path(snapshot.id)
        record = json.loads(path.read_text(encoding="utf-8"))
        record['files']['../escape.txt'] = {
            'content': 'nope', 'size': 4, 'modified': '', 'hash': compute_hash('nope'),
        }
        record['hash'] = compute_files_hash(record['files'])
        path.write_text(json.dumps(record), encoding="utf-8")

        result = store.restore(snapshot.id)

        assert "../escape.txt" in result.failed
        assert result.status is RestoreStatus.PARTIAL
        assert not (tmp_path / "escape.txt").exists()

    def test_result_to_dict(self, store):
        snapshot = store.create("baseline")

        data = store.restore(snapshot.id).to_dict()

        assert data['status'] == 'complete'
        assert data['snapshot_id'] == snapshot.id
        assert sorted(data['restored']) == ["a.txt", "b.txt", "package.json"]
        assert data['failed'] == {}
