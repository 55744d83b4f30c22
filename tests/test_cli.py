import json
import logging

import pytest
from typer.testing import CliRunner

from checkpoint_store.cli import app
from checkpoint_store.observability.logging import PACKAGE_LOGGER

runner = CliRunner()


def created_id(result):
    for line in result.output.splitlines():
        if line.startswith("Checkpoint created: "):
            return line.split(": ", 1)[1].strip()
    raise AssertionError(f"no checkpoint id in output:\n{result.output}")


class TestCLI:
    @pytest.fixture(autouse=True)
    def setup_project(self, project, monkeypatch):
        for name in ("CHECKPOINT_PROJECT_ROOT", "CHECKPOINT_LOG_DIR",
                     "CHECKPOINT_MAX_DEPTH", "CHECKPOINT_CONFIG", "LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)

        self.project = project
        self.config_file = project.parent / "checkpoints.yaml"
        self.config_file.write_text(
            "tracked_files:\n  - a.txt\n  - b.txt\n  - package.json\n",
            encoding="utf-8",
        )
        yield
        logger = logging.getLogger(PACKAGE_LOGGER)
        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
        logger.propagate = True
        logger.setLevel(logging.NOTSET)

    def invoke(self, *args):
        return runner.invoke(app, [
            "--root", str(self.project),
            "--config", str(self.config_file),
            "--log-level", "ERROR",
            *args,
        ])

    def test_create_and_list(self):
        result = self.invoke("create", "Initial setup", "--meta", "author=dev")
        assert result.exit_code == 0
        snapshot_id = created_id(result)
        assert snapshot_id.startswith("V001_")
        assert "Files: 3" in result.output

        result = self.invoke("list")
        assert result.exit_code == 0
        assert snapshot_id in result.output
        assert "Initial setup" in result.output

    def test_list_empty(self):
        result = self.invoke("list")
        assert result.exit_code == 0
        assert "No checkpoints found." in result.output

    def test_list_json(self):
        self.invoke("create", "one", "--meta", "type=manual")

        result = self.invoke("list", "--json")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data[0]["description"] == "one"
        assert data[0]["metadata"] == {"type": "manual"}

    def test_create_bad_metadata(self):
        result = self.invoke("create", "oops", "--meta", "no-equals-sign")
        assert result.exit_code != 0

    def test_show(self):
        snapshot_id = created_id(self.invoke("create", "Initial setup"))

        result = self.invoke("show", snapshot_id)
        assert result.exit_code == 0
        assert snapshot_id in result.output
        assert "a.txt" in result.output

    def test_show_unknown(self):
        result = self.invoke("show", "V404_20000101_000000")
        assert result.exit_code == 1
        assert "Snapshot not found" in result.output

    def test_restore(self):
        snapshot_id = created_id(self.invoke("create", "Initial setup"))
        (self.project / "a.txt").write_text("changed", encoding="utf-8")

        result = self.invoke("restore", snapshot_id)
        assert result.exit_code == 0
        assert "Backup created: V002_" in result.output
        assert "Restored: a.txt" in result.output
        assert f"Restore complete: {snapshot_id}" in result.output
        assert (self.project / "a.txt").read_text(encoding="utf-8") == "x"

    def test_restore_unknown(self):
        result = self.invoke("restore", "V404_20000101_000000")
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_restore_tampered(self):
        snapshot_id = created_id(self.invoke("create", "Initial setup"))
        record = self.project / "logs" / "checkpoints" / f"{snapshot_id}.json"
        data = json.loads(record.read_text(encoding="utf-8"))
        data["hash"] = "0" * 64
        record.write_text(json.dumps(data), encoding="utf-8")

        result = self.invoke("restore", snapshot_id)
        assert result.exit_code == 1
        assert "Integrity check failed" in result.output

    def test_compare(self):
        first = created_id(self.invoke("create", "A"))
        (self.project / "b.txt").write_text("changed", encoding="utf-8")
        (self.project / "a.txt").unlink()
        second = created_id(self.invoke("create", "B"))

        result = self.invoke("compare", first, second)
        assert result.exit_code == 0
        assert "- files: a.txt" in result.output
        assert "~ files: b.txt" in result.output

    def test_compare_identical(self):
        first = created_id(self.invoke("create", "A"))
        second = created_id(self.invoke("create", "B"))

        result = self.invoke("compare", first, second)
        assert result.exit_code == 0
        assert "No differences." in result.output

    def test_delete(self):
        snapshot_id = created_id(self.invoke("create", "doomed"))

        result = self.invoke("delete", snapshot_id)
        assert result.exit_code == 0
        assert f"Checkpoint deleted: {snapshot_id}" in result.output

        result = self.invoke("delete", snapshot_id)
        assert result.exit_code == 1
        assert "Snapshot not found" in result.output

    def test_verify(self):
        snapshot_id = created_id(self.invoke("create", "one"))
        self.invoke("create", "two")

        result = self.invoke("verify", snapshot_id)
        assert result.exit_code == 0
        assert f"Checkpoint {snapshot_id} is intact." in result.output

        result = self.invoke("verify")
        assert result.exit_code == 0
        assert "Verified: 2" in result.output
        assert "Store is consistent." in result.output

    def test_verify_detects_tampering(self):
        snapshot_id = created_id(self.invoke("create", "one"))
        record = self.project / "logs" / "checkpoints" / f"{snapshot_id}.json"
        data = json.loads(record.read_text(encoding="utf-8"))
        data["files"]["a.txt"]["content"] = "evil"
        record.write_text(json.dumps(data), encoding="utf-8")

        result = self.invoke("verify")
        assert result.exit_code == 1
        assert f"Tampered: {snapshot_id}" in result.output

    def test_invalid_config(self):
        self.config_file.write_text("max_depth: -1\n", encoding="utf-8")

        result = self.invoke("list")
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output

    def test_session_track_and_find(self):
        entries = self.project.parent / "entries.json"
        entries.write_text(json.dumps([
            {
                "prompt": {"original": "add login", "optimized": "add login form",
                           "flags": ["--think"]},
                "result": {"success": True, "execution_time": 120, "tokens_used": 40},
            },
            {
                "prompt": {"original": "fix tests", "optimized": "fix failing tests"},
                "result": {"success": False, "errors": ["assertion"]},
            },
        ]), encoding="utf-8")

        result = self.invoke("session", "track", str(entries))
        assert result.exit_code == 0
        first_line = result.output.splitlines()[0]
        op_id, repro_hash = first_line.split()
        assert op_id.startswith("op_")
        assert '"total_operations": 2' in result.output

        result = self.invoke("session", "find", repro_hash)
        assert result.exit_code == 0
        assert f"[success] {op_id}" in result.output

    def test_session_find_nothing(self):
        result = self.invoke("session", "find", "0" * 64)
        assert result.exit_code == 0
        assert "No matching results." in result.output

    def test_session_track_bad_file(self):
        bad = self.project.parent / "entries.json"
        bad.write_text("{not json", encoding="utf-8")

        result = self.invoke("session", "track", str(bad))
        assert result.exit_code == 1
        assert "Error reading" in result.output

    def test_unknown_log_level_option(self):
        result = runner.invoke(app, ["--root", str(self.project), "--log-level", "LOUD", "list"])
        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "unknown log level" in result.output

    def test_unknown_log_level_environment(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "LOUD")

        result = runner.invoke(app, ["--root", str(self.project), "list"])
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_show_invalid_identifier(self):
        result = self.invoke("show", ".")
        assert result.exit_code == 1
        assert "Snapshot not found" in result.output

    @pytest.mark.parametrize("entries", [
        ["oops"],
        [{"prompt": "not an object"}],
        [{"result": [1, 2]}],
    ])
    def test_session_track_malformed_entries(self, entries):
        path = self.project.parent / "entries.json"
        path.write_text(json.dumps(entries), encoding="utf-8")

        result = self.invoke("session", "track", str(path))
        assert result.exit_code == 1
        assert "expected a JSON list of entries" in result.output
        assert not (self.project / "logs" / "performance").exists()
