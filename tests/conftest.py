"""
Shared fixtures: a throwaway project directory and stores rooted in it.
"""

import json

import pytest

from checkpoint_store import CheckpointStore, StoreConfig


@pytest.fixture
def project(tmp_path):
    """Create a small project tree."""
    root = tmp_path / "project"
    root.mkdir()
    (root / "a.txt").write_text("x", encoding="utf-8")
    (root / "b.txt").write_text("y", encoding="utf-8")
    (root / "package.json").write_text(
        json.dumps({
            "dependencies": {"react": "^18.2.0"},
            "devDependencies": {"vite": "^5.0.0"},
            "scripts": {"dev": "vite"},
        }),
        encoding="utf-8",
    )
    return root


@pytest.fixture
def make_store(project):
    """Build an initialized store over the project, with optional overrides."""
    def factory(**overrides):
        overrides.setdefault("tracked_files", ["a.txt", "b.txt", "package.json"])
        config = StoreConfig(project_root=project, **overrides)
        store = CheckpointStore(config)
        store.initialize()
        return store
    return factory


@pytest.fixture
def store(make_store):
    return make_store()
