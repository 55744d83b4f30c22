"""
Project state capture.

Reads the tracked files, a bounded directory listing, the dependency
manifest and a few environment facts. Every sub-step is best effort:
items that cannot be read are logged and left out.
"""

import logging
import platform
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional

from ..errors import CaptureError
from ..integrity.hashing import compute_hash
from .manifest import read_manifest

logger = logging.getLogger(__name__)


def format_mtime(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


class ProjectState:
    """Everything captured from the project tree for one snapshot."""

    def __init__(self):
        self.files: dict = {}
        self.missing_files: List[str] = []
        self.structure: dict = {}
        self.dependencies: dict = {}
        self.environment: dict = {}


class ProjectStateCapture:
    """
    Captures project state relative to a root directory.

    Args:
        project_root: directory all tracked paths are relative to
        tracked_files: allow-list of relative file paths
        excluded_names: entry names skipped by the directory listing
        max_depth: directory listing depth; 0 disables the listing
        manifest: relative path of the dependency manifest
    """

    def __init__(
        self,
        project_root: Path,
        tracked_files: Iterable[str],
        excluded_names: Iterable[str] = (),
        max_depth: int = 3,
        manifest: Optional[str] = None,
    ):
        self.project_root = Path(project_root).resolve()
        self.tracked_files = list(tracked_files)
        self.excluded_names = set(excluded_names)
        self.max_depth = max_depth
        self.manifest = manifest

    def capture(self) -> ProjectState:
        state = ProjectState()

        for name in self.tracked_files:
            try:
                state.files[name] = self.capture_file(name)
            except CaptureError as e:
                logger.info("Skipping %s: %s", name, e.reason)
                state.missing_files.append(name)

        state.structure = self.capture_structure(self.project_root, self.max_depth) or {}

        if self.manifest:
            state.dependencies = read_manifest(self.project_root / self.manifest)

        state.environment = {
            'python_version': platform.python_version(),
            'platform': sys.platform,
            'project_root': str(self.project_root),
        }
        return state

    def capture_file(self, name: str) -> dict:
        """
        Read one tracked file.

        Raises CaptureError if the file is absent, not a regular file,
        unreadable, or not UTF-8 text.
        """
        path = self.project_root / name
        if not path.is_file():
            raise CaptureError(name, "not found")

        try:
            # newline='' keeps line endings byte-exact for restore
            with path.open('r', encoding='utf-8', newline='') as f:
                content = f.read()
            stats = path.stat()
        except UnicodeDecodeError:
            raise CaptureError(name, "not UTF-8 text")
        except OSError as e:
            raise CaptureError(name, str(e))

        return {
            'content': content,
            'size': stats.st_size,
            'modified': format_mtime(stats.st_mtime),
            'hash': compute_hash(content),
        }

    def capture_structure(self, dir_path: Path, depth: int) -> Optional[dict]:
        """
        List a directory recursively down to ``depth`` levels.

        Returns None at depth 0 or when the directory can't be read.
        """
        if depth <= 0:
            return None

        try:
            entries = sorted(dir_path.iterdir(), key=lambda p: p.name)
        except OSError as e:
            logger.warning("Cannot list directory %s: %s", dir_path, e)
            return None

        structure = {}
        for entry in entries:
            if entry.name in self.excluded_names:
                continue

            try:
                if entry.is_dir() and not entry.is_symlink():
                    structure[entry.name] = {
                        'type': 'directory',
                        'children': self.capture_structure(entry, depth - 1),
                    }
                else:
                    stats = entry.stat()
                    structure[entry.name] = {
                        'type': 'file',
                        'size': stats.st_size,
                        'modified': format_mtime(stats.st_mtime),
                    }
            except OSError as e:
                logger.warning("Cannot stat %s: %s", entry, e)

        return structure
