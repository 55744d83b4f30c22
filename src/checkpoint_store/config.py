"""
Store configuration.

Resolution order: built-in defaults, then an optional YAML file,
then environment variables.
"""

import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import List, Optional

import yaml

from .errors import ConfigurationError

DEFAULT_TRACKED_FILES = [
    'package.json',
    'pyproject.toml',
    'PROJECT_RULES.md',
    'index.html',
    'README.md',
]

DEFAULT_EXCLUDED_NAMES = [
    '.git',
    'node_modules',
    '.DS_Store',
    '__pycache__',
    '.venv',
]

ENV_PROJECT_ROOT = 'CHECKPOINT_PROJECT_ROOT'
ENV_LOG_DIR = 'CHECKPOINT_LOG_DIR'
ENV_MAX_DEPTH = 'CHECKPOINT_MAX_DEPTH'
ENV_CONFIG_FILE = 'CHECKPOINT_CONFIG'


@dataclass
class StoreConfig:
    """Settings shared by the checkpoint store and the result tracker."""

    project_root: Path = field(default_factory=lambda: Path('.'))
    log_dir: str = 'logs'
    tracked_files: List[str] = field(default_factory=lambda: list(DEFAULT_TRACKED_FILES))
    excluded_names: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDED_NAMES))
    max_depth: int = 3
    manifest: str = 'package.json'
    log_level: str = 'INFO'

    def __post_init__(self):
        if not isinstance(self.project_root, (str, os.PathLike)):
            raise ConfigurationError(f"project_root must be a path, got {self.project_root!r}")
        self.project_root = Path(self.project_root).resolve()
        if isinstance(self.log_level, str):
            self.log_level = self.log_level.upper()
        self.validate()

    def validate(self) -> None:
        for name in ('tracked_files', 'excluded_names'):
            value = getattr(self, name)
            if not isinstance(value, list) or not all(isinstance(item, str) and item for item in value):
                raise ConfigurationError(f"{name} must be a list of names, got {value!r}")
        for name in ('log_dir', 'manifest'):
            if not isinstance(getattr(self, name), str):
                raise ConfigurationError(f"{name} must be a string, got {getattr(self, name)!r}")
        if self.log_level not in logging.getLevelNamesMapping():
            raise ConfigurationError(f"unknown log level {self.log_level!r}")
        if not isinstance(self.max_depth, int) or isinstance(self.max_depth, bool) or self.max_depth < 0:
            raise ConfigurationError(f"max_depth must be a non-negative integer, got {self.max_depth!r}")
        if not self.log_dir:
            raise ConfigurationError("log_dir cannot be empty")
        for name in self.tracked_files:
            if Path(name).is_absolute() or '..' in Path(name).parts:
                raise ConfigurationError(f"tracked file must be relative to the project root: {name}")

    @property
    def logs_path(self) -> Path:
        return self.project_root / self.log_dir

    @classmethod
    def from_file(cls, path: str | Path, **overrides) -> 'StoreConfig':
        """
        Load configuration from a YAML file.

        Unknown keys are rejected. Keyword overrides win over file values.
        """
        path = Path(path)
        try:
            with path.open('r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigurationError(f"cannot read {path}: {e}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"invalid YAML in {path}: {e}")

        if not isinstance(data, dict):
            raise ConfigurationError(f"{path} must contain a mapping")

        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"unknown keys in {path}: {', '.join(sorted(unknown))}")

        data.update(overrides)
        # Relative roots in a config file are relative to the file itself.
        root = data.get('project_root')
        if 'project_root' not in overrides and isinstance(root, (str, os.PathLike)):
            if not Path(root).is_absolute():
                data['project_root'] = path.parent / root
        return cls(**data)

    @classmethod
    def load(cls, config_file: Optional[str | Path] = None, **overrides) -> 'StoreConfig':
        """
        Build configuration from defaults, file and environment.

        ``config_file`` falls back to the CHECKPOINT_CONFIG variable.
        """
        config_file = config_file or os.environ.get(ENV_CONFIG_FILE)
        config = cls.from_file(config_file) if config_file else cls()

        env = {}
        if os.environ.get(ENV_PROJECT_ROOT):
            env['project_root'] = Path(os.environ[ENV_PROJECT_ROOT])
        if os.environ.get(ENV_LOG_DIR):
            env['log_dir'] = os.environ[ENV_LOG_DIR]
        if os.environ.get(ENV_MAX_DEPTH):
            try:
                env['max_depth'] = int(os.environ[ENV_MAX_DEPTH])
            except ValueError:
                raise ConfigurationError(f"{ENV_MAX_DEPTH} must be an integer")
        if os.environ.get('LOG_LEVEL'):
            env['log_level'] = os.environ['LOG_LEVEL'].upper()

        env.update({k: v for k, v in overrides.items() if v is not None})
        return replace(config, **env) if env else config
