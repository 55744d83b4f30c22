"""
Dependency manifest readers.

Understands ``package.json`` and ``pyproject.toml``. A missing or
unreadable manifest yields an empty mapping.
"""

import json
import logging
import re
import tomllib
from pathlib import Path

logger = logging.getLogger(__name__)

# PEP 508 requirement name, up to the first specifier/extra/marker
_REQUIREMENT_NAME = re.compile(r'^\s*([A-Za-z0-9][A-Za-z0-9._-]*)')


def read_manifest(path: Path) -> dict:
    """
    Read declared dependencies and scripts from a manifest file.

    Returns dict with:
        - dependencies: name -> version spec
        - dev_dependencies: name -> version spec
        - scripts: name -> command / entry point

    Returns {} when the file is absent or cannot be parsed.
    """
    path = Path(path)
    if not path.is_file():
        logger.debug("No manifest at %s", path)
        return {}

    try:
        if path.suffix == '.toml':
            with path.open('rb') as f:
                return _from_pyproject(tomllib.load(f))
        with path.open('r', encoding='utf-8') as f:
            return _from_package_json(json.load(f))
    except (OSError, UnicodeDecodeError, ValueError) as e:
        # json.JSONDecodeError and tomllib.TOMLDecodeError are ValueErrors
        logger.warning("Ignoring unreadable manifest %s: %s", path, e)
        return {}


def _from_package_json(data) -> dict:
    if not isinstance(data, dict):
        return {}
    return {
        'dependencies': dict(data.get('dependencies') or {}),
        'dev_dependencies': dict(data.get('devDependencies') or {}),
        'scripts': dict(data.get('scripts') or {}),
    }


def _from_pyproject(data: dict) -> dict:
    project = data.get('project') or {}

    dev = {}
    for group in (project.get('optional-dependencies') or {}).values():
        dev.update(_parse_requirements(group))

    return {
        'dependencies': _parse_requirements(project.get('dependencies') or []),
        'dev_dependencies': dev,
        'scripts': dict(project.get('scripts') or {}),
    }


def _parse_requirements(requirements) -> dict:
    """Split requirement strings into name -> remaining specifier."""
    parsed = {}
    for requirement in requirements:
        match = _REQUIREMENT_NAME.match(requirement)
        if not match:
            continue
        name = match.group(1)
        parsed[name] = requirement[match.end():].strip() or '*'
    return parsed
