"""
Result Tracker.

Records prompt/result pairs per session with enough environment data
to reproduce them, and aggregates per-session metrics.

Directory structure:
    logs/
        results/daily/<date>_<op id>.json
        prompts/optimized/<stamp>_<op id>.md
        performance/sessions/session_<stamp>_<session id>.json
"""

import json
import logging
import os
import platform
import sys
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..capture.manifest import read_manifest
from ..config import StoreConfig
from ..errors import PersistenceError
from ..integrity.canonical import pretty_json
from ..integrity.hashing import compute_object_hash
from ..storage.record_store import write_atomic
from .session import Session

logger = logging.getLogger(__name__)

RELEVANT_ENV_VARS = [
    'CI',
    'DEBUG',
    'LOG_LEVEL',
    'PYTHONHASHSEED',
    'VIRTUAL_ENV',
    'TERM',
]


def _file_stamp(now: datetime) -> str:
    return now.isoformat().replace(':', '-').replace('.', '-').replace('+', '_')


class ResultTracker:
    """
    Session-scoped result log.

    Only one session is active at a time; operations tracked outside a
    session are still persisted but not aggregated.
    """

    def __init__(self, config: StoreConfig | None = None):
        self.config = config or StoreConfig()
        logs = self.config.logs_path
        self.results_dir = logs / 'results' / 'daily'
        self.prompts_dir = logs / 'prompts' / 'optimized'
        self.sessions_dir = logs / 'performance' / 'sessions'
        self.current_session: Optional[Session] = None

    def initialize(self) -> None:
        for directory in (self.results_dir, self.prompts_dir, self.sessions_dir):
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise PersistenceError("initialize", str(directory), e)

    # ========== Sessions ==========

    def start_session(self, info: Optional[dict] = None) -> str:
        """Start a new session, replacing any active one. Returns its id."""
        if self.current_session is not None:
            logger.warning("Discarding unfinished session %s", self.current_session.id)

        session_info = {
            'python_version': platform.python_version(),
            'platform': sys.platform,
            'project_root': str(self.config.project_root),
        }
        session_info.update(info or {})

        session = Session(self._new_id('session', 6), session_info)
        self.current_session = session
        logger.info("Session started: %s", session.id)
        return session.id

    def end_session(self) -> Optional[dict]:
        """
        Close the active session and persist its summary.

        Returns the session summary record, or None if no session is active.
        """
        session = self.current_session
        if session is None:
            logger.info("No active session")
            return None

        now = datetime.now(timezone.utc)
        started = datetime.fromisoformat(session.start_time)
        record = session.to_dict()
        record.update({
            'end_time': now.isoformat(),
            'duration': (now - started).total_seconds() * 1000,
            'summary': session.summary(),
        })

        path = self.sessions_dir / f"session_{_file_stamp(now)}_{session.id}.json"
        self._save(path, pretty_json(record))

        metrics = session.metrics
        logger.info(
            "Session %s ended: %d operations, %.2fms average, %.1f%% success",
            session.id, metrics['operation_count'],
            metrics['average_response_time'], metrics['success_rate'],
        )
        self.current_session = None
        return record

    # ========== Tracking ==========

    def track(self, prompt: Dict[str, Any], result: Dict[str, Any]) -> dict:
        """
        Record one prompt and its result.

        Args:
            prompt: original, optimized, flags, personas, mcp_servers
            result: success, output, errors, warnings, execution_time,
                tokens_used, performance, configuration, quality

        Returns the stored operation record.
        """
        now = datetime.now(timezone.utc)
        quality = result.get('quality') or {}

        operation = {
            'id': self._new_id('op', 4),
            'session_id': self.current_session.id if self.current_session else None,
            'timestamp': now.isoformat(),
            'prompt': {
                'original': prompt.get('original', ''),
                'optimized': prompt.get('optimized', ''),
                'flags': list(prompt.get('flags') or []),
                'personas': list(prompt.get('personas') or []),
                'mcp_servers': list(prompt.get('mcp_servers') or []),
            },
            'result': {
                'success': bool(result.get('success')),
                'output': result.get('output'),
                'errors': list(result.get('errors') or []),
                'warnings': list(result.get('warnings') or []),
                'execution_time': result.get('execution_time'),
                'tokens_used': result.get('tokens_used'),
                'performance': result.get('performance') or {},
            },
            'reproduction': {
                'environment': self.capture_environment(),
                'dependencies': read_manifest(self.config.project_root / self.config.manifest),
                'configuration': result.get('configuration') or {},
            },
            'quality': {
                'code_quality': quality.get('code_quality', 'unknown'),
                'test_coverage': quality.get('test_coverage', 0),
                'security_score': quality.get('security_score', 'unknown'),
                'performance_score': quality.get('performance_score', 'unknown'),
            },
        }
        operation['reproduction']['reproduction_hash'] = reproduction_hash(operation)

        if self.current_session is not None:
            self.current_session.add(operation)

        self._save(
            self.results_dir / f"{now.date().isoformat()}_{operation['id']}.json",
            pretty_json(operation),
        )
        self._save(
            self.prompts_dir / f"{_file_stamp(now)}_{operation['id']}.md",
            render_prompt_document(operation),
        )

        logger.info("Tracked operation %s", operation['id'])
        return operation

    def find_reproducible(self, reproduction_hash_value: str) -> List[dict]:
        """Return stored operations sharing a reproduction hash."""
        if not self.results_dir.exists():
            return []

        matches = []
        for path in sorted(self.results_dir.glob('*.json')):
            try:
                data = json.loads(path.read_text(encoding='utf-8'))
            except (OSError, ValueError) as e:
                logger.warning("Skipping unreadable result %s: %s", path.name, e)
                continue
            if data.get('reproduction', {}).get('reproduction_hash') == reproduction_hash_value:
                matches.append(data)
        return matches

    def capture_environment(self) -> dict:
        return {
            'python_version': platform.python_version(),
            'platform': sys.platform,
            'arch': platform.machine(),
            'cwd': os.getcwd(),
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'environment_variables': {
                key: os.environ[key] for key in RELEVANT_ENV_VARS if os.environ.get(key)
            },
        }

    # ========== Internals ==========

    def _save(self, path, text: str) -> None:
        # Tracking must never break the caller's run
        try:
            write_atomic(path, text.encode('utf-8'))
        except PersistenceError as e:
            logger.error("Failed to save %s: %s", path, e)

    @staticmethod
    def _new_id(prefix: str, random_len: int) -> str:
        return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:random_len]}"


def reproduction_hash(operation: dict) -> str:
    """
    Hash the inputs that determine an operation's outcome.

    Item order in flags, personas and servers does not matter.
    """
    prompt = operation['prompt']
    reproduction = operation['reproduction']
    environment = reproduction['environment']
    return compute_object_hash({
        'prompt': prompt['optimized'],
        'flags': sorted(prompt['flags']),
        'personas': sorted(prompt['personas']),
        'mcp_servers': sorted(prompt['mcp_servers']),
        'environment': {
            'python_version': environment.get('python_version'),
            'platform': environment.get('platform'),
        },
        'dependencies': reproduction['dependencies'],
    })


def _bullets(items: List[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


def render_prompt_document(operation: dict) -> str:
    prompt = operation['prompt']
    result = operation['result']
    quality = operation['quality']
    reproduction = operation['reproduction']

    sections = [
        f"# Tracked operation: {operation['id']}",
        "## Summary\n"
        f"- **Time**: {operation['timestamp']}\n"
        f"- **Session**: {operation['session_id']}\n"
        f"- **Outcome**: {'success' if result['success'] else 'failure'}\n"
        f"- **Execution time**: {result['execution_time']}ms\n"
        f"- **Tokens used**: {result['tokens_used']}",
        f"## Original prompt\n```\n{prompt['original']}\n```",
        f"## Optimized prompt\n```\n{prompt['optimized']}\n```",
        "## Settings\n"
        f"- **Flags**: {', '.join(prompt['flags']) or 'none'}\n"
        f"- **Personas**: {', '.join(prompt['personas']) or 'none'}\n"
        f"- **MCP servers**: {', '.join(prompt['mcp_servers']) or 'none'}",
    ]

    if result['output']:
        sections.append(f"## Output\n```\n{result['output']}\n```")
    if result['errors']:
        sections.append(f"## Errors\n{_bullets(result['errors'])}")
    if result['warnings']:
        sections.append(f"## Warnings\n{_bullets(result['warnings'])}")

    sections.append(
        "## Quality\n"
        f"- **Code quality**: {quality['code_quality']}\n"
        f"- **Test coverage**: {quality['test_coverage']}%\n"
        f"- **Security score**: {quality['security_score']}\n"
        f"- **Performance score**: {quality['performance_score']}"
    )
    sections.append(
        "## Reproduction\n"
        f"- **Hash**: `{reproduction['reproduction_hash']}`\n"
        f"- **Python**: {reproduction['environment']['python_version']}\n"
        f"- **Platform**: {reproduction['environment']['platform']}\n\n"
        "```json\n"
        + pretty_json({
            'original': prompt['original'],
            'flags': prompt['flags'],
            'personas': prompt['personas'],
            'mcp_servers': prompt['mcp_servers'],
        })
        + "\n```"
    )
    return "\n\n".join(sections) + "\n"
