"""
Test result tracking sessions and reproduction lookups.
"""

import json

import pytest

from checkpoint_store import ResultTracker, StoreConfig
from checkpoint_store.tracking.result_tracker import reproduction_hash
from checkpoint_store.tracking.session import Session, most_used


def make_prompt(**overrides):
    prompt = {
        'original': 'build a login form',
        'optimized': 'build a login form with validation',
        'flags': ['--think', '--validate'],
        'personas': ['frontend'],
        'mcp_servers': ['magic'],
    }
    prompt.update(overrides)
    return prompt


def make_result(**overrides):
    result = {
        'success': True,
        'output': 'done',
        'execution_time': 100,
        'tokens_used': 50,
        'quality': {'code_quality': 'good', 'test_coverage': 80},
    }
    result.update(overrides)
    return result


@pytest.fixture
def tracker(project):
    tracker = ResultTracker(StoreConfig(project_root=project))
    tracker.initialize()
    return tracker


class TestSessions:
    """Test session lifecycle and metrics."""

    def test_session_metrics(self, tracker):
        tracker.start_session({'task': 'login'})
        tracker.track(make_prompt(), make_result(execution_time=100))
        tracker.track(
            make_prompt(),
            make_result(success=False, execution_time=300, errors=['timeout']),
        )

        metrics = tracker.current_session.metrics

        assert metrics['operation_count'] == 2
        assert metrics['total_execution_time'] == 400
        assert metrics['average_response_time'] == 200
        assert metrics['success_rate'] == 50
        assert metrics['errors'] == ['timeout']

    def test_end_session_summary(self, tracker):
        session_id = tracker.start_session()
        tracker.track(make_prompt(), make_result(tokens_used=10))
        tracker.track(make_prompt(flags=['--think']), make_result(tokens_used=5, success=False))

        record = tracker.end_session()
        summary = record['summary']

        assert record['id'] == session_id
        assert record['duration'] >= 0
        assert summary['total_operations'] == 2
        assert summary['successful_operations'] == 1
        assert summary['failed_operations'] == 1
        assert summary['total_tokens_used'] == 15
        assert summary['most_used_flags'][0] == {'item': '--think', 'count': 2}
        assert summary['quality_metrics']['average_test_coverage'] == 80
        assert summary['quality_metrics']['quality_distribution'] == {'good': 2}
        assert tracker.current_session is None

    def test_end_session_persists_record(self, tracker):
        session_id = tracker.start_session()
        tracker.track(make_prompt(), make_result())
        tracker.end_session()

        files = list(tracker.sessions_dir.glob(f"session_*_{session_id}.json"))

        assert len(files) == 1
        data = json.loads(files[0].read_text(encoding='utf-8'))
        assert data['summary']['total_operations'] == 1

    def test_end_without_session(self, tracker):
        assert tracker.end_session() is None

    def test_session_info_includes_environment(self, tracker, project):
        tracker.start_session({'task': 'login'})

        info = tracker.current_session.info

        assert info['task'] == 'login'
        assert info['project_root'] == str(project.resolve())


class TestTracking:
    """Test operation records."""

    def test_track_outside_session(self, tracker):
        operation = tracker.track(make_prompt(), make_result())

        assert operation['session_id'] is None
        assert operation['id'].startswith('op_')

    def test_track_writes_result_and_prompt_document(self, tracker):
        operation = tracker.track(make_prompt(), make_result())

        results = list(tracker.results_dir.glob(f"*_{operation['id']}.json"))
        documents = list(tracker.prompts_dir.glob(f"*_{operation['id']}.md"))

        assert len(results) == 1
        assert len(documents) == 1
        document = documents[0].read_text(encoding='utf-8')
        assert 'build a login form with validation' in document
        assert operation['reproduction']['reproduction_hash'] in document

    def test_track_records_dependencies(self, tracker):
        operation = tracker.track(make_prompt(), make_result())

        assert operation['reproduction']['dependencies']['dependencies'] == {
            'react': '^18.2.0',
        }

    def test_quality_defaults(self, tracker):
        operation = tracker.track(make_prompt(), {'success': True})

        assert operation['quality'] == {
            'code_quality': 'unknown',
            'test_coverage': 0,
            'security_score': 'unknown',
            'performance_score': 'unknown',
        }

    def test_save_failure_does_not_raise(self, project):
        """A tracker that cannot write still returns the operation."""
        (project / "logs").mkdir()
        (project / "logs" / "results").write_text("not a directory")
        tracker = ResultTracker(StoreConfig(project_root=project))

        operation = tracker.track(make_prompt(), make_result())

        assert operation['result']['success'] is True


class TestReproduction:
    """Test reproduction hashes and lookups."""

    def test_hash_ignores_flag_order(self, tracker):
        first = tracker.track(make_prompt(flags=['--a', '--b']), make_result())
        second = tracker.track(make_prompt(flags=['--b', '--a']), make_result())

        assert (
            first['reproduction']['reproduction_hash']
            == second['reproduction']['reproduction_hash']
        )

    def test_hash_depends_on_prompt(self, tracker):
        first = tracker.track(make_prompt(), make_result())
        second = tracker.track(make_prompt(optimized='something else'), make_result())

        assert (
            first['reproduction']['reproduction_hash']
            != second['reproduction']['reproduction_hash']
        )

    def test_hash_ignores_outcome(self, tracker):
        first = tracker.track(make_prompt(), make_result(success=True))
        second = tracker.track(make_prompt(), make_result(success=False, output='x'))

        assert reproduction_hash(first) == reproduction_hash(second)

    def test_find_reproducible(self, tracker):
        first = tracker.track(make_prompt(), make_result())
        tracker.track(make_prompt(optimized='other'), make_result())
        third = tracker.track(make_prompt(), make_result(success=False))

        matches = tracker.find_reproducible(first['reproduction']['reproduction_hash'])

        assert {m['id'] for m in matches} == {first['id'], third['id']}

    def test_find_without_results(self, project):
        tracker = ResultTracker(StoreConfig(project_root=project))

        assert tracker.find_reproducible('0' * 64) == []


def test_most_used_limit():
    operations = [
        {'prompt': {'flags': [f'--f{i}'] * (i + 1)}} for i in range(7)
    ]

    top = most_used(operations, 'flags')

    assert len(top) == 5
    assert top[0] == {'item': '--f6', 'count': 7}


def test_empty_session_summary():
    summary = Session('session_1').summary()

    assert summary['total_operations'] == 0
    assert summary['quality_metrics'] == {
        'average_test_coverage': 0,
        'quality_distribution': {},
    }
