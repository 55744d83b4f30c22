"""
Tracking session state and aggregate metrics.
"""

from collections import Counter
from datetime import datetime, timezone
from typing import List, Optional


class Session:
    """
    A run of tracked operations.

    Metrics are updated incrementally as operations are added; the
    summary is derived from the stored operations when the session ends.
    """

    def __init__(self, id: str, info: Optional[dict] = None, start_time: Optional[str] = None):
        self.id = id
        self.info = dict(info or {})
        self.start_time = start_time or datetime.now(timezone.utc).isoformat()
        self.operations: List[dict] = []
        self.metrics = {
            'operation_count': 0,
            'total_execution_time': 0,
            'average_response_time': 0.0,
            'success_rate': 0.0,
            'errors': [],
        }

    def add(self, operation: dict) -> None:
        self.operations.append(operation)

        result = operation['result']
        metrics = self.metrics
        metrics['operation_count'] += 1
        metrics['total_execution_time'] += result.get('execution_time') or 0
        metrics['average_response_time'] = (
            metrics['total_execution_time'] / metrics['operation_count']
        )

        successes = sum(1 for op in self.operations if op['result'].get('success'))
        metrics['success_rate'] = successes / metrics['operation_count'] * 100

        if not result.get('success') and result.get('errors'):
            metrics['errors'].extend(result['errors'])

    def summary(self) -> dict:
        ops = self.operations
        return {
            'total_operations': len(ops),
            'successful_operations': sum(1 for op in ops if op['result'].get('success')),
            'failed_operations': sum(1 for op in ops if not op['result'].get('success')),
            'average_execution_time': self.metrics['average_response_time'],
            'total_tokens_used': sum(op['result'].get('tokens_used') or 0 for op in ops),
            'most_used_flags': most_used(ops, 'flags'),
            'most_used_personas': most_used(ops, 'personas'),
            'most_used_mcp_servers': most_used(ops, 'mcp_servers'),
            'quality_metrics': quality_metrics(ops),
        }

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'start_time': self.start_time,
            'info': self.info,
            'operations': self.operations,
            'metrics': self.metrics,
        }


def most_used(operations: List[dict], prompt_field: str, limit: int = 5) -> List[dict]:
    """Top prompt items by frequency, ties in first-seen order."""
    counts = Counter()
    for op in operations:
        counts.update(op['prompt'].get(prompt_field) or [])
    return [{'item': item, 'count': count} for item, count in counts.most_common(limit)]


def quality_metrics(operations: List[dict]) -> dict:
    qualities = [op['quality'] for op in operations if op.get('quality')]
    if not qualities:
        return {'average_test_coverage': 0, 'quality_distribution': {}}

    coverage = sum(q.get('test_coverage') or 0 for q in qualities) / len(qualities)
    distribution = Counter(q.get('code_quality') or 'unknown' for q in qualities)
    return {
        'average_test_coverage': coverage,
        'quality_distribution': dict(distribution),
    }
