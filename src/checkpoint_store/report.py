"""
Human-readable Markdown reports for snapshots.
"""

from datetime import datetime, timezone

from .integrity.canonical import pretty_json
from .model.snapshot import Snapshot


def render_report(snapshot: Snapshot) -> str:
    """Render the companion report written next to each snapshot record."""
    if snapshot.files:
        file_lines = "\n".join(
            f"- {name} ({entry.get('size', 0)} bytes)"
            for name, entry in sorted(snapshot.files.items())
        )
    else:
        file_lines = "_No tracked files were present._"

    missing = ", ".join(snapshot.missing_files) or "none"
    env = snapshot.environment
    metadata = pretty_json(snapshot.metadata) if snapshot.metadata else "{}"
    integrity = "OK" if snapshot.is_intact() else "MISMATCH"

    return f"""# {snapshot.id}: {snapshot.description}

## Summary
- **Snapshot ID**: {snapshot.id}
- **Flag ID**: {snapshot.flag_id}
- **Created**: {snapshot.timestamp}
- **Description**: {snapshot.description}

## Project state

### Included files
{file_lines}

Total: {snapshot.file_count()} files, {snapshot.total_size()} bytes

### Skipped files
{missing}

### Dependencies
```json
{pretty_json(snapshot.dependencies)}
```

### Metadata
```json
{metadata}
```

### Environment
- **Python**: {env.get('python_version', 'unknown')}
- **Platform**: {env.get('platform', 'unknown')}
- **Project root**: {env.get('project_root', 'unknown')}

## Integrity
- **Hash**: `{snapshot.hash}`
- **Status**: {integrity}

## Restore
```bash
checkpoint restore {snapshot.id}
```

```python
store.restore({snapshot.id!r})
```

---
Generated {datetime.now(timezone.utc).isoformat()}
"""
