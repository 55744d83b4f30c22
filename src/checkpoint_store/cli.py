"""CLI for creating, inspecting and restoring project checkpoints."""

import json
from pathlib import Path
from typing import List, Optional

import typer
from typing_extensions import Annotated

from checkpoint_store.config import StoreConfig
from checkpoint_store.engine import CheckpointStore
from checkpoint_store.errors import CheckpointError
from checkpoint_store.integrity.canonical import pretty_json
from checkpoint_store.model.results import RestoreStatus
from checkpoint_store.observability.logging import setup_logging
from checkpoint_store.tracking.result_tracker import ResultTracker


app = typer.Typer(help="Project checkpoint management CLI")
session_app = typer.Typer(help="Track prompt results across a session")

app.add_typer(session_app, name="session")


@app.callback()
def main(
    ctx: typer.Context,
    root: Annotated[
        Optional[Path], typer.Option(help="Project root directory")
    ] = None,
    config: Annotated[
        Optional[Path], typer.Option(help="YAML configuration file")
    ] = None,
    log_level: Annotated[
        Optional[str], typer.Option(help="Log level (default: LOG_LEVEL or INFO)")
    ] = None,
    json_logs: Annotated[
        bool, typer.Option(help="Emit log lines as JSON")
    ] = False,
):
    """Snapshot and restore tracked project files."""
    try:
        store_config = StoreConfig.load(config, project_root=root, log_level=log_level)
    except CheckpointError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    setup_logging(store_config.log_level, json_format=json_logs)
    ctx.obj = store_config


def get_store(ctx: typer.Context) -> CheckpointStore:
    store = CheckpointStore(ctx.obj)
    store.initialize()
    return store


def parse_metadata(pairs: List[str]) -> dict:
    """Turn ``key=value`` options into a metadata mapping."""
    metadata = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected key=value, got {pair!r}", param_hint="--meta")
        metadata[key] = value
    return metadata


@app.command("create")
def create(
    ctx: typer.Context,
    description: Annotated[str, typer.Argument(help="What this checkpoint captures")],
    meta: Annotated[
        Optional[List[str]], typer.Option(help="Metadata as key=value, repeatable")
    ] = None,
):
    """Creates a new checkpoint."""
    metadata = parse_metadata(meta or [])
    try:
        snapshot = get_store(ctx).create(description, metadata)
    except CheckpointError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Checkpoint created: {snapshot.id}")
    typer.echo(f"Files: {snapshot.file_count()}  Hash: {snapshot.hash}")


@app.command("list")
def list_checkpoints(
    ctx: typer.Context,
    as_json: Annotated[bool, typer.Option("--json", help="Print JSON")] = False,
):
    """Lists checkpoints, newest first."""
    summaries = get_store(ctx).list_snapshots()
    if as_json:
        typer.echo(pretty_json([s.to_dict() for s in summaries]))
        return

    if not summaries:
        typer.echo("No checkpoints found.")
        return

    for s in summaries:
        kind = s.metadata.get("type", "checkpoint")
        typer.echo(f"{s.id}  {s.timestamp}  [{kind}] {s.description}")


@app.command("show")
def show(
    ctx: typer.Context,
    snapshot_id: Annotated[str, typer.Argument(help="Checkpoint ID")],
):
    """Prints the report of a checkpoint."""
    store = get_store(ctx)
    try:
        store.load(snapshot_id)
    except CheckpointError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    report = store.get_report(snapshot_id)
    if report is None:
        typer.echo(f"Warning: report missing for {snapshot_id}", err=True)
        raise typer.Exit(code=1)
    typer.echo(report)


@app.command("restore")
def restore(
    ctx: typer.Context,
    snapshot_id: Annotated[str, typer.Argument(help="Checkpoint ID")],
):
    """Restores tracked files from a checkpoint."""
    try:
        result = get_store(ctx).restore(snapshot_id)
    except CheckpointError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Backup created: {result.backup_id}")
    for name in result.restored:
        typer.echo(f"Restored: {name}")
    for name, reason in result.failed.items():
        typer.echo(f"Failed: {name} ({reason})", err=True)

    typer.echo(f"Restore {result.status.value}: {snapshot_id}")
    if result.status is not RestoreStatus.COMPLETE:
        raise typer.Exit(code=1)


@app.command("compare")
def compare(
    ctx: typer.Context,
    source_id: Annotated[str, typer.Argument(help="Older checkpoint ID")],
    target_id: Annotated[str, typer.Argument(help="Newer checkpoint ID")],
):
    """Shows files added, removed and modified between two checkpoints."""
    try:
        diff = get_store(ctx).compare(source_id, target_id)
    except CheckpointError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    if diff.is_empty():
        typer.echo("No differences.")
        return

    for label, changes in (("files", diff.files), ("dependencies", diff.dependencies)):
        for marker, names in (("+", changes.added), ("-", changes.removed), ("~", changes.modified)):
            for name in names:
                typer.echo(f"{marker} {label}: {name}")


@app.command("delete")
def delete(
    ctx: typer.Context,
    snapshot_id: Annotated[str, typer.Argument(help="Checkpoint ID")],
):
    """Deletes a checkpoint and its report."""
    try:
        complete = get_store(ctx).delete(snapshot_id)
    except CheckpointError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Checkpoint deleted: {snapshot_id}")
    if not complete:
        typer.echo("Warning: report was already missing", err=True)
        raise typer.Exit(code=1)


@app.command("verify")
def verify(
    ctx: typer.Context,
    snapshot_id: Annotated[
        Optional[str], typer.Argument(help="Checkpoint ID (default: all)")
    ] = None,
):
    """Verifies checkpoint integrity."""
    store = get_store(ctx)

    if snapshot_id:
        try:
            store.verify(snapshot_id)
        except CheckpointError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(code=1)
        typer.echo(f"Checkpoint {snapshot_id} is intact.")
        return

    report = store.verify_all()
    typer.echo(f"Verified: {report['verified']}")
    for error in report["errors"]:
        typer.echo(f"Tampered: {error}", err=True)
    for _, error in report["invariants"]["failed"]:
        typer.echo(f"Invariant failed: {error}", err=True)

    if report["tampered"] or not report["invariants"]["all_passed"]:
        raise typer.Exit(code=1)
    typer.echo("Store is consistent.")


def is_tracked_entry(entry) -> bool:
    """An entry is an object whose prompt and result, when given, are objects."""
    return isinstance(entry, dict) and all(
        isinstance(entry.get(key) or {}, dict) for key in ("prompt", "result")
    )


@session_app.command("track")
def session_track(
    ctx: typer.Context,
    file_path: Annotated[
        Path, typer.Argument(help="JSON file with a list of {prompt, result} entries")
    ],
):
    """Tracks a batch of prompt results as one session."""
    try:
        entries = json.loads(file_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        typer.echo(f"Error reading {file_path}: {e}", err=True)
        raise typer.Exit(code=1)

    if not isinstance(entries, list) or not all(is_tracked_entry(e) for e in entries):
        typer.echo("Error: expected a JSON list of entries", err=True)
        raise typer.Exit(code=1)

    tracker = ResultTracker(ctx.obj)
    tracker.initialize()
    tracker.start_session({"source": str(file_path)})
    for entry in entries:
        operation = tracker.track(entry.get("prompt") or {}, entry.get("result") or {})
        typer.echo(f"{operation['id']}  {operation['reproduction']['reproduction_hash']}")

    record = tracker.end_session()
    typer.echo(pretty_json(record["summary"]))


@session_app.command("find")
def session_find(
    ctx: typer.Context,
    reproduction_hash: Annotated[str, typer.Argument(help="Reproduction hash")],
):
    """Finds tracked results with the same reproduction hash."""
    matches = ResultTracker(ctx.obj).find_reproducible(reproduction_hash)
    if not matches:
        typer.echo("No matching results.")
        return

    for m in matches:
        status = "success" if m["result"]["success"] else "failure"
        typer.echo(f"[{status}] {m['id']} ({m['timestamp']})")


if __name__ == "__main__":
    app()
