"""pulsediff CLI: stacked page diffs and AI usage summaries from activity logs."""

import asyncio
import json
import logging
import sqlite3
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import click

from pulsediff.budget import DiffBudgetAllocator, estimate_tokens
from pulsediff.config import EngineSettings
from pulsediff.context_windows import get_context_window
from pulsediff.diffing import DiffGenerator
from pulsediff.formatting import (
    format_diffs_compact, format_diffs_json,
    format_usage_compact, format_usage_json,
)
from pulsediff.pipeline import ORDERINGS, ActivityDiffPipeline
from pulsediff.query import parse_since
from pulsediff.store import SQLiteStore
from pulsediff.usage import calculate_usage_summary


def _fail(message: str):
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _get_store(db_path: Path) -> SQLiteStore:
    """Get an initialized SQLiteStore at ``db_path``."""
    if not db_path.exists():
        click.echo(f"Error: no pulsediff database at {db_path}", err=True)
        click.echo("Run 'pulsediff init' first.", err=True)
        sys.exit(1)
    return SQLiteStore(db_path)


@click.group()
@click.option("--db", "-d", default=None, help="Database path (default: $PULSEDIFF_DB or .pulsediff/pulse.db)")
@click.option("--verbose", "-v", is_flag=True, help="Log pipeline details to stderr")
@click.pass_context
def cli(ctx, db, verbose):
    """pulsediff: activity diffs and usage aggregation."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG,
                            format="%(levelname)s %(name)s: %(message)s")
    try:
        settings = EngineSettings.from_env()
    except ValueError as e:
        _fail(str(e))
    if db:
        settings.db_path = Path(db)

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["db_path"] = settings.db_path


@cli.command()
@click.pass_context
def init(ctx):
    """Create the database and its tables."""
    db_path = ctx.obj["db_path"]
    if db_path.exists():
        click.echo(f"pulsediff already initialized at {db_path}")
        return

    db_path.parent.mkdir(parents=True, exist_ok=True)
    store = SQLiteStore(db_path)
    store.initialize()
    store.set_meta("initialized_at", datetime.now(timezone.utc).isoformat())
    store.close()
    click.echo(f"Initialized pulsediff database at {db_path}")


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def load(ctx, file):
    """Load activities, versions, contents and usage logs from a JSON file."""
    store = _get_store(ctx.obj["db_path"])
    try:
        counts = store.load_json(file)
    except (ValueError, sqlite3.IntegrityError) as e:
        _fail(str(e))
    finally:
        store.close()

    click.echo(
        f"Loaded {counts['activities']} activities, {counts['versions']} versions, "
        f"{counts['contents']} contents, {counts['usage']} usage logs."
    )


@cli.command()
@click.option("--drive", required=True, help="Drive ID")
@click.option("--since", default="24h", help="Time filter: 30m, 24h, 7d, 2w, or ISO date")
@click.option("--budget", "-b", default=None, type=int, help="Token budget for diff text")
@click.option("--session-gap", default=None, type=float, help="Minutes between saves that split a session")
@click.option("--order", default="input", type=click.Choice(sorted(ORDERINGS)),
              help="Order in which sessions compete for the budget")
@click.option("--limit", "-n", default=500, help="Max activity rows to read")
@click.option("--format", "-f", "fmt", default="compact",
              type=click.Choice(["compact", "json"]))
@click.pass_context
def diffs(ctx, drive, since, budget, session_gap, order, limit, fmt):
    """Stacked diffs of recent page edits in a drive."""
    settings: EngineSettings = ctx.obj["settings"]
    store = _get_store(ctx.obj["db_path"])

    try:
        since_iso = parse_since(since)
        gap = timedelta(minutes=session_gap) if session_gap is not None else settings.session_gap
        pipeline = ActivityDiffPipeline(
            versions=store,
            contents=store,
            session_gap=gap,
            concurrency=settings.concurrency,
            allocator=DiffBudgetAllocator(chars_per_token=settings.chars_per_token),
            generator=DiffGenerator(max_chars_per_page=settings.max_chars_per_page),
            order_key=ORDERINGS[order],
        )
        records = store.page_activity(drive, since=since_iso, limit=limit)
        token_budget = budget if budget is not None else settings.token_budget
        results = asyncio.run(pipeline.run(records, token_budget))
    except ValueError as e:
        _fail(str(e))
    finally:
        store.close()

    if fmt == "json":
        click.echo(format_diffs_json(results))
    else:
        click.echo(format_diffs_compact(results))
        used = sum(estimate_tokens(d.unified_diff, settings.chars_per_token) for d in results)
        click.echo(
            f"\n{len(results)} diff{'s' if len(results) != 1 else ''}, "
            f"~{used:,} of {token_budget:,} tokens"
        )


@cli.command()
@click.argument("conversation_id")
@click.option("--format", "-f", "fmt", default="compact",
              type=click.Choice(["compact", "json"]))
@click.pass_context
def usage(ctx, conversation_id, fmt):
    """Billing totals and context usage for a conversation."""
    store = _get_store(ctx.obj["db_path"])
    try:
        logs = store.usage_logs(conversation_id)
    finally:
        store.close()

    summary = calculate_usage_summary(logs, get_context_window)
    if fmt == "json":
        click.echo(format_usage_json(summary))
    else:
        click.echo(format_usage_compact(summary))


@cli.command()
@click.option("--format", "-f", "fmt", default="compact",
              type=click.Choice(["compact", "json"]))
@click.pass_context
def status(ctx, fmt):
    """Show database status."""
    db_path = ctx.obj["db_path"]
    store = _get_store(db_path)

    counts = store.counts()
    initialized = store.get_meta("initialized_at") or "unknown"
    schema = store.get_meta("schema_version") or "unknown"
    store.close()
    db_size = db_path.stat().st_size

    if fmt == "json":
        click.echo(json.dumps({
            "db_path": str(db_path),
            "schema_version": schema,
            "initialized_at": initialized,
            "db_size_bytes": db_size,
            **counts,
        }, indent=2))
    else:
        click.echo(f"Database:     {db_path}")
        click.echo(f"Activities:   {counts['activity_logs']}")
        click.echo(f"Versions:     {counts['page_versions']}")
        click.echo(f"Contents:     {counts['page_contents']}")
        click.echo(f"Usage logs:   {counts['usage_logs']}")
        click.echo(f"Schema:       v{schema}")
        click.echo(f"Initialized:  {initialized}")
        click.echo(f"DB size:      {db_size:,} bytes")
