#!/usr/bin/env python3
"""CLI interface for the Harvest → Linear estimate reconciliation."""

import json
import logging
import os
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated, Any

import typer
from dotenv import load_dotenv
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from timerecon.checkpoint import (
    WATERMARK_KEY,
    SqlCheckpointStore,
    format_timestamp,
    init_schema,
    parse_timestamp,
)
from timerecon.config import (
    Settings,
    load_settings_from_env,
    load_status_labels,
    normalize_database_url,
)
from timerecon.demo import run_demo
from timerecon.handlers import run_once
from timerecon.models import RunSummary

app = typer.Typer(
    name="timerecon",
    help="Reconcile Harvest time entries against Linear estimates",
    no_args_is_help=True,
)


def _mark_success() -> str:
    """Return success indicator (emoji or plain text based on TIMERECON_PLAIN env var)."""
    return "" if os.getenv("TIMERECON_PLAIN") == "1" else "✅"


def _mark_error() -> str:
    """Return error indicator (emoji or plain text based on TIMERECON_PLAIN env var)."""
    return "" if os.getenv("TIMERECON_PLAIN") == "1" else "❌"


@app.callback()
def _load_env() -> None:
    # Skip dotenv loading in tests/CI for hermetic environments
    if os.getenv("TIMERECON_SKIP_DOTENV") != "1":
        load_dotenv(override=False)  # Never override already-set env in CI/tests

    logging.basicConfig(
        level=os.getenv("TIMERECON_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _require_database_url() -> str:
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        typer.echo(f"{_mark_error()} DATABASE_URL not found in environment", err=True)
        raise typer.Exit(2)
    return normalize_database_url(database_url)


def _require_settings() -> Settings:
    try:
        return load_settings_from_env()
    except ValueError as e:
        typer.echo(f"{_mark_error()} Invalid configuration: {e}", err=True)
        raise typer.Exit(2) from e


def _echo_summary(summary: RunSummary) -> None:
    typer.echo(summary.message)
    typer.echo(
        f"Fetched {summary.fetched}, relevant {summary.relevant}: "
        f"{summary.annotated} annotated, {summary.skipped} skipped, "
        f"{summary.failed} failed"
    )
    typer.echo(f"Watermark: {summary.previous_watermark} → {summary.watermark}")


def _write_summary(summary: RunSummary, out: str) -> None:
    out_path = Path(out)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("w") as f:
        json.dump(summary.model_dump(mode="json"), f, indent=2)


def _log_sync_event(
    engine: Engine,
    summary: RunSummary | None,
    error: str | None,
    timestamps: dict[str, str],
) -> None:
    """Log sync event for audit trail."""
    if summary is not None:
        details: dict[str, Any] = summary.model_dump(mode="json", exclude={"outcomes"})
        success = summary.success
    else:
        # Exception case - minimal error info
        details = {"error": error or "Exception during reconciliation"}
        success = False

    with engine.begin() as conn:
        conn.execute(
            text(
                """
                INSERT INTO sync_events (
                    id, event_type, success, summary, started_at, finished_at
                )
                VALUES (
                    :id, :event_type, :success, :summary, :started_at, :finished_at
                )
                """
            ),
            {
                "id": str(uuid.uuid4()),
                "event_type": "reconcile",
                "success": success,
                "summary": json.dumps(details),
                "started_at": timestamps["started_at"],
                "finished_at": timestamps["finished_at"],
            },
        )


@app.command("init-db")
def init_db() -> None:
    """Initialize checkpoint and audit tables from timerecon/schema.sql."""
    database_url = _require_database_url()

    try:
        init_schema(create_engine(database_url))
        typer.echo(f"{_mark_success()} Database schema initialized successfully")
    except SQLAlchemyError as e:
        typer.echo(f"{_mark_error()} Database error: {e}", err=True)
        raise typer.Exit(1) from e


@app.command("run")
def run(
    out: Annotated[
        str | None,
        typer.Option("--out", help="Write the run summary as JSON to this file"),
    ] = None,
) -> None:
    """Run one reconciliation pass (the scheduled job)."""
    settings = _require_settings()
    engine = create_engine(settings.database_url)

    started_at = datetime.now(UTC).isoformat()
    summary: RunSummary | None = None
    error: str | None = None

    try:
        summary = run_once(settings, engine=engine)
        if out:
            _write_summary(summary, out)
        _echo_summary(summary)

        if not summary.success:
            typer.echo(
                f"{_mark_error()} {summary.failed} entries could not be annotated",
                err=True,
            )
            raise typer.Exit(1)
        typer.echo(f"{_mark_success()} Reconciliation complete")

    except typer.Exit:
        # Propagate intended exit codes without wrapping
        raise
    except Exception as e:
        error = str(e)
        typer.echo(f"{_mark_error()} Error processing time entries: {e}", err=True)
        raise typer.Exit(1) from e
    finally:
        # Always record the run (success or failure) for the audit trail
        try:
            finished_at = datetime.now(UTC).isoformat()
            _log_sync_event(
                engine,
                summary,
                error,
                {"started_at": started_at, "finished_at": finished_at},
            )
        except Exception as log_error:
            # Do not fail the run command if event logging fails
            typer.echo(f"WARNING: sync event logging failed: {log_error}", err=True)
        engine.dispose()


@app.command("status")
def status() -> None:
    """Show the stored watermark."""
    database_url = _require_database_url()

    try:
        value = SqlCheckpointStore(create_engine(database_url)).get(WATERMARK_KEY)
    except Exception as e:
        typer.echo(f"{_mark_error()} Failed to read watermark: {e}", err=True)
        raise typer.Exit(1) from e

    if value is None:
        typer.echo("No watermark yet (the first run starts from now).")
    else:
        typer.echo(f"Watermark: {value}")


@app.command("set-watermark")
def set_watermark(
    to: Annotated[str, typer.Option("--to", help="ISO-8601 timestamp")],
) -> None:
    """Overwrite the watermark, e.g. to replay a window."""
    try:
        value = format_timestamp(parse_timestamp(to))
    except ValueError:
        typer.echo(
            f"{_mark_error()} Invalid timestamp: {to}. Use ISO-8601, "
            "e.g. 2024-01-01T00:00:00Z",
            err=True,
        )
        raise typer.Exit(1) from None

    database_url = _require_database_url()

    try:
        SqlCheckpointStore(create_engine(database_url)).put(WATERMARK_KEY, value)
    except Exception as e:
        typer.echo(f"{_mark_error()} Failed to write watermark: {e}", err=True)
        raise typer.Exit(1) from e

    typer.echo(f"{_mark_success()} Watermark set to {value}")


@app.command("demo")
def demo(
    out: Annotated[
        str,
        typer.Option("--out", help="Output directory for the demo summary"),
    ] = "build",
) -> None:
    """Run an offline pass over fixture data (no credentials required)."""
    os.environ["TZ"] = "UTC"
    os.environ["TIMERECON_NO_EGRESS"] = "1"  # Block all HTTP calls

    try:
        typer.echo("🚀 Starting offline demo (in-memory checkpoints + fixtures)...")
        summary, tracker = run_demo(load_status_labels())

        out_path = Path(out)
        out_path.mkdir(parents=True, exist_ok=True)
        summary_file = out_path / "demo_summary.json"
        _write_summary(summary, str(summary_file))

        for annotation in tracker.annotations:
            typer.echo(f"[{annotation['issue_id']}] {annotation['comment']}")

        _echo_summary(summary)
        typer.echo(f"{_mark_success()} Summary: {summary_file}")
    except Exception as e:
        typer.echo(f"{_mark_error()} Demo failed: {e}", err=True)
        raise typer.Exit(1) from e


if __name__ == "__main__":
    app()
