"""Adjudicator CLI — Command-line interface for the claims adjudication pipeline.

Provides commands for running the full pipeline on a claims CSV, uploading
documents, deciding stored claims, accuracy reporting, job inspection, Claude
file cleanup and serving the API.  Uses Typer for argument parsing and Rich
for formatted terminal output.

Usage::

    python -m adjudicator.cli --help
    python -m adjudicator.cli init-db
    python -m adjudicator.cli run data/claims.csv --batch-size 25
    python -m adjudicator.cli accuracy --output data/accuracy.txt
    python -m adjudicator.cli serve
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich import box

from adjudicator.config import settings

# ---------------------------------------------------------------------------
# App & console setup
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="adjudicator",
    help="Adjudicator CLI — AI adjudication of security deposit insurance claims.",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()
err_console = Console(stderr=True, style="bold red")

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("adjudicator.cli")

# ---------------------------------------------------------------------------
# Async bridge & wiring
# ---------------------------------------------------------------------------


def _run(coro):
    """Execute a coroutine from synchronous CLI context."""
    return asyncio.run(coro)


def _build_pipeline(rules_path: Optional[Path] = None):
    """Claude client, decision engine and uploader sharing one client."""
    from adjudicator.analysis import ClaudeClient, DecisionEngine, load_rules
    from adjudicator.processing import DocumentUploader

    client = ClaudeClient()
    return client, DecisionEngine(client, load_rules(rules_path)), DocumentUploader(client)


def _summary_table(title: str, rows: list[tuple[str, object]]) -> Table:
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", style="green", justify="right")
    for label, value in rows:
        table.add_row(label, str(value))
    return table


# ---------------------------------------------------------------------------
# Command: init-db
# ---------------------------------------------------------------------------


@app.command("init-db")
def init_db() -> None:
    """Create the claims, claim_results and pipeline_jobs tables if missing."""
    try:
        from adjudicator.db import Base, engine

        async def _create():
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            await engine.dispose()

        _run(_create())
        console.print("[green]Database tables ready.[/green]")
    except Exception as exc:
        err_console.print(f"Database initialisation failed: {exc}")
        logger.exception("CLI init-db command failed")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Command: run
# ---------------------------------------------------------------------------


@app.command("run")
def run(
    csv_path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Claims CSV export"),
    batch_size: int = typer.Option(
        settings.pipeline_batch_size, "--batch-size", "-b", min=1, help="Claims per upload page"
    ),
    row_limit: Optional[int] = typer.Option(
        settings.pipeline_row_limit, "--row-limit", "-n", min=1, help="Only read the first N data rows"
    ),
    documents: Path = typer.Option(
        Path(settings.documents_path), "--documents", "-d", help="Root folder of per-claim documents"
    ),
    rules: Optional[Path] = typer.Option(None, "--rules", help="JSON rules override"),
) -> None:
    """Run the full pipeline: parse, save, upload, triage and adjudicate.

    Examples:

      adjudicator run data/claims.csv

      adjudicator run data/claims.csv --row-limit 5 --batch-size 5
    """
    console.print(
        Panel(
            f"[bold cyan]Claims Pipeline[/bold cyan]\n"
            f"CSV: [yellow]{csv_path}[/yellow]  "
            f"Batch size: [yellow]{batch_size}[/yellow]  "
            f"Row limit: [yellow]{row_limit or 'all'}[/yellow]",
            title="Run",
            expand=False,
        )
    )

    try:
        from adjudicator.extraction import FilesystemDocumentStore
        from adjudicator.processing import run_pipeline
        from adjudicator.storage.sql import SQLClaimStore

        client, engine, uploader = _build_pipeline(rules)
        store = SQLClaimStore()

        async def _go():
            job = await store.create_job(csv_path.read_text(encoding="utf-8-sig"), batch_size)
            summary = await run_pipeline(
                job.csv_content,
                store,
                engine,
                uploader,
                FilesystemDocumentStore(documents),
                batch_size=batch_size,
                row_limit=row_limit,
                job_id=job.id,
            )
            return job, summary

        with console.status("[bold green]Processing claims...[/bold green]"):
            job, summary = _run(_go())

        console.print(
            _summary_table(
                "Pipeline Results",
                [
                    ("Job", job.id),
                    ("Claims Parsed", summary.claims_parsed),
                    ("Claims Saved", summary.claims_saved),
                    ("Claims Uploaded", summary.upload.claims_uploaded),
                    ("Approved", summary.approved),
                    ("Declined", summary.declined),
                    ("Failed", summary.failed),
                    ("Est. Claude Cost", f"${client.total_cost_usd:.2f}"),
                ],
            )
        )

    except Exception as exc:
        err_console.print(f"Pipeline failed: {exc}")
        logger.exception("CLI run command failed")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Command: upload
# ---------------------------------------------------------------------------


@app.command("upload")
def upload(
    batch_size: int = typer.Option(
        settings.pipeline_batch_size, "--batch-size", "-b", min=1, help="Claims per upload page"
    ),
    start_page: int = typer.Option(0, "--start-page", min=0, help="Page index to resume from"),
) -> None:
    """Upload documents for stored claims that have no Claude files yet."""
    try:
        from adjudicator.analysis import ClaudeClient
        from adjudicator.processing import DocumentUploader, batch_upload
        from adjudicator.storage.sql import SQLClaimStore

        uploader = DocumentUploader(ClaudeClient())
        with console.status("[bold green]Uploading documents...[/bold green]"):
            summary = _run(batch_upload(SQLClaimStore(), uploader, batch_size, start_page=start_page))

        console.print(
            _summary_table(
                "Upload Results",
                [
                    ("Pages", summary.pages),
                    ("Pages Skipped", summary.pages_skipped),
                    ("Claims Uploaded", summary.claims_uploaded),
                    ("Claims Skipped", summary.claims_skipped),
                    ("Save Failures", summary.persistence_failures),
                ],
            )
        )

    except Exception as exc:
        err_console.print(f"Upload failed: {exc}")
        logger.exception("CLI upload command failed")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Command: process
# ---------------------------------------------------------------------------


@app.command("process")
def process(
    tracking: Optional[list[str]] = typer.Option(
        None, "--tracking", "-t", help="Tracking number to process (repeatable; default: all)"
    ),
    rules: Optional[Path] = typer.Option(None, "--rules", help="JSON rules override"),
) -> None:
    """Run triage and charge adjudication over stored claims."""
    try:
        from adjudicator.processing import process_stored_claims
        from adjudicator.storage.sql import SQLClaimStore

        client, engine, _ = _build_pipeline(rules)
        with console.status("[bold green]Deciding claims...[/bold green]"):
            results = _run(process_stored_claims(SQLClaimStore(), engine, tracking_numbers=tracking or None))

        table = Table(title="Decisions", box=box.ROUNDED)
        table.add_column("Tracking #", style="cyan", no_wrap=True)
        table.add_column("Tenant")
        table.add_column("Status")
        table.add_column("Approved Total", justify="right")
        table.add_column("Payout", justify="right", style="green")
        for r in results:
            color = "green" if r.status == "approved" else "red"
            table.add_row(
                r.tracking_number,
                r.tenant_name[:30],
                f"[{color}]{r.status}[/{color}]",
                f"${r.approved_charges_total:,.2f}",
                f"${r.final_payout:,.2f}",
            )
        console.print(table)
        console.print(f"Est. Claude cost: [bold]${client.total_cost_usd:.2f}[/bold]")

    except Exception as exc:
        err_console.print(f"Processing failed: {exc}")
        logger.exception("CLI process command failed")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Command: accuracy
# ---------------------------------------------------------------------------


@app.command("accuracy")
def accuracy(
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Also write the text report to this file"
    ),
) -> None:
    """Compare stored decisions with the ground-truth approved benefit amounts."""
    try:
        from adjudicator.metrics import (
            calculate_all_claim_accuracies,
            format_accuracy_report,
            save_accuracy_report,
        )
        from adjudicator.storage.sql import SQLClaimStore

        store = SQLClaimStore()

        async def _load():
            return await store.list_claims(), await store.list_results()

        claims, results = _run(_load())
        accuracies, metrics = calculate_all_claim_accuracies(claims, results)

        if metrics.total_claims == 0:
            console.print("[yellow]No decided claims with ground truth to score.[/yellow]")
            return

        console.print(format_accuracy_report(metrics, accuracies))
        if output is not None:
            path = save_accuracy_report(metrics, accuracies, output)
            console.print(f"[green]Report written to {path}[/green]")

    except Exception as exc:
        err_console.print(f"Accuracy report failed: {exc}")
        logger.exception("CLI accuracy command failed")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Command: jobs
# ---------------------------------------------------------------------------


@app.command("jobs")
def jobs() -> None:
    """List pipeline jobs, newest first."""
    try:
        from adjudicator.storage.sql import SQLClaimStore

        rows = _run(SQLClaimStore().list_jobs())
        if not rows:
            console.print("[yellow]No pipeline jobs found.[/yellow]")
            return

        status_colors = {
            "pending": "white",
            "processing": "yellow",
            "completed": "green",
            "failed": "red",
        }
        table = Table(title="Pipeline Jobs", box=box.ROUNDED)
        table.add_column("Job ID", style="cyan", no_wrap=True)
        table.add_column("Status")
        table.add_column("Processed", justify="right")
        table.add_column("Upload Page", justify="right")
        table.add_column("Created", width=20)
        table.add_column("Error")
        for job in rows:
            color = status_colors.get(job.status, "white")
            table.add_row(
                str(job.id),
                f"[{color}]{job.status}[/{color}]",
                str(job.claims_processed),
                str(job.upload_cursor),
                job.created_at.strftime("%Y-%m-%d %H:%M:%S"),
                (job.error_message or "")[:60],
            )
        console.print(table)

    except Exception as exc:
        err_console.print(f"Job listing failed: {exc}")
        logger.exception("CLI jobs command failed")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Command: cleanup-files
# ---------------------------------------------------------------------------


@app.command("cleanup-files")
def cleanup_files(
    yes: bool = typer.Option(False, "--yes", "-y", is_flag=True, help="Skip the confirmation prompt"),
) -> None:
    """Delete every Claude file referenced by stored claims from the Files API.

    Stored handles are left in place; deleted files cannot be analysed again.
    """
    if not yes:
        typer.confirm("Delete all uploaded Claude files?", abort=True)

    try:
        from adjudicator.analysis import ClaudeClient
        from adjudicator.storage.sql import SQLClaimStore

        client = ClaudeClient()
        store = SQLClaimStore()

        async def _cleanup() -> tuple[int, int]:
            deleted = failed = 0
            for claim in await store.list_claims():
                for handle in claim.claude_files:
                    try:
                        await client.delete_file(handle.id)
                        deleted += 1
                        logger.info("Deleted %s (%s) for claim %s", handle.filename, handle.id, claim.tracking_number)
                    except Exception as exc:
                        failed += 1
                        logger.error("Failed to delete file %s: %s", handle.id, exc)
            return deleted, failed

        with console.status("[bold green]Deleting Claude files...[/bold green]"):
            deleted, failed = _run(_cleanup())

        console.print(
            _summary_table(
                "Cleanup Summary",
                [("Files Processed", deleted + failed), ("Deleted", deleted), ("Failed", failed)],
            )
        )
        if failed:
            raise typer.Exit(1)

    except typer.Exit:
        raise
    except Exception as exc:
        err_console.print(f"Cleanup failed: {exc}")
        logger.exception("CLI cleanup-files command failed")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Command: serve
# ---------------------------------------------------------------------------


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Bind address"),
    port: int = typer.Option(settings.api_port, "--port", "-p", help="Bind port"),
) -> None:
    """Serve the pipeline API with uvicorn."""
    import uvicorn

    uvicorn.run("adjudicator.api.routes:app", host=host, port=port, log_level=settings.log_level.lower())


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    app()
