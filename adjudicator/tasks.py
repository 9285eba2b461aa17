"""Adjudicator Celery Tasks — background execution of pipeline jobs.

Each task wraps an async function through the shared ``_run_async`` helper.
Every run gets its own event loop, so the database engine is created per run
with ``NullPool`` rather than sharing the module-level pool across loops.

Task inventory:
    1. run_pipeline_job — drive a submitted pipeline job to completion
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine, TypeVar
from uuid import UUID

from celery import Task
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from adjudicator.analysis.client import ClaudeClient
from adjudicator.analysis.engine import DecisionEngine
from adjudicator.analysis.rules import load_rules
from adjudicator.celery_app import app
from adjudicator.config import settings
from adjudicator.extraction.documents import FilesystemDocumentStore
from adjudicator.processing.orchestrator import run_pipeline
from adjudicator.processing.uploader import DocumentUploader
from adjudicator.storage.sql import SQLClaimStore

logger = logging.getLogger("adjudicator.tasks")

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------


def _run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Execute an async coroutine from a synchronous Celery task.

    Args:
        coro: The coroutine to execute.

    Returns:
        Whatever the coroutine returns.
    """
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Task 1: run_pipeline_job
# ---------------------------------------------------------------------------


@app.task(
    name="adjudicator.tasks.run_pipeline_job",
    bind=True,
    max_retries=0,
)
def run_pipeline_job(self: Task, job_id: str) -> dict:
    """Run the full claims pipeline for a submitted job.

    Loads the job's CSV payload and batch size, then parses, uploads and
    decides every claim.  Progress and the final status are written to the
    job row by the pipeline itself; a failed run leaves the job ``failed``.

    Returns:
        Dict with the run summary counters.
    """
    logger.info("Task: run_pipeline_job started (job=%s)", job_id)
    return _run_async(_run_pipeline_job_async(UUID(job_id)))


async def _run_pipeline_job_async(job_id: UUID) -> dict:
    """Async implementation of the pipeline job task."""
    db_engine = create_async_engine(settings.database_url, poolclass=NullPool)
    try:
        store = SQLClaimStore(async_sessionmaker(db_engine, expire_on_commit=False))
        job = await store.get_job(job_id)
        if job is None:
            logger.error("Pipeline job %s not found", job_id)
            return {"job_id": str(job_id), "status": "missing"}
        if job.status in ("completed", "failed"):
            logger.warning("Pipeline job %s already %s; not rerunning", job_id, job.status)
            return {"job_id": str(job_id), "status": job.status}

        client = ClaudeClient()
        summary = await run_pipeline(
            job.csv_content,
            store,
            DecisionEngine(client, load_rules()),
            DocumentUploader(client),
            FilesystemDocumentStore(settings.documents_path),
            batch_size=job.batch_size or settings.pipeline_batch_size,
            row_limit=settings.pipeline_row_limit,
            job_id=job.id,
        )
        logger.info(
            "Task: run_pipeline_job finished (job=%s, est. cost=$%.2f)",
            job_id,
            client.total_cost_usd,
        )
        return {"status": "completed", **summary.model_dump(mode="json")}
    finally:
        await db_engine.dispose()
