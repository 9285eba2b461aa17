"""Adjudicator FastAPI application — pipeline job submission and reporting.

Endpoints
---------
POST  /v1/pipeline/jobs            — submit a claims CSV for processing
GET   /v1/pipeline/jobs            — list pipeline jobs, newest first
GET   /v1/pipeline/jobs/{job_id}   — status and progress of one job
GET   /v1/accuracy                 — decision accuracy against ground truth
GET   /v1/health                   — system health check

Submitted jobs run in the Celery worker (:mod:`adjudicator.tasks`); the API
only creates the job row and enqueues it.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator
from uuid import UUID

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from adjudicator import __version__
from adjudicator.api.schemas import (
    AccuracyResponse,
    HealthResponse,
    JobCreatedResponse,
    PipelineJobCreate,
    PipelineJobResponse,
)
from adjudicator.config import settings
from adjudicator.metrics.accuracy import calculate_all_claim_accuracies
from adjudicator.storage.base import ClaimStore
from adjudicator.storage.sql import SQLClaimStore
from adjudicator.tasks import run_pipeline_job

logger = logging.getLogger("adjudicator.api")

# ---------------------------------------------------------------------------
# Application state
# ---------------------------------------------------------------------------

_engine: AsyncEngine | None = None
_store: ClaimStore | None = None


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create the database engine and claim store; dispose the pool on shutdown."""
    global _engine, _store

    logger.info("Adjudicator API starting up (version=%s)", __version__)

    _engine = create_async_engine(
        settings.database_url,
        pool_size=10,
        max_overflow=20,
        echo=False,
    )
    _store = SQLClaimStore(async_sessionmaker(_engine, expire_on_commit=False))

    yield

    logger.info("Adjudicator API shutting down")
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _store = None
    logger.info("Database pool disposed")


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Adjudicator Claims Pipeline API",
    description=(
        "Submit security deposit insurance claim exports for AI adjudication "
        "and track pipeline progress and decision accuracy."
    ),
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS: any origin for the internal web UI
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Middleware: request logging
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every inbound request with timing."""
    start = time.monotonic()
    response = await call_next(request)
    elapsed_ms = (time.monotonic() - start) * 1000
    logger.info(
        "%s %s → %d (%.1fms)",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
    )
    return response


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------


def get_store() -> ClaimStore:
    """Return the application-level claim store or raise 503."""
    if _store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Claim store not initialised.",
        )
    return _store


def _get_engine() -> AsyncEngine:
    """Return the application-level AsyncEngine or raise 503."""
    if _engine is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database engine not initialised.",
        )
    return _engine


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.post(
    "/v1/pipeline/jobs",
    response_model=JobCreatedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Submit a claims CSV for processing",
    tags=["Pipeline"],
)
async def create_pipeline_job(
    body: PipelineJobCreate,
    store: ClaimStore = Depends(get_store),
) -> JobCreatedResponse:
    """Create a ``pending`` job for the CSV and hand it to the worker."""
    batch_size = body.batch_size or settings.pipeline_batch_size
    job = await store.create_job(body.csv, batch_size=batch_size)

    try:
        run_pipeline_job.delay(str(job.id))
    except Exception as exc:
        logger.exception("Could not enqueue pipeline job %s", job.id)
        await store.update_job_status(job.id, "failed", error_message=f"Enqueue failed: {exc}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Job queue unavailable.",
        ) from exc

    logger.info("Enqueued pipeline job %s (batch_size=%d)", job.id, batch_size)
    return JobCreatedResponse(job_id=job.id, status=job.status)


@app.get(
    "/v1/pipeline/jobs",
    response_model=list[PipelineJobResponse],
    summary="List pipeline jobs",
    tags=["Pipeline"],
)
async def list_pipeline_jobs(
    store: ClaimStore = Depends(get_store),
) -> list[PipelineJobResponse]:
    """Return every pipeline job, newest first."""
    jobs = await store.list_jobs()
    return [PipelineJobResponse.model_validate(j.model_dump()) for j in jobs]


@app.get(
    "/v1/pipeline/jobs/{job_id}",
    response_model=PipelineJobResponse,
    summary="Pipeline job status",
    tags=["Pipeline"],
)
async def get_pipeline_job(
    job_id: UUID,
    store: ClaimStore = Depends(get_store),
) -> PipelineJobResponse:
    job = await store.get_job(job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Pipeline job {job_id} not found.",
        )
    return PipelineJobResponse.model_validate(job.model_dump())


@app.get(
    "/v1/accuracy",
    response_model=AccuracyResponse,
    summary="Decision accuracy against ground truth",
    tags=["Metrics"],
)
async def get_accuracy(
    store: ClaimStore = Depends(get_store),
) -> AccuracyResponse:
    """Score every stored decision whose claim has a recorded approved benefit."""
    claims = await store.list_claims()
    results = await store.list_results()
    accuracies, metrics = calculate_all_claim_accuracies(claims, results)
    return AccuracyResponse(metrics=metrics, claims=accuracies)


@app.get(
    "/v1/health",
    response_model=HealthResponse,
    summary="System health check",
    tags=["System"],
)
async def health_check() -> HealthResponse:
    """Return database connectivity and row counts."""
    db_engine = _get_engine()

    try:
        async with db_engine.connect() as conn:
            claims_loaded = (await conn.execute(text("SELECT COUNT(*) FROM claims"))).scalar() or 0
            results_stored = (
                await conn.execute(text("SELECT COUNT(*) FROM claim_results"))
            ).scalar() or 0

        return HealthResponse(
            status="ok",
            version=__version__,
            claims_loaded=int(claims_loaded),
            results_stored=int(results_stored),
        )

    except Exception as exc:
        logger.exception("Health check database error: %s", exc)
        return HealthResponse(status="error", version=__version__)
