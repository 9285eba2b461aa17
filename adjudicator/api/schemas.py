"""Pydantic schemas for the Adjudicator API request/response models.

These schemas are decoupled from the storage read models so that the public
API surface can evolve independently of the pipeline.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from adjudicator.metrics.accuracy import AccuracyMetrics, ClaimAccuracy


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------


class PipelineJobCreate(BaseModel):
    """Body of ``POST /v1/pipeline/jobs``.

    Attributes
    ----------
    csv:
        Full text of the claims CSV export, header row included.
    batch_size:
        Claims per document-upload page.  Defaults to
        ``settings.pipeline_batch_size``.
    """

    csv: str = Field(..., min_length=1, description="Claims CSV content")
    batch_size: Optional[int] = Field(None, ge=1, description="Claims per upload page")


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class JobCreatedResponse(BaseModel):
    job_id: UUID
    status: str


class PipelineJobResponse(BaseModel):
    """A pipeline job's progress, without its CSV payload."""

    id: UUID
    status: Literal["pending", "processing", "completed", "failed"]
    batch_size: Optional[int] = None
    claims_processed: int = 0
    upload_cursor: int = 0
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class AccuracyResponse(BaseModel):
    metrics: AccuracyMetrics
    claims: list[ClaimAccuracy] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Response for GET /v1/health.

    Attributes
    ----------
    status:
        ``"ok"`` | ``"error"``.
    version:
        Adjudicator version string.
    claims_loaded:
        Number of claim rows in the database.
    results_stored:
        Number of stored decisions.
    """

    status: str
    version: str
    claims_loaded: int = 0
    results_stored: int = 0
