"""Adjudicator Processing Layer — document upload and batch orchestration.

- ``DocumentUploader``: per-claim document upload to the Files API
- ``batch_upload``: paged, resumable upload over stored claims
- ``process_all_claims`` / ``run_pipeline``: two-phase decisioning and the
  end-to-end CSV pipeline
"""

from adjudicator.processing.batch_upload import UploadSummary, batch_upload
from adjudicator.processing.orchestrator import (
    PipelineRunSummary,
    process_all_claims,
    process_stored_claims,
    run_pipeline,
)
from adjudicator.processing.uploader import DocumentUploader

__all__ = [
    "DocumentUploader",
    "PipelineRunSummary",
    "UploadSummary",
    "batch_upload",
    "process_all_claims",
    "process_stored_claims",
    "run_pipeline",
]
