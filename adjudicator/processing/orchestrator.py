"""Batch orchestration — runs claims through both decision phases.

Phase fan-outs are "launch all, wait for all, partition": one claim failing
never cancels or blocks another, and every decision is persisted as soon as
it exists.  :func:`run_pipeline` strings the whole flow together for one CSV
upload and keeps the pipeline job row in step.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field

from adjudicator.analysis.engine import DecisionEngine
from adjudicator.extraction.csv_parser import parse_claims
from adjudicator.extraction.documents import DocumentStore, attach_documents
from adjudicator.processing.batch_upload import UploadSummary, batch_upload
from adjudicator.processing.uploader import DocumentUploader
from adjudicator.schemas import (
    ApprovedClaimResult,
    ClaimRecord,
    DeclinedClaimResult,
    TriagedClaim,
)
from adjudicator.storage.base import ClaimStore

logger = logging.getLogger(__name__)

AnyClaimResult = Union[ApprovedClaimResult, DeclinedClaimResult]
ResultCallback = Callable[[AnyClaimResult], Awaitable[None]]


class PipelineRunSummary(BaseModel):
    """Outcome of one :func:`run_pipeline` call."""

    job_id: Optional[UUID] = None
    claims_parsed: int = 0
    claims_saved: int = 0
    upload: UploadSummary = Field(default_factory=UploadSummary)
    approved: int = 0
    declined: int = 0
    failed: int = 0

    @property
    def results(self) -> int:
        return self.approved + self.declined


# ---------------------------------------------------------------------------
# Decision phases
# ---------------------------------------------------------------------------


async def _save(on_result: Optional[ResultCallback], result: AnyClaimResult) -> None:
    if on_result is None:
        return
    try:
        await on_result(result)
        logger.debug("Saved %s result for claim %s", result.status, result.tracking_number)
    except Exception:
        logger.exception("Failed to save %s result for claim %s", result.status, result.tracking_number)


async def _charges_then_save(
    engine: DecisionEngine,
    claim: ClaimRecord,
    triaged: TriagedClaim,
    on_result: Optional[ResultCallback],
) -> Optional[ApprovedClaimResult]:
    try:
        result = await engine.assess_charges(claim, triaged)
    except Exception:
        logger.exception("Charge adjudication failed for claim %s", claim.tracking_number)
        return None
    await _save(on_result, result)
    return result


async def process_all_claims(
    claims: list[ClaimRecord],
    engine: DecisionEngine,
    on_result: Optional[ResultCallback] = None,
) -> list[AnyClaimResult]:
    """Run triage for every claim, then charge adjudication for approved ones.

    Args:
        claims: Claims with uploaded file handles.
        engine: Decision engine for both phases.
        on_result: Awaited with each final decision as soon as it exists.
            Its failures are logged and do not affect other claims.

    Returns:
        Declined results followed by approved results.  Claims that failed in
        either phase are logged and left out.
    """
    if not claims:
        logger.warning("No claims to process")
        return []

    logger.info("Phase 1: triaging %d claim(s)", len(claims))
    phase1 = await asyncio.gather(
        *(engine.assess_initial(c) for c in claims), return_exceptions=True
    )

    declined: list[DeclinedClaimResult] = []
    pending: list[tuple[ClaimRecord, TriagedClaim]] = []
    errors = 0
    for claim, outcome in zip(claims, phase1):
        if isinstance(outcome, BaseException):
            errors += 1
            logger.error(
                "Triage failed for claim %s: %s",
                claim.tracking_number,
                outcome,
                exc_info=outcome,
            )
        elif isinstance(outcome, DeclinedClaimResult):
            declined.append(outcome)
        else:
            pending.append((claim, outcome))

    logger.info(
        "Phase 1 complete: %d approved, %d declined, %d error(s)",
        len(pending),
        len(declined),
        errors,
    )

    if declined:
        await asyncio.gather(*(_save(on_result, r) for r in declined))

    approved: list[ApprovedClaimResult] = []
    if pending:
        logger.info("Phase 2: adjudicating charges for %d claim(s)", len(pending))
        phase2 = await asyncio.gather(
            *(_charges_then_save(engine, c, t, on_result) for c, t in pending)
        )
        approved = [r for r in phase2 if r is not None]
        logger.info(
            "Phase 2 complete: %d successful, %d error(s)",
            len(approved),
            len(pending) - len(approved),
        )

    results: list[AnyClaimResult] = [*declined, *approved]
    logger.info("Completed processing: %d/%d claim(s) decided", len(results), len(claims))
    return results


# ---------------------------------------------------------------------------
# Full pipeline
# ---------------------------------------------------------------------------


def result_saver(store: ClaimStore, job_id: Optional[UUID] = None) -> ResultCallback:
    """Callback that upserts a decision and bumps the job's processed count."""

    async def _on_result(result: AnyClaimResult) -> None:
        await store.upsert_result(result)
        if job_id is None:
            return
        try:
            await store.increment_processed(job_id)
        except Exception:
            logger.exception(
                "Saved result for claim %s but could not update progress of job %s",
                result.tracking_number,
                job_id,
            )

    return _on_result


async def process_stored_claims(
    store: ClaimStore,
    engine: DecisionEngine,
    tracking_numbers: Optional[list[str]] = None,
    job_id: Optional[UUID] = None,
) -> list[AnyClaimResult]:
    """Decide stored claims (all of them, or just ``tracking_numbers``)."""
    if tracking_numbers is None:
        claims = await store.list_claims()
    else:
        claims = await store.get_claims(tracking_numbers)
    return await process_all_claims(claims, engine, on_result=result_saver(store, job_id))


async def run_pipeline(
    csv_content: Union[str, bytes],
    store: ClaimStore,
    engine: DecisionEngine,
    uploader: DocumentUploader,
    document_store: DocumentStore,
    batch_size: int,
    row_limit: Optional[int] = None,
    job_id: Optional[UUID] = None,
) -> PipelineRunSummary:
    """Parse, persist, upload and decide every claim in a CSV export.

    When ``job_id`` is given the job moves to ``processing``, its processed
    count grows with every saved decision, and it ends ``completed`` or, if
    anything escapes the run, ``failed`` with the error message.

    Raises:
        Exception: Whatever aborted the run, after the job is marked failed.
    """
    summary = PipelineRunSummary(job_id=job_id)
    try:
        if job_id is not None:
            await store.update_job_status(job_id, "processing")

        claims = parse_claims(csv_content, row_limit=row_limit)
        summary.claims_parsed = len(claims)
        claims = await attach_documents(claims, document_store)

        for claim in claims:
            try:
                await store.upsert_claim(claim)
                summary.claims_saved += 1
            except Exception:
                logger.exception("Failed to save claim %s", claim.tracking_number)
        logger.info("Saved %d/%d claim(s)", summary.claims_saved, len(claims))

        summary.upload = await batch_upload(store, uploader, batch_size, job_id=job_id)

        stored = await store.get_claims([c.tracking_number for c in claims])
        results = await process_all_claims(stored, engine, on_result=result_saver(store, job_id))
        summary.approved = sum(1 for r in results if r.status == "approved")
        summary.declined = len(results) - summary.approved
        summary.failed = len(stored) - len(results)

        if job_id is not None:
            await store.update_job_status(job_id, "completed")
    except Exception as exc:
        logger.exception("Pipeline run failed%s", f" (job {job_id})" if job_id else "")
        if job_id is not None:
            try:
                await store.update_job_status(job_id, "failed", error_message=str(exc))
            except Exception:
                logger.exception("Could not mark job %s as failed", job_id)
        raise

    logger.info(
        "Pipeline finished: %d parsed, %d approved, %d declined, %d failed",
        summary.claims_parsed,
        summary.approved,
        summary.declined,
        summary.failed,
    )
    return summary
