"""Paged document upload over stored claims, resumable per page."""

from __future__ import annotations

import logging
import math
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from adjudicator.processing.uploader import DocumentUploader
from adjudicator.storage.base import ClaimStore

logger = logging.getLogger(__name__)


class UploadSummary(BaseModel):
    pages: int = 0
    pages_skipped: int = 0
    claims_uploaded: int = 0
    claims_skipped: int = 0
    persistence_failures: int = 0


async def batch_upload(
    store: ClaimStore,
    uploader: DocumentUploader,
    batch_size: int,
    job_id: Optional[UUID] = None,
    start_page: Optional[int] = None,
) -> UploadSummary:
    """Upload documents for every stored claim, one page at a time.

    Pages follow the store's stable ``(created_at, tracking_number)`` order.
    Claims that already have handles are skipped, so a repeated pass over
    unchanged claims makes no uploads.  When ``job_id`` is given the index of
    the next page is saved on the job after each page is persisted, and a run
    without an explicit ``start_page`` resumes from that saved cursor.

    Args:
        store: Claim storage to page over and write handles back to.
        uploader: Uploader used for each page.
        batch_size: Claims per page; must be at least 1.
        job_id: Pipeline job whose upload cursor tracks progress.
        start_page: Page index to start from, overriding the job cursor.

    Returns:
        Counters for the pass.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1, got {batch_size}")

    if start_page is None:
        start_page = 0
        if job_id is not None:
            job = await store.get_job(job_id)
            if job is not None:
                start_page = job.upload_cursor

    total = await store.count_claims()
    total_pages = math.ceil(total / batch_size)
    summary = UploadSummary()

    if start_page > 0:
        logger.info("Resuming document upload at page %d/%d", start_page + 1, total_pages)

    for page in range(start_page, total_pages):
        offset = page * batch_size
        logger.info(
            "Processing upload page %d/%d (claims %d-%d)",
            page + 1,
            total_pages,
            offset + 1,
            min(offset + batch_size, total),
        )
        claims = await store.list_claims(offset=offset, limit=batch_size)
        summary.pages += 1

        pending = [c for c in claims if not c.has_uploaded_files]
        skipped = len(claims) - len(pending)
        summary.claims_skipped += skipped
        if skipped:
            logger.info("Skipping %d claim(s) that already have uploaded files", skipped)

        if not pending:
            logger.info("Page %d/%d already uploaded, skipping", page + 1, total_pages)
            summary.pages_skipped += 1
        else:
            for claim in await uploader.upload_many(pending):
                try:
                    await store.update_claude_files(claim.tracking_number, claim.claude_files)
                    summary.claims_uploaded += 1
                except Exception:
                    summary.persistence_failures += 1
                    logger.exception(
                        "Failed to save uploaded files for claim %s", claim.tracking_number
                    )

        if job_id is not None:
            await store.save_upload_cursor(job_id, page + 1)

    logger.info(
        "Upload pass finished: %d page(s), %d claim(s) uploaded, %d skipped, %d save failure(s)",
        summary.pages,
        summary.claims_uploaded,
        summary.claims_skipped,
        summary.persistence_failures,
    )
    return summary
