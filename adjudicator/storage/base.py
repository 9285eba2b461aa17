"""Abstract persistence boundary for claims, decisions and pipeline jobs.

The orchestration layers depend only on :class:`ClaimStore`; the PostgreSQL
implementation lives in :mod:`adjudicator.storage.sql`.  Every write is an
independent upsert keyed by tracking number, so concurrent saves from the
decision phases never contend on anything but their own row.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Sequence, Union
from uuid import UUID

from adjudicator.schemas import (
    ApprovedClaimResult,
    ClaimRecord,
    ClaudeFile,
    DeclinedClaimResult,
    JobStatus,
    PipelineJobInfo,
)


class ClaimStore(ABC):
    """Storage contract used by the uploader, orchestrator and evaluator."""

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    @abstractmethod
    async def upsert_claim(self, claim: ClaimRecord) -> None:
        """Insert or replace a claim by tracking number.

        The stored ``claude_files`` list is never overwritten by an upsert;
        handles change only through :meth:`update_claude_files`.
        """

    @abstractmethod
    async def update_claude_files(self, tracking_number: str, files: Sequence[ClaudeFile]) -> None:
        """Replace the uploaded file handles of one claim."""

    @abstractmethod
    async def get_claims(self, tracking_numbers: Sequence[str]) -> list[ClaimRecord]:
        """Return the stored claims for ``tracking_numbers`` (unknown ones omitted)."""

    @abstractmethod
    async def list_claims(self, offset: int = 0, limit: Optional[int] = None) -> list[ClaimRecord]:
        """Return claims ordered by ``(created_at, tracking_number)``."""

    @abstractmethod
    async def count_claims(self) -> int:
        ...

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    @abstractmethod
    async def upsert_result(self, result: Union[ApprovedClaimResult, DeclinedClaimResult]) -> None:
        """Insert or fully replace the decision for a tracking number."""

    @abstractmethod
    async def list_results(self) -> list[Union[ApprovedClaimResult, DeclinedClaimResult]]:
        ...

    # ------------------------------------------------------------------
    # Pipeline jobs
    # ------------------------------------------------------------------

    @abstractmethod
    async def create_job(self, csv_content: str, batch_size: Optional[int] = None) -> PipelineJobInfo:
        """Create a ``pending`` job row."""

    @abstractmethod
    async def get_job(self, job_id: UUID) -> Optional[PipelineJobInfo]:
        ...

    @abstractmethod
    async def list_jobs(self) -> list[PipelineJobInfo]:
        """Return all jobs, newest first."""

    @abstractmethod
    async def update_job_status(
        self,
        job_id: UUID,
        status: JobStatus,
        error_message: Optional[str] = None,
    ) -> None:
        ...

    @abstractmethod
    async def increment_processed(self, job_id: UUID) -> None:
        """Atomically add one to the job's ``claims_processed`` counter."""

    @abstractmethod
    async def save_upload_cursor(self, job_id: UUID, next_page: int) -> None:
        """Record the index of the next document-upload page to run."""
