"""PostgreSQL-backed :class:`ClaimStore` using the async SQLAlchemy session."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, Sequence, Union
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert

from adjudicator.db import Claim, ClaimResultRecord, PipelineJob, async_session
from adjudicator.schemas import (
    ApprovedClaimResult,
    ClaimRecord,
    ClaudeFile,
    DeclinedClaimResult,
    JobStatus,
    PipelineJobInfo,
)
from adjudicator.storage.base import ClaimStore
from adjudicator.storage.formatters import (
    claim_to_row,
    files_to_json,
    result_to_row,
    row_to_claim,
    row_to_result,
)

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SQLClaimStore(ClaimStore):
    """Claim, result and job persistence in PostgreSQL.

    Args:
        session_factory: An ``async_sessionmaker``.  Defaults to the
            module-level session bound to ``settings.database_url``.
    """

    def __init__(self, session_factory=None) -> None:
        self._session_factory = session_factory or async_session

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    async def upsert_claim(self, claim: ClaimRecord) -> None:
        values = claim_to_row(claim)
        stmt = pg_insert(Claim).values(**values)
        # Uploaded handles are owned by update_claude_files.
        refreshed = {
            k: stmt.excluded[k]
            for k in values
            if k not in ("tracking_number", "claude_files")
        }
        refreshed["updated_at"] = _now()
        stmt = stmt.on_conflict_do_update(
            index_elements=[Claim.tracking_number],
            set_=refreshed,
        )
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()

    async def update_claude_files(self, tracking_number: str, files: Sequence[ClaudeFile]) -> None:
        stmt = (
            update(Claim)
            .where(Claim.tracking_number == tracking_number)
            .values(claude_files=files_to_json(files), updated_at=_now())
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
        if result.rowcount == 0:
            raise LookupError(f"Claim {tracking_number} not found")

    async def get_claims(self, tracking_numbers: Sequence[str]) -> list[ClaimRecord]:
        if not tracking_numbers:
            return []
        stmt = (
            select(Claim)
            .where(Claim.tracking_number.in_(list(tracking_numbers)))
            .order_by(Claim.created_at, Claim.tracking_number)
        )
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [row_to_claim(r) for r in rows]

    async def list_claims(self, offset: int = 0, limit: Optional[int] = None) -> list[ClaimRecord]:
        stmt = select(Claim).order_by(Claim.created_at, Claim.tracking_number).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [row_to_claim(r) for r in rows]

    async def count_claims(self) -> int:
        async with self._session_factory() as session:
            return (await session.execute(select(func.count()).select_from(Claim))).scalar_one()

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    async def upsert_result(self, result: Union[ApprovedClaimResult, DeclinedClaimResult]) -> None:
        values = result_to_row(result)
        stmt = pg_insert(ClaimResultRecord).values(**values)
        refreshed = {k: stmt.excluded[k] for k in values if k != "tracking_number"}
        refreshed["updated_at"] = _now()
        stmt = stmt.on_conflict_do_update(
            index_elements=[ClaimResultRecord.tracking_number],
            set_=refreshed,
        )
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()

    async def list_results(self) -> list[Union[ApprovedClaimResult, DeclinedClaimResult]]:
        stmt = select(ClaimResultRecord).order_by(ClaimResultRecord.tracking_number)
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [row_to_result(r) for r in rows]

    # ------------------------------------------------------------------
    # Pipeline jobs
    # ------------------------------------------------------------------

    async def create_job(self, csv_content: str, batch_size: Optional[int] = None) -> PipelineJobInfo:
        job = PipelineJob(status="pending", csv_content=csv_content, batch_size=batch_size)
        async with self._session_factory() as session:
            session.add(job)
            await session.commit()
            await session.refresh(job)
        logger.info("Created pipeline job %s (batch_size=%s)", job.id, batch_size)
        return PipelineJobInfo.model_validate(job)

    async def get_job(self, job_id: UUID) -> Optional[PipelineJobInfo]:
        async with self._session_factory() as session:
            job = await session.get(PipelineJob, job_id)
        return PipelineJobInfo.model_validate(job) if job else None

    async def list_jobs(self) -> list[PipelineJobInfo]:
        stmt = select(PipelineJob).order_by(PipelineJob.created_at.desc())
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
        return [PipelineJobInfo.model_validate(r) for r in rows]

    async def update_job_status(
        self,
        job_id: UUID,
        status: JobStatus,
        error_message: Optional[str] = None,
    ) -> None:
        values = {"status": status, "updated_at": _now()}
        if error_message is not None:
            values["error_message"] = error_message
        await self._update_job(job_id, **values)

    async def increment_processed(self, job_id: UUID) -> None:
        await self._update_job(
            job_id,
            claims_processed=PipelineJob.claims_processed + 1,
            updated_at=_now(),
        )

    async def save_upload_cursor(self, job_id: UUID, next_page: int) -> None:
        await self._update_job(job_id, upload_cursor=next_page, updated_at=_now())

    async def _update_job(self, job_id: UUID, **values) -> None:
        stmt = update(PipelineJob).where(PipelineJob.id == job_id).values(**values)
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()
