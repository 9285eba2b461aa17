"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import json
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Sequence, Union

import pytest

from adjudicator.analysis.client import ModelReply
from adjudicator.schemas import (
    ApprovedClaimResult,
    ClaimRecord,
    ClaudeFile,
    DeclinedClaimResult,
    Document,
    PipelineJobInfo,
)
from adjudicator.storage.base import ClaimStore

_T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_file(file_id: str, filename: str = "doc.pdf", mime_type: str = "application/pdf") -> ClaudeFile:
    return ClaudeFile(
        id=file_id,
        filename=filename,
        mime_type=mime_type,
        size_bytes=1024,
        created_at=_T0,
    )


def make_claim(
    tracking_number: str,
    documents: int = 0,
    files: int = 0,
    max_benefit: Optional[float] = 2500.0,
    monthly_rent: Optional[float] = 1200.0,
    approved_benefit_amount: Optional[float] = None,
) -> ClaimRecord:
    return ClaimRecord(
        tracking_number=tracking_number,
        claim_date="01/15/24",
        property_address="100 Main St, Springfield, IL, 62701",
        monthly_rent=monthly_rent,
        max_benefit=max_benefit,
        status="posted",
        approved_benefit_amount=approved_benefit_amount,
        documents=[
            Document(name=f"doc{i}.pdf", path=f"/docs/{tracking_number}/doc{i}.pdf")
            for i in range(documents)
        ],
        claude_files=[make_file(f"file_{tracking_number}_{i}") for i in range(files)],
    )


def initial_reply(status: str = "approved", missing: Sequence[str] = (), **overrides) -> str:
    payload = {
        "tenant_name": "Jane Doe",
        "status": status,
        "is_first_month_paid": status == "approved",
        "first_month_paid_evidence": "Ledger shows rent payment on 01/01/24",
        "is_first_month_sdi_premium_paid": status == "approved",
        "first_month_sdi_premium_paid_evidence": "SDRP Monthly Premium paid 01/01/24",
        "missing_required_documents": list(missing),
        "submitted_documents": [
            {"name": "lease.pdf", "path": "/docs/lease.pdf", "types": ["lease_agreement"]}
        ],
        "decision_summary": "",
    }
    payload.update(overrides)
    return json.dumps(payload)


def charges_reply(approved: Sequence[float] = (100.0,), excluded: Sequence[float] = (), summary="Approved.") -> str:
    return json.dumps(
        {
            "approved_charges": [
                {"description": f"Cleaning {i}", "amount": a, "category": "cleaning"}
                for i, a in enumerate(approved)
            ],
            "excluded_charges": [
                {"description": f"Late fee {i}", "amount": a, "category": "late_fee"}
                for i, a in enumerate(excluded)
            ],
            "decision_summary": summary,
        }
    )


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeClaude:
    """Scripted stand-in for :class:`ClaudeClient`.

    ``initial`` and ``charges`` map tracking numbers to a reply text or an
    exception to raise.  Every call is recorded in ``calls``.
    """

    def __init__(self, initial=None, charges=None, stop_reason: str = "end_turn") -> None:
        self.initial: dict[str, Union[str, Exception]] = dict(initial or {})
        self.charges: dict[str, Union[str, Exception]] = dict(charges or {})
        self.stop_reason = stop_reason
        self.calls: list[tuple[str, str, list[str]]] = []
        self.uploads: list[str] = []
        self.fail_paths: set[str] = set()

    async def complete(self, prompt: str, files: Sequence[ClaudeFile]) -> ModelReply:
        tracking = re.search(r"Tracking Number: (\S+)", prompt).group(1)
        phase = "charges" if "EXTRACT ALL CHARGES" in prompt else "initial"
        self.calls.append((phase, tracking, [f.id for f in files]))
        outcome = (self.charges if phase == "charges" else self.initial)[tracking]
        if isinstance(outcome, Exception):
            raise outcome
        return ModelReply(text=outcome, stop_reason=self.stop_reason)

    async def upload_file(self, path) -> ClaudeFile:
        path = str(path)
        self.uploads.append(path)
        if path in self.fail_paths:
            raise RuntimeError(f"upload rejected: {path}")
        return make_file(f"file-{len(self.uploads)}", filename=path.rsplit("/", 1)[-1])


class InMemoryClaimStore(ClaimStore):
    """Dict-backed :class:`ClaimStore` with the same upsert semantics as SQL."""

    def __init__(self) -> None:
        self.claims: dict[str, ClaimRecord] = {}
        self.results: dict[str, Union[ApprovedClaimResult, DeclinedClaimResult]] = {}
        self.jobs: dict[uuid.UUID, PipelineJobInfo] = {}
        self.fail_result_saves: set[str] = set()
        self.fail_file_saves: set[str] = set()
        self.cursor_writes: list[int] = []

    async def upsert_claim(self, claim: ClaimRecord) -> None:
        existing = self.claims.get(claim.tracking_number)
        if existing is not None:
            claim = claim.model_copy(update={"claude_files": existing.claude_files})
            # Keep insertion position so paging order stays stable.
        self.claims[claim.tracking_number] = claim

    async def update_claude_files(self, tracking_number: str, files: Sequence[ClaudeFile]) -> None:
        if tracking_number in self.fail_file_saves:
            raise RuntimeError("database unavailable")
        claim = self.claims[tracking_number]
        self.claims[tracking_number] = claim.model_copy(update={"claude_files": list(files)})

    async def get_claims(self, tracking_numbers: Sequence[str]) -> list[ClaimRecord]:
        wanted = set(tracking_numbers)
        return [c for t, c in self.claims.items() if t in wanted]

    async def list_claims(self, offset: int = 0, limit: Optional[int] = None) -> list[ClaimRecord]:
        ordered = list(self.claims.values())
        end = None if limit is None else offset + limit
        return ordered[offset:end]

    async def count_claims(self) -> int:
        return len(self.claims)

    async def upsert_result(self, result) -> None:
        if result.tracking_number in self.fail_result_saves:
            raise RuntimeError("database unavailable")
        self.results[result.tracking_number] = result

    async def list_results(self):
        return list(self.results.values())

    async def create_job(self, csv_content: str, batch_size: Optional[int] = None) -> PipelineJobInfo:
        created = _T0 + timedelta(minutes=len(self.jobs))
        job = PipelineJobInfo(
            id=uuid.uuid4(),
            status="pending",
            csv_content=csv_content,
            batch_size=batch_size,
            created_at=created,
            updated_at=created,
        )
        self.jobs[job.id] = job
        return job

    async def get_job(self, job_id):
        return self.jobs.get(job_id)

    async def list_jobs(self):
        return sorted(self.jobs.values(), key=lambda j: j.created_at, reverse=True)

    async def update_job_status(self, job_id, status, error_message=None) -> None:
        update = {"status": status}
        if error_message is not None:
            update["error_message"] = error_message
        self.jobs[job_id] = self.jobs[job_id].model_copy(update=update)

    async def increment_processed(self, job_id) -> None:
        job = self.jobs[job_id]
        self.jobs[job_id] = job.model_copy(update={"claims_processed": job.claims_processed + 1})

    async def save_upload_cursor(self, job_id, next_page: int) -> None:
        self.cursor_writes.append(next_page)
        self.jobs[job_id] = self.jobs[job_id].model_copy(update={"upload_cursor": next_page})


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> InMemoryClaimStore:
    """Create an empty in-memory claim store.

    Returns:
        InMemoryClaimStore: Fresh store instance
    """
    return InMemoryClaimStore()


@pytest.fixture
def fake_claude() -> FakeClaude:
    """Create a scripted Claude client with no replies configured.

    Returns:
        FakeClaude: Fake client; tests fill in ``initial`` / ``charges``
    """
    return FakeClaude()


@pytest.fixture
def t1_row() -> list[str]:
    """A 30-column claims export row for tracking number ``T-1``.

    Returns:
        list[str]: Row cells in export column order
    """
    row = [""] * 30
    row[0] = "T-1"
    row[1] = "01/15/24"
    row[3] = "100 Main St"
    row[4] = "Springfield"
    row[5] = "IL"
    row[6] = "62701"
    row[7] = "02/01/23"
    row[8] = "01/31/24"
    row[9] = "01/10/24"
    row[10] = "$1,200.00"
    row[22] = "Acme Property Management"
    row[24] = "G-100"
    row[25] = "TR-7"
    row[26] = "SDI Standard"
    row[27] = "$2,500.00"
    row[28] = " Posted "
    row[29] = "$1,850.00"
    return row


def to_csv(*rows: list[str]) -> str:
    header = [f"col{i}" for i in range(30)]
    lines = [",".join(header)]
    for row in rows:
        lines.append(",".join(f'"{c}"' if "," in c else c for c in row))
    return "\n".join(lines) + "\n"
