"""Pydantic domain models shared by every pipeline stage.

Claims and their documents flow from the extractor through the uploader and
the decision engine; decisions are modelled as a tagged union of
:class:`ApprovedClaimResult` and :class:`DeclinedClaimResult` discriminated on
``status`` so that a declined decision has no charge fields to populate.

The ``InitialAssessment`` and ``ChargesAssessment`` models are the response
contracts for the two model calls.  They deliberately omit tracking number and
monetary fields: identity and money always come from the source claim.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

ClaimStatus = Literal["posted", "declined"]
DecisionStatus = Literal["approved", "declined"]
JobStatus = Literal["pending", "processing", "completed", "failed"]


# ---------------------------------------------------------------------------
# Claims and documents
# ---------------------------------------------------------------------------


class Document(BaseModel):
    """A source file belonging to a claim."""

    model_config = ConfigDict(frozen=True)

    name: str
    path: str
    # A single document may match several types (e.g. lease + addendum).
    types: Optional[list[str]] = None


class ClaudeFile(BaseModel):
    """Handle for a document uploaded to the Anthropic Files API."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    type: Literal["file"] = "file"
    filename: str
    mime_type: str
    size_bytes: int = 0
    created_at: datetime
    downloadable: bool = False


class ClaimRecord(BaseModel):
    """One insurance claim as exported in the claims CSV.

    Dates are kept in the source ``MM/DD/YY`` form and monetary values in
    dollars; an absent cell is ``None`` rather than zero or an empty string.
    """

    tracking_number: str
    claim_date: Optional[str] = None
    property_address: Optional[str] = None
    lease_start_date: Optional[str] = None
    lease_end_date: Optional[str] = None
    move_out_date: Optional[str] = None
    monthly_rent: Optional[float] = None
    property_management_company: Optional[str] = None
    group_number: Optional[str] = None
    treaty_number: Optional[str] = None
    policy: Optional[str] = None
    max_benefit: Optional[float] = None
    status: Optional[ClaimStatus] = None
    approved_benefit_amount: Optional[float] = None
    documents: list[Document] = Field(default_factory=list)
    claude_files: list[ClaudeFile] = Field(default_factory=list)

    @property
    def has_uploaded_files(self) -> bool:
        return len(self.claude_files) > 0


# ---------------------------------------------------------------------------
# Model response contracts
# ---------------------------------------------------------------------------


class ChargeItem(BaseModel):
    description: str
    amount: float = Field(..., ge=0)
    category: Optional[str] = None


def _check_document_types(types: list[str], info: ValidationInfo) -> list[str]:
    """Reject document types unknown to the active rule set.

    The rule set's type vocabulary is passed as validation context
    (``{"document_types": {...}}``); without context any string is accepted.
    """
    known = (info.context or {}).get("document_types")
    if known is None:
        return types
    unknown = [t for t in types if t not in known]
    if unknown:
        raise ValueError(f"unknown document type(s): {', '.join(unknown)}")
    return types


class SubmittedDocument(BaseModel):
    """A document as classified by the model during triage."""

    name: str
    path: str = ""
    types: list[str] = Field(default_factory=list)

    @field_validator("types")
    @classmethod
    def _known_types(cls, value: list[str], info: ValidationInfo) -> list[str]:
        return _check_document_types(value, info)


class InitialAssessment(BaseModel):
    """Phase 1 (triage) response contract."""

    model_config = ConfigDict(extra="ignore")

    tenant_name: str
    status: DecisionStatus
    is_first_month_paid: bool
    first_month_paid_evidence: str
    is_first_month_sdi_premium_paid: bool
    first_month_sdi_premium_paid_evidence: str
    missing_required_documents: list[str]
    submitted_documents: list[SubmittedDocument]
    decision_summary: str = ""

    @field_validator("missing_required_documents")
    @classmethod
    def _known_types(cls, value: list[str], info: ValidationInfo) -> list[str]:
        return _check_document_types(value, info)


class ChargesAssessment(BaseModel):
    """Phase 2 (charge adjudication) response contract."""

    model_config = ConfigDict(extra="ignore")

    approved_charges: list[ChargeItem]
    excluded_charges: list[ChargeItem]
    decision_summary: str = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------


class ClaimOutcome(BaseModel):
    """Fields shared by every decision variant."""

    tracking_number: str
    tenant_name: str
    max_benefit: float = Field(..., ge=0)
    monthly_rent: float = Field(..., ge=0)
    is_first_month_paid: bool
    first_month_paid_evidence: str
    is_first_month_sdi_premium_paid: bool
    first_month_sdi_premium_paid_evidence: str
    missing_required_documents: list[str] = Field(default_factory=list)
    submitted_documents: list[SubmittedDocument] = Field(default_factory=list)


class TriagedClaim(ClaimOutcome):
    """A claim approved by triage and awaiting charge adjudication."""

    status: Literal["approved"] = "approved"
    decision_summary: str = ""


class DeclinedClaimResult(ClaimOutcome):
    """Terminal decline.  Charge fields are fixed at zero / empty."""

    status: Literal["declined"] = "declined"
    decision_summary: str

    @property
    def approved_charges(self) -> list[ChargeItem]:
        return []

    @property
    def excluded_charges(self) -> list[ChargeItem]:
        return []

    @property
    def approved_charges_total(self) -> float:
        return 0.0

    @property
    def final_payout(self) -> float:
        return 0.0


class ApprovedClaimResult(ClaimOutcome):
    status: Literal["approved"] = "approved"
    approved_charges: list[ChargeItem]
    excluded_charges: list[ChargeItem]
    approved_charges_total: float = Field(..., ge=0)
    final_payout: float = Field(..., ge=0)
    decision_summary: str


ClaimResult = Annotated[
    Union[ApprovedClaimResult, DeclinedClaimResult],
    Field(discriminator="status"),
]


# ---------------------------------------------------------------------------
# Pipeline jobs
# ---------------------------------------------------------------------------


class PipelineJobInfo(BaseModel):
    """Read model of a ``pipeline_jobs`` row."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    status: JobStatus
    csv_content: str = ""
    batch_size: Optional[int] = None
    claims_processed: int = 0
    upload_cursor: int = 0
    error_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime


def result_payload(result: Union[ApprovedClaimResult, DeclinedClaimResult]) -> dict[str, Any]:
    """Flatten either decision variant into one dict with every column present."""
    payload = result.model_dump(mode="json")
    if isinstance(result, DeclinedClaimResult):
        payload.update(
            approved_charges=[],
            excluded_charges=[],
            approved_charges_total=0.0,
            final_payout=0.0,
        )
    return payload
