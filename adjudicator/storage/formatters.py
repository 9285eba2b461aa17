"""Conversions between domain models and ``claims`` / ``claim_results`` rows.

Money crosses this boundary as dollars on the model side and integer cents on
the row side; dates as ``MM/DD/YY`` strings and ``datetime.date`` values.
"""

from __future__ import annotations

from typing import Any, Union

from pydantic import TypeAdapter

from adjudicator.currency import (
    cents_to_dollars,
    dollars_to_cents,
    optional_cents,
    optional_dollars,
)
from adjudicator.db import Claim, ClaimResultRecord
from adjudicator.extraction.csv_parser import format_date, parse_date
from adjudicator.schemas import (
    ApprovedClaimResult,
    ClaimRecord,
    ClaimResult,
    ClaudeFile,
    DeclinedClaimResult,
    result_payload,
)

_claim_result_adapter: TypeAdapter = TypeAdapter(ClaimResult)


def claim_to_row(claim: ClaimRecord) -> dict[str, Any]:
    """Column values for a claim upsert.  ``claude_files`` is included for inserts."""
    return {
        "tracking_number": claim.tracking_number,
        "claim_date": parse_date(claim.claim_date),
        "property_address": claim.property_address,
        "lease_start_date": parse_date(claim.lease_start_date),
        "lease_end_date": parse_date(claim.lease_end_date),
        "move_out_date": parse_date(claim.move_out_date),
        "monthly_rent": optional_cents(claim.monthly_rent),
        "property_management_company": claim.property_management_company,
        "group_number": claim.group_number,
        "treaty_number": claim.treaty_number,
        "policy": claim.policy,
        "max_benefit": optional_cents(claim.max_benefit),
        "status": claim.status,
        "approved_benefit_amount": optional_cents(claim.approved_benefit_amount),
        "documents": [d.model_dump(mode="json") for d in claim.documents],
        "claude_files": files_to_json(claim.claude_files),
    }


def row_to_claim(row: Claim) -> ClaimRecord:
    return ClaimRecord(
        tracking_number=row.tracking_number,
        claim_date=format_date(row.claim_date),
        property_address=row.property_address,
        lease_start_date=format_date(row.lease_start_date),
        lease_end_date=format_date(row.lease_end_date),
        move_out_date=format_date(row.move_out_date),
        monthly_rent=optional_dollars(row.monthly_rent),
        property_management_company=row.property_management_company,
        group_number=row.group_number,
        treaty_number=row.treaty_number,
        policy=row.policy,
        max_benefit=optional_dollars(row.max_benefit),
        status=row.status,
        approved_benefit_amount=optional_dollars(row.approved_benefit_amount),
        documents=row.documents or [],
        claude_files=row.claude_files or [],
    )


def files_to_json(files) -> list[dict[str, Any]]:
    return [
        (f if isinstance(f, ClaudeFile) else ClaudeFile.model_validate(f)).model_dump(mode="json")
        for f in files
    ]


def result_to_row(result: Union[ApprovedClaimResult, DeclinedClaimResult]) -> dict[str, Any]:
    """Column values for a result upsert; monetary fields become cents."""
    row = result_payload(result)
    for key in ("max_benefit", "monthly_rent", "approved_charges_total", "final_payout"):
        row[key] = dollars_to_cents(row[key])
    return row


def row_to_result(row: ClaimResultRecord) -> Union[ApprovedClaimResult, DeclinedClaimResult]:
    payload = {
        "tracking_number": row.tracking_number,
        "tenant_name": row.tenant_name,
        "status": row.status,
        "max_benefit": cents_to_dollars(row.max_benefit),
        "monthly_rent": cents_to_dollars(row.monthly_rent),
        "is_first_month_paid": row.is_first_month_paid,
        "first_month_paid_evidence": row.first_month_paid_evidence or "",
        "is_first_month_sdi_premium_paid": row.is_first_month_sdi_premium_paid,
        "first_month_sdi_premium_paid_evidence": row.first_month_sdi_premium_paid_evidence or "",
        "missing_required_documents": row.missing_required_documents or [],
        "submitted_documents": row.submitted_documents or [],
        "decision_summary": row.decision_summary,
    }
    if row.status == "approved":
        payload.update(
            approved_charges=row.approved_charges or [],
            excluded_charges=row.excluded_charges or [],
            approved_charges_total=cents_to_dollars(row.approved_charges_total),
            final_payout=cents_to_dollars(row.final_payout),
        )
    return _claim_result_adapter.validate_python(payload)
