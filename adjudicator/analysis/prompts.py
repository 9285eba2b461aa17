"""Prompt templates for the two adjudication calls.

Both prompts request snake_case JSON that maps one-to-one onto
:class:`~adjudicator.schemas.InitialAssessment` and
:class:`~adjudicator.schemas.ChargesAssessment`.  Identity and money are shown
to the model as context only; they are never read back from its answer.
"""

from __future__ import annotations

from typing import Optional

from adjudicator.analysis.rules import (
    AdjudicationRules,
    format_charge_rules,
    format_rules_for_prompt,
)
from adjudicator.schemas import ClaimRecord, TriagedClaim

# ── Phase 1: triage ────────────────────────────────────────────────────────

_INITIAL_ASSESSMENT_PROMPT = """\
You are analyzing a Security Deposit Insurance (SDI) claim. Your task is to:

1. CLASSIFY DOCUMENTS: For each attached document, classify its type(s). A \
document can have multiple types. Use only the document type names listed in \
the policy rules below.

2. EXTRACT TENANT NAME: Find and extract the tenant's full name from the documents.

3. VERIFY FIRST MONTH RENT PAYMENT: Determine if the first month's rent was \
paid. Provide clear evidence (quote from document or explanation).

4. VERIFY FIRST MONTH SDI PREMIUM PAYMENT: Determine if the first month's SDI \
premium was paid. Provide clear evidence (quote from document or explanation).

5. IDENTIFY MISSING REQUIRED DOCUMENTS: Check if all required documents are present.

{rules}
Claim Information:
- Tracking Number: {tracking_number}
- Property Address: {property_address}
- Lease Start Date: {lease_start_date}
- Lease End Date: {lease_end_date}
- Move Out Date: {move_out_date}
- Monthly Rent: ${monthly_rent}
- Max Benefit: ${max_benefit}

Attached documents (in order):
{document_list}

Return a JSON object with this exact structure:
{{
  "tenant_name": "<full name from documents>",
  "status": "<approved|declined>",
  "is_first_month_paid": <true|false>,
  "first_month_paid_evidence": "<evidence or explanation>",
  "is_first_month_sdi_premium_paid": <true|false>,
  "first_month_sdi_premium_paid_evidence": "<evidence or explanation>",
  "missing_required_documents": ["<document type>", ...],
  "submitted_documents": [
    {{
      "name": "<document filename>",
      "path": "<document path>",
      "types": ["<document type>", ...]
    }}
  ],
  "decision_summary": "<short explanation of the status>"
}}

Decline the claim if any claim status DECLINED condition applies.

Important: Return ONLY valid JSON, no markdown formatting or code blocks.
"""

# ── Phase 2: charge adjudication ───────────────────────────────────────────

_CHARGES_ASSESSMENT_PROMPT = """\
You are analyzing charges for a Security Deposit Insurance (SDI) claim. Your task is to:

1. EXTRACT ALL CHARGES: Find all charges, line items, or deductions from the \
documents. Look in:
   - Tenant ledgers
   - Move-out statements
   - Invoices
   - Claim evaluation reports

2. CLASSIFY CHARGES: For each charge, determine if it is APPROVED or EXCLUDED \
according to these rules:

{charge_rules}

3. PROVIDE DETAILS: For each charge, provide:
   - description: Clear description of the charge
   - amount: The dollar amount (as a non-negative number)
   - category: Optional category (e.g., "cleaning", "repair", "damage", "unpaid_rent")

Claim Information:
- Tracking Number: {tracking_number}
- Tenant Name: {tenant_name}
- Monthly Rent: ${monthly_rent}
- Max Benefit: ${max_benefit}
- Status: {status}
- Missing Required Documents: {missing_documents}

Initial Analysis Results:
- First Month Rent Paid: {is_first_month_paid} ({first_month_paid_evidence})
- First Month SDI Premium Paid: {is_first_month_sdi_premium_paid} \
({first_month_sdi_premium_paid_evidence})

Return a JSON object with this structure:
{{
  "approved_charges": [
    {{"description": "<approved charge>", "amount": 100.00, "category": "cleaning"}}
  ],
  "excluded_charges": [
    {{"description": "<excluded charge>", "amount": 50.00, "category": "unpaid_rent"}}
  ],
  "decision_summary": "<why the claim was approved, key findings from the documents, \
rationale for the charge classifications, and any important notes>"
}}

Important:
- Return ONLY valid JSON, no markdown formatting or code blocks.
- Calculate amounts accurately from the documents.
- Be thorough in finding all charges.
- The decision summary should be detailed and professional.
"""


def _text(value: Optional[str]) -> str:
    return value or "Not provided"


def _money(value: Optional[float]) -> str:
    return f"{value or 0:.2f}"


def build_initial_prompt(claim: ClaimRecord, rules: AdjudicationRules) -> str:
    """Triage prompt: classification, payment checks and required documents."""
    document_list = "\n".join(
        f"- {doc.name} ({doc.path})" for doc in claim.documents
    ) or "- (see attached files)"
    return _INITIAL_ASSESSMENT_PROMPT.format(
        rules=format_rules_for_prompt(rules),
        tracking_number=claim.tracking_number,
        property_address=_text(claim.property_address),
        lease_start_date=_text(claim.lease_start_date),
        lease_end_date=_text(claim.lease_end_date),
        move_out_date=_text(claim.move_out_date),
        monthly_rent=_money(claim.monthly_rent),
        max_benefit=_money(claim.max_benefit),
        document_list=document_list,
    )


def build_charges_prompt(
    claim: ClaimRecord,
    triaged: TriagedClaim,
    rules: AdjudicationRules,
) -> str:
    """Charge adjudication prompt, carrying the triage findings as context."""
    return _CHARGES_ASSESSMENT_PROMPT.format(
        charge_rules=format_charge_rules(rules),
        tracking_number=claim.tracking_number,
        tenant_name=triaged.tenant_name,
        monthly_rent=_money(claim.monthly_rent),
        max_benefit=_money(claim.max_benefit),
        status=triaged.status,
        missing_documents=", ".join(triaged.missing_required_documents) or "None",
        is_first_month_paid=str(triaged.is_first_month_paid).lower(),
        first_month_paid_evidence=triaged.first_month_paid_evidence,
        is_first_month_sdi_premium_paid=str(triaged.is_first_month_sdi_premium_paid).lower(),
        first_month_sdi_premium_paid_evidence=triaged.first_month_sdi_premium_paid_evidence,
    )
