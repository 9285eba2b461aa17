"""SDI policy rules used to adjudicate claims.

The rule set is data: which document types are required, how charges are
classified, which payments must be verified and when a claim is declined.
:data:`DEFAULT_RULES` carries the standard policy; a JSON file with the same
shape (``settings.rules_path``) replaces it wholesale.  For example, moving a
document type from ``required`` to ``optional`` turns a hard decline into a
best-effort check without touching code.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, Field, model_validator

from adjudicator.config import settings

logger = logging.getLogger(__name__)


class DocumentTypeRules(BaseModel):
    required: list[str]
    optional: list[str] = Field(default_factory=list)
    descriptions: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _disjoint(self) -> "DocumentTypeRules":
        overlap = set(self.required) & set(self.optional)
        if overlap:
            raise ValueError(
                f"document types both required and optional: {', '.join(sorted(overlap))}"
            )
        return self


class ChargeCategoryRule(BaseModel):
    description: str
    examples: list[str] = Field(default_factory=list)


class ChargeClassificationRules(BaseModel):
    approved: ChargeCategoryRule
    excluded: ChargeCategoryRule


class PaymentRequirement(BaseModel):
    required: bool = True
    description: str


class PaymentVerificationRules(BaseModel):
    first_month_rent: PaymentRequirement
    first_month_sdi_premium: PaymentRequirement


class ClaimStatusRules(BaseModel):
    auto_decline_conditions: list[str]
    approval_conditions: list[str]


class AdjudicationRules(BaseModel):
    """Complete SDI policy rule set."""

    document_types: DocumentTypeRules
    charge_classification: ChargeClassificationRules
    payment_verification: PaymentVerificationRules
    claim_status_rules: ClaimStatusRules

    @property
    def known_document_types(self) -> frozenset[str]:
        """Every document type a model response may name."""
        return frozenset(self.document_types.required) | frozenset(self.document_types.optional)


DEFAULT_RULES = AdjudicationRules(
    document_types=DocumentTypeRules(
        required=[
            "lease_addendum",
            "lease_agreement",
            "notification_to_tenant",
            "tenant_ledger",
        ],
        optional=["invoice", "claim_evaluation_report"],
        descriptions={
            "lease_addendum": (
                "Security deposit addendum or SDI addendum that outlines the "
                "security deposit insurance terms"
            ),
            "lease_agreement": "The main lease agreement between tenant and landlord",
            "notification_to_tenant": (
                "Move-out notice or notification sent to tenant regarding "
                "move-out procedures"
            ),
            "tenant_ledger": "Account ledger showing charges, payments, and account balance",
            "invoice": "Invoice or bill for specific charges related to the property",
            "claim_evaluation_report": "Report evaluating the claim and its associated charges",
        },
    ),
    charge_classification=ChargeClassificationRules(
        approved=ChargeCategoryRule(
            description=(
                "Charges that are covered by SDI policy. These include normal wear "
                "and tear, cleaning, repairs, and damages that are the tenant's "
                "responsibility."
            ),
            examples=[
                "Cleaning fees",
                "Repair costs for tenant damage",
                "Normal wear and tear repairs",
                "Property damage caused by tenant",
                "Maintenance charges for tenant-caused issues",
            ],
        ),
        excluded=ChargeCategoryRule(
            description=(
                "Charges that are NOT covered by SDI policy. These should be "
                "excluded from the approved benefit amount."
            ),
            examples=[
                "Unpaid rent",
                "Late fees",
                "Pet fees and pet-related damages",
                "Non-refundable fees",
                "Charges clearly outside the lease terms",
                "Charges that exceed reasonable amounts",
            ],
        ),
    ),
    payment_verification=PaymentVerificationRules(
        first_month_rent=PaymentRequirement(
            required=True,
            description=(
                "First month's rent must be paid for the claim to be valid. "
                "Check the tenant ledger or payment records."
            ),
        ),
        first_month_sdi_premium=PaymentRequirement(
            required=True,
            description=(
                "First month's SDI premium must be paid for the claim to be valid. "
                "Look for 'SDRP Monthly Premium' or similar charges in the ledger."
            ),
        ),
    ),
    claim_status_rules=ClaimStatusRules(
        auto_decline_conditions=[
            "Missing required documents",
            "First month's rent not paid",
            "First month's SDI premium not paid",
        ],
        approval_conditions=[
            "All required documents present",
            "First month's rent paid",
            "First month's SDI premium paid",
            "Valid approved charges exist",
        ],
    ),
)


def load_rules(path: Optional[Union[str, Path]] = None) -> AdjudicationRules:
    """Load a rule set from JSON, or return :data:`DEFAULT_RULES`.

    Args:
        path: JSON file with the :class:`AdjudicationRules` shape.  Defaults
            to ``settings.rules_path``; when neither is set the built-in
            rules are returned.

    Raises:
        FileNotFoundError: ``path`` does not exist.
        pydantic.ValidationError: The file does not describe a valid rule set.
    """
    path = path or settings.rules_path
    if not path:
        return DEFAULT_RULES
    rules = AdjudicationRules.model_validate_json(Path(path).read_text(encoding="utf-8"))
    logger.info(
        "Loaded adjudication rules from %s (%d required document types)",
        path,
        len(rules.document_types.required),
    )
    return rules


# ---------------------------------------------------------------------------
# Prompt rendering
# ---------------------------------------------------------------------------


def format_rules_for_prompt(rules: AdjudicationRules) -> str:
    """Render the full rule set as the policy section of the triage prompt."""
    docs = rules.document_types
    lines = ["SDI POLICY RULES:", "", "REQUIRED DOCUMENTS:"]
    lines += [f"- {t}: {docs.descriptions.get(t, '')}" for t in docs.required]
    lines += ["", "OPTIONAL DOCUMENTS:"]
    lines += [f"- {t}: {docs.descriptions.get(t, '')}" for t in docs.optional]

    payments = rules.payment_verification
    lines += ["", "PAYMENT VERIFICATION REQUIREMENTS:"]
    if payments.first_month_rent.required:
        lines.append(f"- First Month Rent: {payments.first_month_rent.description}")
    if payments.first_month_sdi_premium.required:
        lines.append(f"- First Month SDI Premium: {payments.first_month_sdi_premium.description}")

    charges = rules.charge_classification
    lines += [
        "",
        "CHARGE CLASSIFICATION RULES:",
        f"APPROVED (Covered by SDI): {charges.approved.description}",
        f"Examples: {', '.join(charges.approved.examples)}",
        "",
        f"EXCLUDED (Not covered): {charges.excluded.description}",
        f"Examples: {', '.join(charges.excluded.examples)}",
    ]

    status = rules.claim_status_rules
    lines += ["", "CLAIM STATUS RULES:", "A claim will be DECLINED if:"]
    lines += [f"- {c}" for c in status.auto_decline_conditions]
    lines += ["", "A claim will be APPROVED if:"]
    lines += [f"- {c}" for c in status.approval_conditions]
    return "\n".join(lines) + "\n"


def format_charge_rules(rules: AdjudicationRules) -> str:
    """Render only the charge classification rules (charge adjudication prompt)."""
    charges = rules.charge_classification
    return (
        "CHARGE CLASSIFICATION RULES:\n\n"
        f"APPROVED (covered by SDI policy): {charges.approved.description}\n"
        f"Examples: {', '.join(charges.approved.examples)}\n\n"
        f"EXCLUDED (not covered by SDI policy): {charges.excluded.description}\n"
        f"Examples: {', '.join(charges.excluded.examples)}"
    )
