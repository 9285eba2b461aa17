"""Decision engine — two-phase claim adjudication on top of :class:`ClaudeClient`.

Phase 1 (triage) classifies the uploaded documents, verifies the first-month
rent and SDI premium payments and lists missing required documents.  A claim
the model declines is final at this point.  Phase 2 (charge adjudication)
runs only for approved claims and classifies every charge as approved or
excluded; the payout is computed locally from the approved charges and capped
at the claim's max benefit.

Model output is untrusted: it is validated against response schemas that do
not contain identity or monetary fields, and anything that fails to parse or
validate raises :class:`ClaimAnalysisError`.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Protocol, Sequence, Union

from pydantic import ValidationError

from adjudicator.analysis.client import ModelReply
from adjudicator.analysis.prompts import build_charges_prompt, build_initial_prompt
from adjudicator.analysis.rules import AdjudicationRules, DEFAULT_RULES
from adjudicator.currency import cents_to_dollars, dollars_to_cents
from adjudicator.schemas import (
    ApprovedClaimResult,
    ChargesAssessment,
    ClaimRecord,
    ClaudeFile,
    DeclinedClaimResult,
    InitialAssessment,
    TriagedClaim,
)

logger = logging.getLogger(__name__)


class ClaimAnalysisError(Exception):
    """A claim could not be analysed (no files, unparsable or invalid reply)."""

    def __init__(self, tracking_number: str, message: str) -> None:
        super().__init__(f"Claim {tracking_number}: {message}")
        self.tracking_number = tracking_number


class CompletionClient(Protocol):
    async def complete(self, prompt: str, files: Sequence[ClaudeFile]) -> ModelReply:
        ...


def _strip_fences(text: str) -> str:
    """Remove markdown code fences from a model response."""
    text = text.strip()
    if text.startswith("```"):
        text = re.sub(r"^```(?:json)?\s*", "", text, flags=re.IGNORECASE)
        text = re.sub(r"\s*```$", "", text)
    return text.strip()


def parse_model_json(text: str) -> dict[str, Any]:
    """Parse a model reply as a JSON object, tolerating markdown fences.

    Raises:
        ValueError: The reply is not JSON or its top level is not an object.
    """
    parsed = json.loads(_strip_fences(text))
    if not isinstance(parsed, dict):
        raise ValueError(f"expected a JSON object, got {type(parsed).__name__}")
    return parsed


def declined_summary(
    missing_documents: Sequence[str],
    is_first_month_paid: bool,
    is_first_month_sdi_premium_paid: bool,
) -> str:
    """Fallback decision summary for a decline the model did not explain."""
    return (
        f"Claim declined. Missing documents: {', '.join(missing_documents) or 'None'}. "
        f"First month rent paid: {str(is_first_month_paid).lower()}. "
        f"First month SDI premium paid: {str(is_first_month_sdi_premium_paid).lower()}."
    )


class DecisionEngine:
    """Runs triage and charge adjudication for individual claims.

    Args:
        client: Anything with an async ``complete(prompt, files)`` method,
            normally a :class:`~adjudicator.analysis.client.ClaudeClient`.
        rules: Policy rules rendered into the prompts and used to validate
            document types in replies.  Defaults to :data:`DEFAULT_RULES`.
    """

    def __init__(self, client: CompletionClient, rules: AdjudicationRules = DEFAULT_RULES) -> None:
        self._client = client
        self.rules = rules

    # ── Phase 1 ────────────────────────────────────────────────────────────

    async def assess_initial(self, claim: ClaimRecord) -> Union[TriagedClaim, DeclinedClaimResult]:
        """Triage a claim.

        Returns:
            :class:`DeclinedClaimResult` when the model declines the claim
            (final, no charge phase), otherwise a :class:`TriagedClaim` to
            hand to :meth:`assess_charges`.

        Raises:
            ClaimAnalysisError: The claim has no uploaded files, or the reply
                is not a valid triage response.
        """
        self._require_files(claim)
        reply = await self._client.complete(build_initial_prompt(claim, self.rules), claim.claude_files)
        self._warn_if_truncated(claim, reply, "triage")

        assessment = self._validate(
            claim,
            reply,
            InitialAssessment,
            context={"document_types": self.rules.known_document_types},
        )

        shared = dict(
            tracking_number=claim.tracking_number,
            tenant_name=assessment.tenant_name,
            max_benefit=claim.max_benefit or 0.0,
            monthly_rent=claim.monthly_rent or 0.0,
            is_first_month_paid=assessment.is_first_month_paid,
            first_month_paid_evidence=assessment.first_month_paid_evidence,
            is_first_month_sdi_premium_paid=assessment.is_first_month_sdi_premium_paid,
            first_month_sdi_premium_paid_evidence=assessment.first_month_sdi_premium_paid_evidence,
            missing_required_documents=assessment.missing_required_documents,
            submitted_documents=assessment.submitted_documents,
        )

        if assessment.status == "declined":
            summary = assessment.decision_summary.strip() or declined_summary(
                assessment.missing_required_documents,
                assessment.is_first_month_paid,
                assessment.is_first_month_sdi_premium_paid,
            )
            logger.info("Claim %s declined at triage", claim.tracking_number)
            return DeclinedClaimResult(decision_summary=summary, **shared)

        logger.info("Claim %s passed triage", claim.tracking_number)
        return TriagedClaim(decision_summary=assessment.decision_summary, **shared)

    # ── Phase 2 ────────────────────────────────────────────────────────────

    async def assess_charges(self, claim: ClaimRecord, triaged: TriagedClaim) -> ApprovedClaimResult:
        """Classify a triaged claim's charges and compute its payout.

        ``approved_charges_total`` is the cent-rounded sum of the approved
        charge amounts and ``final_payout`` is that total capped at the max
        benefit established during triage.

        Raises:
            ClaimAnalysisError: The claim has no uploaded files, or the reply
                is not a valid charge response.
        """
        if triaged.tracking_number != claim.tracking_number:
            raise ValueError(
                f"Triage result {triaged.tracking_number} does not belong to claim {claim.tracking_number}"
            )
        self._require_files(claim)
        reply = await self._client.complete(
            build_charges_prompt(claim, triaged, self.rules), claim.claude_files
        )
        self._warn_if_truncated(claim, reply, "charge adjudication")

        charges = self._validate(claim, reply, ChargesAssessment)

        total = cents_to_dollars(sum(dollars_to_cents(c.amount) for c in charges.approved_charges))
        payout = min(total, triaged.max_benefit)
        logger.info(
            "Claim %s: %d approved / %d excluded charge(s), total=$%.2f payout=$%.2f",
            claim.tracking_number,
            len(charges.approved_charges),
            len(charges.excluded_charges),
            total,
            payout,
        )
        return ApprovedClaimResult(
            **triaged.model_dump(exclude={"status", "decision_summary"}),
            approved_charges=charges.approved_charges,
            excluded_charges=charges.excluded_charges,
            approved_charges_total=total,
            final_payout=payout,
            decision_summary=charges.decision_summary,
        )

    # ── Helpers ────────────────────────────────────────────────────────────

    @staticmethod
    def _require_files(claim: ClaimRecord) -> None:
        if not claim.has_uploaded_files:
            raise ClaimAnalysisError(claim.tracking_number, "no uploaded files to analyse")

    @staticmethod
    def _warn_if_truncated(claim: ClaimRecord, reply: ModelReply, phase: str) -> None:
        if reply.truncated:
            logger.warning(
                "Claude %s response for claim %s was truncated at max_tokens",
                phase,
                claim.tracking_number,
            )

    @staticmethod
    def _validate(claim: ClaimRecord, reply: ModelReply, schema, context=None):
        try:
            payload = parse_model_json(reply.text)
            return schema.model_validate(payload, context=context)
        except (ValueError, ValidationError) as exc:
            # json.JSONDecodeError is a ValueError.
            raise ClaimAnalysisError(
                claim.tracking_number, f"invalid {schema.__name__} response: {exc}"
            ) from exc
