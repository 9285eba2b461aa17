"""Accuracy of model decisions against historical ground truth.

Ground truth is the approved benefit amount recorded for a claim: a positive
amount means the claim was approved, zero means it was declined.  Claims with
no recorded amount cannot be scored and are left out of every metric.
"""

from __future__ import annotations

import logging
import math
import statistics
from typing import Literal, Optional, Sequence, Union

from pydantic import BaseModel, Field

from adjudicator.schemas import ApprovedClaimResult, ClaimRecord, DeclinedClaimResult

logger = logging.getLogger(__name__)

_EXACT_TOLERANCE = 0.01
_DOLLAR_TOLERANCE = 1.0
_PERCENT_TOLERANCE = 5.0


class ClaimAccuracy(BaseModel):
    """Predicted vs ground-truth outcome for one claim."""

    tracking_number: str
    status_correct: bool
    status_ai: Literal["approved", "declined"]
    status_ground_truth: Literal["approved", "declined"]
    payout_correct: bool
    payout_ai: float
    payout_ground_truth: float
    payout_difference: float
    payout_percentage_error: float


class ConfusionMatrix(BaseModel):
    """Counts keyed ``<ai>_<ground truth>``."""

    approved_approved: int = 0
    approved_declined: int = 0
    declined_approved: int = 0
    declined_declined: int = 0


class StatusAccuracy(BaseModel):
    correct: int = 0
    incorrect: int = 0
    accuracy: float = 0.0  # percent
    confusion_matrix: ConfusionMatrix = Field(default_factory=ConfusionMatrix)


class PayoutAccuracy(BaseModel):
    exact_matches: int = 0
    within_tolerance: int = 0  # within $1.00
    within_percentage: int = 0  # within 5%
    mean_absolute_error: float = 0.0
    mean_percentage_error: float = 0.0
    symmetric_mean_absolute_percentage_error: float = 0.0
    root_mean_squared_error: float = 0.0
    max_error: float = 0.0
    min_error: float = 0.0


class AccuracyMetrics(BaseModel):
    total_claims: int = 0
    status_accuracy: StatusAccuracy = Field(default_factory=StatusAccuracy)
    payout_accuracy: PayoutAccuracy = Field(default_factory=PayoutAccuracy)


def calculate_claim_accuracy(
    claim: ClaimRecord,
    result: Union[ApprovedClaimResult, DeclinedClaimResult],
) -> Optional[ClaimAccuracy]:
    """Score one decision.  Returns ``None`` when the claim has no ground truth."""
    ground_truth = claim.approved_benefit_amount
    if ground_truth is None:
        return None

    gt_status = "approved" if ground_truth > 0 else "declined"
    predicted = result.final_payout
    difference = abs(predicted - ground_truth)

    if ground_truth > 0:
        pct_error = difference / ground_truth * 100
    elif predicted > 0:
        # Any payout on a claim that paid nothing counts as a full miss.
        pct_error = 100.0
    else:
        pct_error = 0.0

    return ClaimAccuracy(
        tracking_number=claim.tracking_number,
        status_correct=result.status == gt_status,
        status_ai=result.status,
        status_ground_truth=gt_status,
        payout_correct=difference < _EXACT_TOLERANCE,
        payout_ai=predicted,
        payout_ground_truth=ground_truth,
        payout_difference=difference,
        payout_percentage_error=pct_error,
    )


def _smape(accuracies: Sequence[ClaimAccuracy]) -> float:
    total = 0.0
    for acc in accuracies:
        denominator = (abs(acc.payout_ground_truth) + abs(acc.payout_ai)) / 2
        if denominator == 0:
            continue
        total += abs(acc.payout_ground_truth - acc.payout_ai) / denominator
    return 100 / len(accuracies) * total


def calculate_accuracy_metrics(accuracies: Sequence[ClaimAccuracy]) -> AccuracyMetrics:
    """Aggregate per-claim scores.  An empty input yields all-zero metrics."""
    metrics = AccuracyMetrics(total_claims=len(accuracies))
    if not accuracies:
        return metrics

    status = metrics.status_accuracy
    matrix = status.confusion_matrix
    for acc in accuracies:
        if acc.status_correct:
            status.correct += 1
        else:
            status.incorrect += 1
        key = f"{acc.status_ai}_{acc.status_ground_truth}"
        setattr(matrix, key, getattr(matrix, key) + 1)
    status.accuracy = status.correct / len(accuracies) * 100

    errors = [acc.payout_difference for acc in accuracies]
    payout = metrics.payout_accuracy
    payout.exact_matches = sum(1 for acc in accuracies if acc.payout_correct)
    payout.within_tolerance = sum(1 for e in errors if e < _DOLLAR_TOLERANCE)
    payout.within_percentage = sum(
        1 for acc in accuracies if acc.payout_percentage_error < _PERCENT_TOLERANCE
    )
    payout.mean_absolute_error = statistics.fmean(errors)
    payout.mean_percentage_error = statistics.fmean(
        acc.payout_percentage_error for acc in accuracies
    )
    payout.symmetric_mean_absolute_percentage_error = _smape(accuracies)
    payout.root_mean_squared_error = math.sqrt(statistics.fmean(e * e for e in errors))
    payout.max_error = max(errors)
    payout.min_error = min(errors)
    return metrics


def calculate_all_claim_accuracies(
    claims: Sequence[ClaimRecord],
    results: Sequence[Union[ApprovedClaimResult, DeclinedClaimResult]],
) -> tuple[list[ClaimAccuracy], AccuracyMetrics]:
    """Pair claims with their decisions by tracking number and score them.

    Claims without a decision or without ground truth are skipped.
    """
    by_tracking = {r.tracking_number: r for r in results}
    accuracies: list[ClaimAccuracy] = []
    for claim in claims:
        result = by_tracking.get(claim.tracking_number)
        if result is None:
            continue
        accuracy = calculate_claim_accuracy(claim, result)
        if accuracy is not None:
            accuracies.append(accuracy)

    logger.info(
        "Scored %d of %d claim(s) against ground truth", len(accuracies), len(claims)
    )
    return accuracies, calculate_accuracy_metrics(accuracies)
