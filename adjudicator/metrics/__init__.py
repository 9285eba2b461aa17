"""Adjudicator Metrics — decision accuracy against ground truth."""

from adjudicator.metrics.accuracy import (
    AccuracyMetrics,
    ClaimAccuracy,
    calculate_accuracy_metrics,
    calculate_all_claim_accuracies,
    calculate_claim_accuracy,
)
from adjudicator.metrics.report import format_accuracy_report, save_accuracy_report

__all__ = [
    "AccuracyMetrics",
    "ClaimAccuracy",
    "calculate_accuracy_metrics",
    "calculate_all_claim_accuracies",
    "calculate_claim_accuracy",
    "format_accuracy_report",
    "save_accuracy_report",
]
