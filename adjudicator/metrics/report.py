"""Plain-text accuracy report."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence, Union

from adjudicator.metrics.accuracy import AccuracyMetrics, ClaimAccuracy

logger = logging.getLogger(__name__)

_WIDTH = 80


def format_accuracy_report(
    metrics: AccuracyMetrics,
    accuracies: Sequence[ClaimAccuracy],
) -> str:
    """Render metrics and per-claim scores as a fixed-width text report."""
    status = metrics.status_accuracy
    matrix = status.confusion_matrix
    payout = metrics.payout_accuracy
    rule = "-" * _WIDTH

    lines = [
        "=" * _WIDTH,
        "AI ACCURACY REPORT",
        "=" * _WIDTH,
        "",
        f"Total Claims Analyzed: {metrics.total_claims}",
        "",
        "STATUS ACCURACY",
        rule,
        f"Correct: {status.correct}",
        f"Incorrect: {status.incorrect}",
        f"Accuracy: {status.accuracy:.2f}%",
        "",
        "Confusion Matrix:",
        f"  Approved → Approved: {matrix.approved_approved}",
        f"  Approved → Declined: {matrix.approved_declined}",
        f"  Declined → Approved: {matrix.declined_approved}",
        f"  Declined → Declined: {matrix.declined_declined}",
        "",
        "PAYOUT ACCURACY",
        rule,
        f"Exact Matches: {payout.exact_matches}",
        f"Within $1.00: {payout.within_tolerance}",
        f"Within 5%: {payout.within_percentage}",
        f"Mean Absolute Error: ${payout.mean_absolute_error:.2f}",
        f"Mean Percentage Error: {payout.mean_percentage_error:.2f}%",
        "Symmetric Mean Absolute Percentage Error (SMAPE): "
        f"{payout.symmetric_mean_absolute_percentage_error:.2f}%",
        f"Root Mean Squared Error: ${payout.root_mean_squared_error:.2f}",
        f"Max Error: ${payout.max_error:.2f}",
        f"Min Error: ${payout.min_error:.2f}",
        "",
        "PER-CLAIM DETAILS",
        rule,
        "Tracking # | Status | Status Match | Payout AI | Payout GT | Difference | % Error",
        rule,
    ]
    for acc in accuracies:
        match = "✓" if acc.status_correct else "✗"
        lines.append(
            f"{acc.tracking_number:<12} | {acc.status_ai:<6} | {match:<11} | "
            f"${acc.payout_ai:>10.2f} | ${acc.payout_ground_truth:>10.2f} | "
            f"${acc.payout_difference:>10.2f} | {acc.payout_percentage_error:>6.2f}%"
        )
    return "\n".join(lines) + "\n"


def save_accuracy_report(
    metrics: AccuracyMetrics,
    accuracies: Sequence[ClaimAccuracy],
    output_path: Optional[Union[str, Path]] = None,
) -> Path:
    """Write the report to ``output_path`` (default ``data/accuracy-report-<ts>.txt``)."""
    if output_path is None:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        output_path = Path("data") / f"accuracy-report-{stamp}.txt"
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(format_accuracy_report(metrics, accuracies), encoding="utf-8")
    logger.info("Accuracy report written to %s", path)
    return path
