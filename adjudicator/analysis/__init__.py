"""Adjudicator Analysis Layer — Claude-backed claim decisions.

- ``ClaudeClient``: Files API uploads and file-grounded message calls
- ``DecisionEngine``: triage followed by charge adjudication
- ``AdjudicationRules`` / ``DEFAULT_RULES`` / ``load_rules``: SDI policy rules
"""

from adjudicator.analysis.client import ClaudeClient, ModelReply
from adjudicator.analysis.engine import ClaimAnalysisError, DecisionEngine, parse_model_json
from adjudicator.analysis.rules import AdjudicationRules, DEFAULT_RULES, load_rules

__all__ = [
    "AdjudicationRules",
    "ClaimAnalysisError",
    "ClaudeClient",
    "DEFAULT_RULES",
    "DecisionEngine",
    "ModelReply",
    "load_rules",
    "parse_model_json",
]
