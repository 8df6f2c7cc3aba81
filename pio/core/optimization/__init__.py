"""Perceptual quality search."""

from .evaluator import PerceptualEvaluator
from .quality_table import QUALITY_TABLE, QualityTarget, derive_target, target_score_for
from .scheduler import Trial, TrialOutcome, TrialRequest, TrialScheduler
from .search import (
    FormatSearch,
    SearchController,
    SearchResult,
    best_result,
    best_trial,
)

__all__ = [
    "PerceptualEvaluator",
    "QUALITY_TABLE",
    "QualityTarget",
    "derive_target",
    "target_score_for",
    "Trial",
    "TrialOutcome",
    "TrialRequest",
    "TrialScheduler",
    "FormatSearch",
    "SearchController",
    "SearchResult",
    "best_result",
    "best_trial",
]
