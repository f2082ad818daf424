"""
Combines rule outcomes into one explained score per dimension.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

import structlog

from pagescore.observability.metrics import METRICS
from pagescore.protocols import (
    Dimension,
    DimensionScore,
    EvidenceItem,
    Issue,
    RuleOutcome,
    clamp_score,
    round_half_up,
    severity_rank,
)

logger = structlog.get_logger(__name__)

NO_APPLICABLE_RULES = "no applicable rules"

DIMENSION_TEMPLATES: Dict[Dimension, str] = {
    Dimension.TECHNICAL: "Technical foundation is {band} ({score}/100)",
    Dimension.CONTENT: "Content structure and clarity is {band} ({score}/100)",
    Dimension.AUTHORITY: "Authority and trust signals are {band} ({score}/100)",
    Dimension.QUALITY: "Content quality and freshness is {band} ({score}/100)",
}

BANDS = ((80, "excellent"), (60, "good"), (40, "moderate"), (20, "poor"))


def score_band(score: int) -> str:
    for threshold, label in BANDS:
        if score >= threshold:
            return label
    return "very poor"


def sort_issues(issues: Sequence[Issue]) -> List[Issue]:
    """Stable sort by severity: critical, high, medium, low, then anything else."""
    return sorted(issues, key=lambda i: severity_rank(i.severity))


class Aggregator:
    """Weighted-mean aggregation of rule outcomes for a single dimension."""

    def __init__(self) -> None:
        self.logger = logger.bind(component="Aggregator")

    def aggregate(self, outcomes: Sequence[RuleOutcome], dimension: Dimension) -> DimensionScore:
        if not outcomes:
            return DimensionScore(dimension=dimension, final_score=None, explanation=NO_APPLICABLE_RULES)

        scores = [clamp_score(o.score) for o in outcomes]
        weights = [max(0.0, o.weight) for o in outcomes]
        total_weight = sum(weights)

        if total_weight > 0:
            contribution = sum(s * w / 100 for s, w in zip(scores, weights))
            final_score = round_half_up(contribution / total_weight * 100)
        else:
            final_score = round_half_up(sum(scores) / len(scores))

        evidence: List[EvidenceItem] = [item for o in outcomes for item in o.evidence]
        issues = sort_issues([i for o in outcomes for i in o.issues])

        METRICS["dimension_score"].labels(dimension=dimension.value).observe(final_score)
        self.logger.debug(
            "Dimension aggregated",
            dimension=dimension.value,
            final_score=final_score,
            rules=len(outcomes),
            issues=len(issues),
        )

        return DimensionScore(
            dimension=dimension,
            final_score=final_score,
            rule_outcomes=list(outcomes),
            evidence=evidence,
            issues=issues,
            explanation=self.explain(dimension, final_score, outcomes, scores, weights),
        )

    @staticmethod
    def explain(
        dimension: Dimension,
        final_score: int,
        outcomes: Sequence[RuleOutcome],
        scores: Optional[Sequence[float]] = None,
        weights: Optional[Sequence[float]] = None,
    ) -> str:
        scores = scores if scores is not None else [clamp_score(o.score) for o in outcomes]
        weights = weights if weights is not None else [max(0.0, o.weight) for o in outcomes]

        # sorted() is stable, so equal contributions keep outcome order
        ranked = sorted(range(len(outcomes)), key=lambda i: -(scores[i] * weights[i] / 100))
        top = [outcomes[i].rule_name for i in ranked[:2]]

        summary = DIMENSION_TEMPLATES[dimension].format(band=score_band(final_score), score=final_score)
        return f"{summary}. Main contributors: {', '.join(top)}."
