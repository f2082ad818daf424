"""
Runs the selected rules for a page and merges their outcomes.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Tuple

import structlog

from pagescore.aggregator import Aggregator, sort_issues
from pagescore.observability.metrics import METRICS
from pagescore.protocols import (
    AnalysisResult,
    Dimension,
    DimensionScore,
    Issue,
    PageCategory,
    PageContent,
    Recommendation,
    RuleOptions,
    RuleOutcome,
)
from pagescore.rules.base import Rule
from pagescore.rules.registry import RulePlan

if TYPE_CHECKING:
    from pagescore.gateway.gateway import ModelGateway

logger = structlog.get_logger(__name__)


class RuleOrchestrator:
    """
    Fan-out/fan-in execution of a rule plan.

    Dimensions run concurrently, as do the rules inside each dimension. A rule
    that raises is logged, counted and left out of its dimension; siblings and
    other dimensions are unaffected.
    """

    def __init__(self, aggregator: Optional[Aggregator] = None) -> None:
        self.aggregator = aggregator or Aggregator()
        self.logger = logger.bind(component="RuleOrchestrator")

    async def run(
        self,
        page: PageContent,
        plan: RulePlan,
        category: PageCategory,
        gateway: Optional["ModelGateway"] = None,
        model_content_chars: int = 15000,
    ) -> AnalysisResult:
        options = RuleOptions(
            category=category,
            analysis_level=category.analysis_level,
            gateway=gateway,
            model_content_chars=model_content_chars,
        )

        dimensions = [d for d in Dimension if d in plan.groups]
        per_dimension: Sequence[DimensionScore] = await asyncio.gather(
            *(self._run_dimension(page, dimension, plan.groups[dimension], options) for dimension in dimensions)
        )

        scores: Dict[Dimension, Optional[int]] = AnalysisResult.empty_scores()
        issues: List[Issue] = []
        recommendations: List[Recommendation] = []
        seen_recommendations = set()
        model_usage = 0

        for dimension_score in per_dimension:
            scores[dimension_score.dimension] = dimension_score.final_score
            issues.extend(dimension_score.issues)
            for outcome in dimension_score.rule_outcomes:
                model_usage += int(outcome.used_model)
                for content in outcome.recommendations:
                    key = (outcome.rule_id, content)
                    if key in seen_recommendations:
                        continue
                    seen_recommendations.add(key)
                    recommendations.append(Recommendation(content, outcome.rule_id, dimension_score.dimension))

        self.logger.info(
            "Rules evaluated",
            url=page.url,
            scores={d.value: s for d, s in scores.items()},
            skipped=[d.value for d in plan.skipped],
            model_usage=model_usage,
        )

        return AnalysisResult(
            url=page.url,
            scores=scores,
            issues=sort_issues(issues),
            recommendations=recommendations,
            per_dimension={ds.dimension: ds for ds in per_dimension if ds.final_score is not None},
            page_category=category,
            model_usage_count=model_usage,
        )

    async def _run_dimension(
        self, page: PageContent, dimension: Dimension, rules: Sequence[Rule], options: RuleOptions
    ) -> DimensionScore:
        results = await asyncio.gather(*(self._run_rule(rule, page, options) for rule in rules), return_exceptions=True)

        outcomes: List[RuleOutcome] = []
        for rule, result in zip(rules, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException) or not isinstance(result, RuleOutcome):
                error = result if isinstance(result, BaseException) else TypeError(f"returned {type(result).__name__}")
                self.logger.error(
                    "Rule failed",
                    rule=rule.id,
                    dimension=dimension.value,
                    url=page.url,
                    error=str(error),
                    error_type=type(error).__name__,
                )
                METRICS["rule_errors"].labels(rule=rule.id).inc()
                continue
            outcomes.append(self._tag(result, dimension))

        return self.aggregator.aggregate(outcomes, dimension)

    async def _run_rule(self, rule: Rule, page: PageContent, options: RuleOptions) -> RuleOutcome:
        with METRICS["rule_latency_seconds"].labels(rule=rule.id).time():
            return await rule.evaluate(page, options)

    @staticmethod
    def _tag(outcome: RuleOutcome, dimension: Dimension) -> RuleOutcome:
        tagged: Tuple[Issue, ...] = tuple(i.tagged(dimension, outcome.rule_id) for i in outcome.issues)
        if tagged == outcome.issues:
            return outcome
        return replace(outcome, issues=tagged)
