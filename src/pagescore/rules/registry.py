"""
Rule catalog and per-page rule selection.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

import structlog

from pagescore.protocols import Dimension, PageCategoryType

from .authority import AuthorAttributionRule, ComparisonContentRule, OutboundCitationsRule
from .base import Rule
from .content import CaseStudiesRule, DefinitionalContentRule, MainHeadingRule, SubheadingsRule
from .model_backed import (
    CaseStudiesModelRule,
    ComparisonContentModelRule,
    DefinitionalContentModelRule,
    InDepthGuidesModelRule,
)
from .quality import ContentFreshnessRule, InDepthGuidesRule
from .technical import CleanHtmlRule, ImageAltRule, MetaDescriptionRule, StructuredDataRule

logger = structlog.get_logger(__name__)


class RuleCatalog(Mapping[Dimension, Tuple[Rule, ...]]):
    """Immutable mapping of dimension to its rules, in evaluation order."""

    def __init__(self, rules: Mapping[Dimension, Iterable[Rule]]) -> None:
        self._rules: Mapping[Dimension, Tuple[Rule, ...]] = MappingProxyType(
            {dimension: tuple(rules.get(dimension, ())) for dimension in Dimension}
        )

    def __getitem__(self, dimension: Dimension) -> Tuple[Rule, ...]:
        return self._rules[dimension]

    def __iter__(self) -> Iterator[Dimension]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def rule_ids(self) -> Dict[str, List[str]]:
        return {dimension.value: [rule.id for rule in rules] for dimension, rules in self._rules.items()}


def default_catalog() -> RuleCatalog:
    """The shipped heuristic rules."""
    return RuleCatalog(
        {
            Dimension.TECHNICAL: [StructuredDataRule(), ImageAltRule(), CleanHtmlRule(), MetaDescriptionRule()],
            Dimension.CONTENT: [MainHeadingRule(), SubheadingsRule(), DefinitionalContentRule(), CaseStudiesRule()],
            Dimension.AUTHORITY: [ComparisonContentRule(), AuthorAttributionRule(), OutboundCitationsRule()],
            Dimension.QUALITY: [ContentFreshnessRule(), InDepthGuidesRule()],
        }
    )


# Heuristic rule id -> factory for its model-backed variant
MODEL_VARIANTS: Mapping[str, Callable[[], Rule]] = MappingProxyType(
    {
        InDepthGuidesModelRule.id: InDepthGuidesModelRule,
        DefinitionalContentModelRule.id: DefinitionalContentModelRule,
        CaseStudiesModelRule.id: CaseStudiesModelRule,
        ComparisonContentModelRule.id: ComparisonContentModelRule,
    }
)


@dataclass(frozen=True)
class RulePlan:
    """Rules selected for one page, grouped by dimension."""

    groups: Mapping[Dimension, Tuple[Rule, ...]]
    skipped: Tuple[Dimension, ...] = field(default_factory=tuple)

    @property
    def rule_count(self) -> int:
        return sum(len(rules) for rules in self.groups.values())


def build_rule_plan(
    catalog: Mapping[Dimension, Iterable[Rule]],
    gateway: Optional[object],
    page_type: PageCategoryType,
    use_model_rules: bool = True,
    variants: Mapping[str, Callable[[], Rule]] = MODEL_VARIANTS,
) -> RulePlan:
    """
    Select the rules to run for a page.

    When a gateway is available, heuristic rules that have a model-backed
    variant are replaced in place and variants missing from their dimension
    are appended. Rules whose page types exclude `page_type` are then dropped.
    The catalog itself is never modified.

    Args:
        catalog: Rules per dimension
        gateway: Model gateway, or None when no provider is usable
        page_type: Category of the page being analyzed
        use_model_rules: Set False to keep heuristic rules even with a gateway
        variants: Heuristic rule id to model-backed variant factory

    Returns:
        RulePlan with the applicable rules and the dimensions left empty
    """
    substitute = bool(gateway) and use_model_rules
    groups: Dict[Dimension, Tuple[Rule, ...]] = {}
    skipped: List[Dimension] = []

    for dimension in Dimension:
        rules = list(catalog.get(dimension, ()))

        if substitute:
            present = set()
            for i, rule in enumerate(rules):
                if rule.id in variants:
                    rules[i] = variants[rule.id]()
                    present.add(rule.id)
            for rule_id, factory in variants.items():
                if rule_id in present:
                    continue
                variant = factory()
                if variant.dimension == dimension:
                    rules.append(variant)

        applicable = tuple(rule for rule in rules if rule.applies_to(page_type))
        if applicable:
            groups[dimension] = applicable
        else:
            skipped.append(dimension)

    logger.debug(
        "Rule plan built",
        page_type=page_type.value,
        model_rules=substitute,
        rules=sum(len(r) for r in groups.values()),
        skipped=[d.value for d in skipped],
    )
    return RulePlan(groups=MappingProxyType(groups), skipped=tuple(skipped))
