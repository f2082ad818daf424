"""
Base classes for scoring rules.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import replace
from typing import ClassVar, FrozenSet, Iterable, Optional, Type

import structlog
from pydantic import BaseModel

from pagescore.gateway.protocols import Prompt
from pagescore.protocols import (
    Dimension,
    EvidenceItem,
    Issue,
    PageCategoryType,
    PageContent,
    RuleKind,
    RuleOptions,
    RuleOutcome,
    Severity,
)

logger = structlog.get_logger(__name__)


def issue(severity: Severity, description: str, recommendation: str, *affected: str) -> Issue:
    return Issue(
        severity=severity,
        description=description,
        recommendation=recommendation,
        affected_elements=tuple(affected) or None,
    )


class Rule(ABC):
    """
    A single scoring check contributing to one dimension.

    Rules are stateless: identity, dimension, weight and applicable page types
    are class attributes, and `evaluate` only reads the page it is given.
    """

    id: ClassVar[str]
    name: ClassVar[str]
    dimension: ClassVar[Dimension]
    weight: ClassVar[float] = 1.0
    # Empty means the rule applies to every page type
    applicable_page_types: ClassVar[FrozenSet[PageCategoryType]] = frozenset()
    kind: ClassVar[RuleKind] = RuleKind.HEURISTIC

    def applies_to(self, page_type: PageCategoryType) -> bool:
        return not self.applicable_page_types or page_type in self.applicable_page_types

    @abstractmethod
    async def evaluate(self, page: PageContent, options: RuleOptions) -> RuleOutcome:
        """Score the page for this rule."""

    def outcome(
        self,
        score: float,
        evidence: Iterable[EvidenceItem] = (),
        issues: Iterable[Issue] = (),
        recommendations: Iterable[str] = (),
        used_model: bool = False,
    ) -> RuleOutcome:
        return RuleOutcome(
            rule_id=self.id,
            rule_name=self.name,
            dimension=self.dimension,
            score=score,
            weight=self.weight,
            evidence=tuple(evidence),
            issues=tuple(issues),
            recommendations=tuple(recommendations),
            used_model=used_model,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.id!r}, kind={self.kind.value})"


class ModelBackedRule(Rule):
    """
    Rule whose judgment comes from the model gateway.

    Subclasses declare the heuristic rule they fall back to, the pydantic
    shape of the model's answer, and how to turn that answer into a score.
    Identity (id, dimension, weight, page types) is taken from the fallback
    rule so that both variants are interchangeable in the registry.
    """

    kind: ClassVar[RuleKind] = RuleKind.MODEL_BACKED
    fallback_rule: ClassVar[Type[Rule]]
    answer_shape: ClassVar[Type[BaseModel]]
    system_prompt: ClassVar[str] = "You are an expert content analyst. Always respond with valid JSON."

    def __init_subclass__(cls, **kwargs) -> None:
        super().__init_subclass__(**kwargs)
        fallback = cls.__dict__.get("fallback_rule")
        if fallback is not None:
            cls.id = fallback.id
            cls.dimension = fallback.dimension
            cls.weight = fallback.weight
            cls.applicable_page_types = fallback.applicable_page_types
            if "name" not in cls.__dict__:
                cls.name = fallback.name

    def __init__(self, fallback: Optional[Rule] = None) -> None:
        self.fallback = fallback or self.fallback_rule()

    async def evaluate(self, page: PageContent, options: RuleOptions) -> RuleOutcome:
        early = self.precheck(page)
        if early is not None:
            return early

        if not options.gateway:
            return await self._heuristic(page, options, "No model available, using heuristic analysis")

        text = page.visible_text[: options.model_content_chars]
        result = await options.gateway.structured_call(self.build_prompt(page, text), self.answer_shape)
        if not result.ok or result.value is None:
            logger.info("Model-backed rule falling back to heuristics", rule=self.id, url=page.url)
            return await self._heuristic(page, options, "Model analysis failed, using heuristic analysis")

        return self.score_answer(page, result.value, result.provider or "unknown")

    def precheck(self, page: PageContent) -> Optional[RuleOutcome]:
        """Return an outcome to skip the model call, or None to proceed."""
        return None

    @abstractmethod
    def build_prompt(self, page: PageContent, text: str) -> Prompt:
        ...

    @abstractmethod
    def score_answer(self, page: PageContent, answer: BaseModel, provider: str) -> RuleOutcome:
        ...

    async def _heuristic(self, page: PageContent, options: RuleOptions, note: str) -> RuleOutcome:
        fallback = await self.fallback.evaluate(page, options)
        return replace(fallback, evidence=(EvidenceItem.warning("Analysis Method", note),) + fallback.evidence)
