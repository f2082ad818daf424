"""
Core contracts and dataclasses for PageScore.

This module defines the data structures shared by every stage of the scoring
pipeline:

- closed enumerations (dimensions, severities, page categories, analysis levels)
- the immutable PageContent handed to rules
- rule outcomes, dimension scores and the final AnalysisResult
- the Rule protocol every scoring check implements
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from functools import cached_property
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple

from bs4 import BeautifulSoup
from bs4.element import Comment, Declaration, Doctype, ProcessingInstruction

if TYPE_CHECKING:
    from pagescore.gateway.gateway import ModelGateway

# ============================================================================
# Enums and Constants
# ============================================================================


class Dimension(Enum):
    """The four fixed scoring axes."""

    TECHNICAL = "technical"
    CONTENT = "content"
    AUTHORITY = "authority"
    QUALITY = "quality"


class Severity(Enum):
    """Issue severity levels, most urgent first."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


SEVERITY_RANK: Dict[str, int] = {
    Severity.CRITICAL.value: 0,
    Severity.HIGH.value: 1,
    Severity.MEDIUM.value: 2,
    Severity.LOW.value: 3,
}


def severity_rank(severity: Any) -> int:
    """Return the sort rank for a severity; unknown severities sort last."""
    value = severity.value if isinstance(severity, Severity) else severity
    return SEVERITY_RANK.get(value, 4)


class AnalysisLevel(Enum):
    """How deeply a page category is analyzed."""

    FULL = "full"
    PARTIAL = "partial"
    LIMITED = "limited"
    EXCLUDED = "excluded"


class PageCategoryType(Enum):
    """Closed set of page category labels."""

    # Core business pages
    HOMEPAGE = "homepage"
    PRODUCT_CATEGORY_PAGE = "product_category_page"
    PRODUCT_DETAIL_PAGE = "product_detail_page"
    SERVICES_FEATURES_PAGE = "services_features_page"
    PRICING_PAGE = "pricing_page"
    COMPARISON_PAGE = "comparison_page"
    BLOG_POST_ARTICLE = "blog_post_article"
    BLOG_CATEGORY_TAG_PAGE = "blog_category_tag_page"

    # Strategic content and resources
    PILLAR_PAGE_TOPIC_HUB = "pillar_page_topic_hub"
    PRODUCT_ROUNDUP_REVIEW_ARTICLE = "product_roundup_review_article"
    HOW_TO_GUIDE_TUTORIAL = "how_to_guide_tutorial"
    CASE_STUDY_SUCCESS_STORY = "case_study_success_story"
    WHAT_IS_X_DEFINITIONAL_PAGE = "what_is_x_definitional_page"
    IN_DEPTH_GUIDE_WHITE_PAPER = "in_depth_guide_white_paper"
    FAQ_GLOSSARY_PAGES = "faq_glossary_pages"
    PUBLIC_FORUM_UGC_PAGES = "public_forum_ugc_pages"

    # Supporting pages
    CORPORATE_CONTACT_PAGES = "corporate_contact_pages"
    PRIVATE_USER_ACCOUNT_PAGES = "private_user_account_pages"
    SEARCH_RESULTS_ERROR_PAGES = "search_results_error_pages"
    LEGAL_PAGES = "legal_pages"

    UNKNOWN = "unknown"

    @classmethod
    def from_label(cls, label: Any) -> PageCategoryType:
        """Map a free-form label onto the closed set, defaulting to UNKNOWN."""
        if isinstance(label, cls):
            return label
        if not isinstance(label, str):
            return cls.UNKNOWN
        normalized = label.strip().lower().replace("-", "_").replace(" ", "_")
        try:
            return cls(normalized)
        except ValueError:
            return cls.UNKNOWN


class RuleKind(Enum):
    """Explicit tag telling heuristic rules apart from model-backed ones."""

    HEURISTIC = "heuristic"
    MODEL_BACKED = "model_backed"


class EvidenceKind(Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    INFO = "info"
    CALCULATION = "calculation"


MAX_SCORE = 100


def clamp_score(score: float) -> float:
    """Clamp a rule score into [0, 100]."""
    return max(0.0, min(float(MAX_SCORE), float(score)))


def round_half_up(value: float) -> int:
    """Round halves up (12.5 -> 13) instead of to the nearest even integer."""
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


# ============================================================================
# Page Input
# ============================================================================


@dataclass(frozen=True)
class PageMetadata:
    """Crawler-supplied metadata about a page."""

    status_code: Optional[int] = None
    content_type: Optional[str] = None
    title: Optional[str] = None
    meta_description: Optional[str] = None


@dataclass(frozen=True)
class PageInput:
    """Raw page as supplied by the crawler/cache collaborator."""

    url: str
    html: Optional[str] = None
    metadata: PageMetadata = field(default_factory=PageMetadata)

    @property
    def has_html(self) -> bool:
        return bool(self.html and self.html.strip())

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> PageInput:
        """Build a PageInput from a crawler row (snake_case or camelCase keys)."""
        meta = data.get("metadata") or {}

        def pick(*keys: str) -> Any:
            for key in keys:
                if key in meta and meta[key] is not None:
                    return meta[key]
                if key in data and data[key] is not None:
                    return data[key]
            return None

        status = pick("status_code", "statusCode")
        return cls(
            url=str(data.get("url", "")),
            html=data.get("html") or data.get("content"),
            metadata=PageMetadata(
                status_code=int(status) if status is not None else None,
                content_type=pick("content_type", "contentType"),
                title=pick("title"),
                meta_description=pick("meta_description", "metaDescription"),
            ),
        )


@dataclass(frozen=True)
class PageCategory:
    """Classified type of a page and the depth of analysis it warrants."""

    type: PageCategoryType
    confidence: float
    analysis_level: AnalysisLevel
    reason: str

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "confidence": self.confidence,
            "analysis_level": self.analysis_level.value,
            "reason": self.reason,
        }


_NON_CONTENT_TAGS = frozenset({"script", "style", "noscript", "template"})
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class PageContent:
    """
    Immutable input shared by every rule evaluating a page.

    `dom` is a parsed BeautifulSoup tree. Rules query it but must never
    modify it; it is shared across concurrently running rules.
    """

    url: str
    html: str
    dom: BeautifulSoup
    metadata: PageMetadata
    category: PageCategory

    @classmethod
    def from_input(cls, page: PageInput, category: PageCategory) -> PageContent:
        html = page.html or ""
        return cls(
            url=page.url,
            html=html,
            dom=BeautifulSoup(html, "html.parser"),
            metadata=page.metadata,
            category=category,
        )

    @cached_property
    def visible_text(self) -> str:
        """Body text without script/style content, whitespace collapsed."""
        root = self.dom.body or self.dom
        parts = []
        for node in root.find_all(string=True):
            if node.parent is not None and node.parent.name in _NON_CONTENT_TAGS:
                continue
            if isinstance(node, (Comment, Declaration, Doctype, ProcessingInstruction)):
                continue
            parts.append(str(node))
        return _WHITESPACE.sub(" ", " ".join(parts)).strip()

    @cached_property
    def word_count(self) -> int:
        return len(self.visible_text.split()) if self.visible_text else 0

    @property
    def title(self) -> str:
        if self.metadata.title:
            return self.metadata.title
        tag = self.dom.find("title")
        return tag.get_text(strip=True) if tag else ""


# ============================================================================
# Rule results
# ============================================================================


@dataclass(frozen=True)
class EvidenceItem:
    """A single, structurally uniform piece of evidence produced by a rule."""

    kind: EvidenceKind
    topic: str
    message: str
    data: Optional[Dict[str, Any]] = None

    @classmethod
    def success(cls, topic: str, message: str, **data: Any) -> EvidenceItem:
        return cls(EvidenceKind.SUCCESS, topic, message, data or None)

    @classmethod
    def warning(cls, topic: str, message: str, **data: Any) -> EvidenceItem:
        return cls(EvidenceKind.WARNING, topic, message, data or None)

    @classmethod
    def error(cls, topic: str, message: str, **data: Any) -> EvidenceItem:
        return cls(EvidenceKind.ERROR, topic, message, data or None)

    @classmethod
    def info(cls, topic: str, message: str, **data: Any) -> EvidenceItem:
        return cls(EvidenceKind.INFO, topic, message, data or None)

    @classmethod
    def score_breakdown(cls, components: List[Tuple[str, float]], final_score: float) -> EvidenceItem:
        """Summarize how a rule arrived at its score."""
        formula = " + ".join(f"{label} ({points:+g})" for label, points in components) or "no components"
        return cls(
            EvidenceKind.CALCULATION,
            "Score Calculation",
            f"{formula} = {final_score:g}/{MAX_SCORE}",
            {"components": [{"component": c, "points": p} for c, p in components], "final": final_score},
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"kind": self.kind.value, "topic": self.topic, "message": self.message}
        if self.data is not None:
            payload["data"] = self.data
        return payload


@dataclass(frozen=True)
class Issue:
    """A problem found by a rule. Dimension and rule id are filled in by the orchestrator."""

    severity: Severity
    description: str
    recommendation: str
    affected_elements: Optional[Tuple[str, ...]] = None
    dimension: Optional[Dimension] = None
    rule_id: Optional[str] = None

    def tagged(self, dimension: Dimension, rule_id: str) -> Issue:
        return replace(self, dimension=dimension, rule_id=rule_id)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "severity": self.severity.value if isinstance(self.severity, Severity) else str(self.severity),
            "description": self.description,
            "recommendation": self.recommendation,
        }
        if self.affected_elements:
            payload["affected_elements"] = list(self.affected_elements)
        if self.dimension is not None:
            payload["dimension"] = self.dimension.value
        if self.rule_id is not None:
            payload["rule_id"] = self.rule_id
        return payload


@dataclass(frozen=True)
class Recommendation:
    content: str
    rule_id: str
    dimension: Dimension

    def to_dict(self) -> Dict[str, Any]:
        return {"content": self.content, "rule_id": self.rule_id, "dimension": self.dimension.value}


@dataclass(frozen=True)
class RuleOutcome:
    """Result of evaluating one rule against one page. Immutable once returned."""

    rule_id: str
    rule_name: str
    dimension: Dimension
    score: float
    weight: float
    evidence: Tuple[EvidenceItem, ...] = ()
    issues: Tuple[Issue, ...] = ()
    recommendations: Tuple[str, ...] = ()
    used_model: bool = False
    max_score: int = MAX_SCORE

    def __post_init__(self) -> None:
        if self.weight < 0:
            raise ValueError(f"Rule weight must be >= 0, got {self.weight}")
        # Frozen dataclass: clamp through object.__setattr__
        object.__setattr__(self, "score", clamp_score(self.score))

    @property
    def contribution(self) -> float:
        return self.score * self.weight / MAX_SCORE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "dimension": self.dimension.value,
            "score": self.score,
            "max_score": self.max_score,
            "weight": self.weight,
            "contribution": self.contribution,
            "evidence": [item.to_dict() for item in self.evidence],
            "issues": [issue.to_dict() for issue in self.issues],
            "recommendations": list(self.recommendations),
            "used_model": self.used_model,
        }


@dataclass(frozen=True)
class RuleOptions:
    """Options bag passed to every rule evaluation."""

    category: PageCategory
    analysis_level: AnalysisLevel
    gateway: Optional[ModelGateway] = None
    model_content_chars: int = 15000


@dataclass
class DimensionScore:
    """Aggregated score for one dimension. final_score is None when no rule applied."""

    dimension: Dimension
    final_score: Optional[int]
    rule_outcomes: List[RuleOutcome] = field(default_factory=list)
    evidence: List[EvidenceItem] = field(default_factory=list)
    issues: List[Issue] = field(default_factory=list)
    explanation: str = ""
    max_possible_score: int = MAX_SCORE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dimension": self.dimension.value,
            "final_score": self.final_score,
            "max_possible_score": self.max_possible_score,
            "rule_outcomes": [outcome.to_dict() for outcome in self.rule_outcomes],
            "evidence": [item.to_dict() for item in self.evidence],
            "issues": [issue.to_dict() for issue in self.issues],
            "explanation": self.explanation,
        }


@dataclass
class AnalysisResult:
    """Final, explained result for one page."""

    url: str
    scores: Dict[Dimension, Optional[int]]
    issues: List[Issue] = field(default_factory=list)
    recommendations: List[Recommendation] = field(default_factory=list)
    per_dimension: Dict[Dimension, DimensionScore] = field(default_factory=dict)
    page_category: Optional[PageCategory] = None
    global_score: Optional[int] = None
    model_usage_count: int = 0
    skip_reason: Optional[str] = None

    @staticmethod
    def empty_scores(value: Optional[int] = None) -> Dict[Dimension, Optional[int]]:
        return {dimension: value for dimension in Dimension}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "scores": {dimension.value: score for dimension, score in self.scores.items()},
            "global_score": self.global_score,
            "issues": [issue.to_dict() for issue in self.issues],
            "recommendations": [rec.to_dict() for rec in self.recommendations],
            "per_dimension": {dimension.value: ds.to_dict() for dimension, ds in self.per_dimension.items()},
            "page_category": self.page_category.to_dict() if self.page_category else None,
            "model_usage_count": self.model_usage_count,
            "skip_reason": self.skip_reason,
        }


# ============================================================================
# Exceptions
# ============================================================================


class PageScoreError(Exception):
    """Base class for PageScore errors."""


class ProviderError(PageScoreError):
    """A single model backend failed (transport, HTTP status or payload)."""

    def __init__(self, provider: str, message: str, status: Optional[int] = None) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status = status
