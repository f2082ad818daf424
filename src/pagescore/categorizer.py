"""
Page categorization: URL fast path first, model classification second.
"""

from __future__ import annotations

import re
from typing import Dict, Optional
from urllib.parse import urlparse

import structlog
from bs4 import BeautifulSoup
from pydantic import BaseModel, Field

from pagescore.config.config import CategorizerConfig
from pagescore.gateway.gateway import ModelGateway
from pagescore.gateway.protocols import Prompt
from pagescore.observability.metrics import METRICS
from pagescore.protocols import AnalysisLevel, PageCategory, PageCategoryType, PageMetadata

logger = structlog.get_logger(__name__)

P = PageCategoryType

ANALYSIS_LEVELS: Dict[PageCategoryType, AnalysisLevel] = {
    P.SEARCH_RESULTS_ERROR_PAGES: AnalysisLevel.EXCLUDED,
    P.PRIVATE_USER_ACCOUNT_PAGES: AnalysisLevel.EXCLUDED,
    P.LEGAL_PAGES: AnalysisLevel.EXCLUDED,
    P.PRICING_PAGE: AnalysisLevel.PARTIAL,
    P.CORPORATE_CONTACT_PAGES: AnalysisLevel.PARTIAL,
    P.PRODUCT_CATEGORY_PAGE: AnalysisLevel.LIMITED,
    P.BLOG_CATEGORY_TAG_PAGE: AnalysisLevel.LIMITED,
}

CATEGORY_DESCRIPTIONS: Dict[PageCategoryType, str] = {
    P.HOMEPAGE: "Main entry point and brand showcase of the site",
    P.PRODUCT_CATEGORY_PAGE: "Listing of several products within one category",
    P.PRODUCT_DETAIL_PAGE: "Page dedicated to a single product",
    P.SERVICES_FEATURES_PAGE: "Describes service offerings or product features",
    P.PRICING_PAGE: "Costs, plans and billing options",
    P.COMPARISON_PAGE: "Side-by-side comparison of the company's own offerings or against competitors",
    P.BLOG_POST_ARTICLE: "A single focused article",
    P.BLOG_CATEGORY_TAG_PAGE: "Archive listing blog posts for a topic or tag",
    P.PILLAR_PAGE_TOPIC_HUB: "Broad topic overview linking out to cluster content",
    P.PRODUCT_ROUNDUP_REVIEW_ARTICLE: "Reviews or ranks products from several companies",
    P.HOW_TO_GUIDE_TUTORIAL: "Step-by-step instructions",
    P.CASE_STUDY_SUCCESS_STORY: "Real customer example demonstrating results",
    P.WHAT_IS_X_DEFINITIONAL_PAGE: "Defines a key term or concept",
    P.IN_DEPTH_GUIDE_WHITE_PAPER: "Long-form, comprehensive treatment of a complex subject",
    P.FAQ_GLOSSARY_PAGES: "Structured questions and answers or term definitions",
    P.PUBLIC_FORUM_UGC_PAGES: "User-generated forum or community content",
    P.CORPORATE_CONTACT_PAGES: "About us, team, contact, careers, press or store locator",
    P.PRIVATE_USER_ACCOUNT_PAGES: "Login, sign-up, profile, order history or wishlist",
    P.SEARCH_RESULTS_ERROR_PAGES: "On-site search results or error pages such as 404",
    P.LEGAL_PAGES: "Privacy policy, terms of service, cookie policy or accessibility statement",
    P.UNKNOWN: "Cannot determine the category",
}

SYSTEM_PROMPT = "You are a web page categorization expert. Always respond with valid JSON."

_STRIP_TAGS = ("script", "style", "nav", "header", "footer", "noscript")
_WHITESPACE = re.compile(r"\s+")


def analysis_level_for(category: PageCategoryType) -> AnalysisLevel:
    """Static category -> analysis depth mapping."""
    return ANALYSIS_LEVELS.get(category, AnalysisLevel.FULL)


def fallback_category(reason: str = "categorization failed") -> PageCategory:
    return PageCategory(
        type=PageCategoryType.UNKNOWN,
        confidence=0.5,
        analysis_level=AnalysisLevel.PARTIAL,
        reason=reason,
    )


class CategorizationAnswer(BaseModel):
    """Shape the model must answer with."""

    category: str = Field(description="One of the listed category labels")
    confidence: float = Field(default=0.5, description="Confidence between 0.0 and 1.0")
    reason: str = Field(default="", description="Brief explanation")


class PageCategorizer:
    """Classifies a page into the closed set of page categories."""

    def __init__(self, gateway: Optional[ModelGateway] = None, settings: Optional[CategorizerConfig] = None) -> None:
        self.gateway = gateway
        self.settings = settings or CategorizerConfig()
        self.logger = logger.bind(component="PageCategorizer")

    async def categorize(self, url: str, html: str, metadata: Optional[PageMetadata] = None) -> PageCategory:
        """
        Categorize a page. Never raises.

        Args:
            url: Page URL
            html: Raw HTML
            metadata: Crawler metadata (title and meta description are used in the prompt)

        Returns:
            PageCategory; unknown/partial when classification is impossible
        """
        try:
            quick = self.categorize_by_url(url)
            if quick is not None and quick.confidence > self.settings.fast_path_threshold:
                METRICS["categorizations"].labels(source="fast_path").inc()
                self.logger.debug("Fast-path categorization", url=url, category=quick.type.value)
                return quick

            category = await self._categorize_with_model(url, html, metadata or PageMetadata())
            if category is not None:
                METRICS["categorizations"].labels(source="model").inc()
                return category
        except Exception as e:
            self.logger.error("Categorization error", url=url, error=str(e), error_type=type(e).__name__)

        METRICS["categorizations"].labels(source="fallback").inc()
        return fallback_category()

    @staticmethod
    def categorize_by_url(url: str) -> Optional[PageCategory]:
        """Only unambiguous URL patterns; everything else is left to the model."""
        path = urlparse(url).path.lower()

        if path in ("", "/"):
            return PageCategory(P.HOMEPAGE, 1.0, AnalysisLevel.FULL, "Root URL")
        if "/404" in path or "/error" in path:
            return PageCategory(P.SEARCH_RESULTS_ERROR_PAGES, 0.95, AnalysisLevel.EXCLUDED, "Error page URL pattern")
        if any(marker in path for marker in ("/login", "/signin", "/signup")):
            return PageCategory(
                P.PRIVATE_USER_ACCOUNT_PAGES, 0.95, AnalysisLevel.EXCLUDED, "Authentication page URL pattern"
            )
        return None

    async def _categorize_with_model(self, url: str, html: str, metadata: PageMetadata) -> Optional[PageCategory]:
        if not self.gateway:
            self.logger.debug("No model gateway available for categorization", url=url)
            return None

        prompt = self.build_prompt(url, self.extract_clean_text(html), metadata)
        result = await self.gateway.structured_call(prompt, CategorizationAnswer, temperature=0.1, max_tokens=500)
        if not result.ok or result.value is None:
            self.logger.warning("Model categorization failed", url=url, error=str(result.error))
            return None

        answer = result.value
        category_type = PageCategoryType.from_label(answer.category)
        if category_type is P.UNKNOWN and answer.category.strip().lower() != P.UNKNOWN.value:
            self.logger.info("Model returned unknown category label", url=url, label=answer.category)

        confidence = max(0.0, min(1.0, answer.confidence))
        category = PageCategory(
            type=category_type,
            confidence=confidence,
            analysis_level=analysis_level_for(category_type),
            reason=answer.reason or f"Model categorization ({result.provider})",
        )
        self.logger.info(
            "Page categorized",
            url=url,
            category=category.type.value,
            confidence=confidence,
            provider=result.provider,
        )
        return category

    def extract_clean_text(self, html: str) -> str:
        """Visible page text without scripts, styles or navigation chrome."""
        # Own parse: decompose() below must not touch a shared tree
        soup = BeautifulSoup(html or "", "html.parser")
        for tag in soup(_STRIP_TAGS):
            tag.decompose()
        root = soup.body or soup
        return _WHITESPACE.sub(" ", root.get_text(separator=" ")).strip()

    def build_prompt(self, url: str, clean_text: str, metadata: PageMetadata) -> Prompt:
        preview = clean_text[: self.settings.content_preview_chars]
        labels = "\n".join(f"- {category.value}: {desc}" for category, desc in CATEGORY_DESCRIPTIONS.items())
        user = (
            "Categorize this webpage into exactly one of the following categories:\n\n"
            f"{labels}\n\n"
            f"URL: {url}\n"
            f"TITLE: {metadata.title or ''}\n"
            f"META DESCRIPTION: {metadata.meta_description or ''}\n\n"
            f"CONTENT (first {self.settings.content_preview_chars} chars):\n{preview}\n\n"
            'Return ONLY a JSON object: {"category": "<label>", "confidence": 0.0-1.0, "reason": "<brief explanation>"}'
        )
        return Prompt(system=SYSTEM_PROMPT, user=user)
