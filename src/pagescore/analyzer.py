"""
The analyze() entry point: categorize, select rules, run them, aggregate.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any, Iterable, List, Mapping, Optional, Union

import structlog

from pagescore.categorizer import PageCategorizer, fallback_category
from pagescore.config.config import AnalysisConfig
from pagescore.observability.metrics import METRICS
from pagescore.orchestrator import RuleOrchestrator
from pagescore.protocols import (
    AnalysisLevel,
    AnalysisResult,
    Issue,
    PageContent,
    PageInput,
    Severity,
    round_half_up,
)
from pagescore.rules.registry import RuleCatalog, build_rule_plan, default_catalog

logger = structlog.get_logger(__name__)

PageLike = Union[PageInput, Mapping[str, Any]]


class PageAnalyzer:
    """
    Scores one crawled page across the four dimensions.

    `analyze` never raises: missing HTML, excluded page types and unexpected
    failures are all reported inside the returned AnalysisResult.
    """

    def __init__(
        self,
        categorizer: Optional[PageCategorizer] = None,
        catalog: Optional[RuleCatalog] = None,
        orchestrator: Optional[RuleOrchestrator] = None,
        gateway: Optional[Any] = None,
        settings: Optional[AnalysisConfig] = None,
    ) -> None:
        self.gateway = gateway
        self.categorizer = categorizer or PageCategorizer(gateway)
        self.catalog = catalog or default_catalog()
        self.orchestrator = orchestrator or RuleOrchestrator()
        self.settings = settings or AnalysisConfig()
        self.logger = logger.bind(component="PageAnalyzer")

    async def analyze(self, page: PageLike) -> AnalysisResult:
        """
        Analyze a single page.

        Args:
            page: PageInput or a crawler row mapping (url, html, metadata)

        Returns:
            AnalysisResult with per-dimension scores, issues and recommendations
        """
        url = ""
        with structlog.contextvars.bound_contextvars(correlation_id=str(uuid.uuid4())):
            try:
                page_input = page if isinstance(page, PageInput) else PageInput.from_mapping(page)
                url = page_input.url
                if not page_input.has_html:
                    self.logger.warning("Page has no HTML", url=url)
                    METRICS["pages_analyzed"].labels(status="no_content").inc()
                    return self.error_result(
                        url,
                        "Page could not be crawled or has no content",
                        "Ensure the page is accessible and returns valid HTML",
                    )
                result = await self._analyze(page_input)
            except Exception as e:
                self.logger.error("Analysis failed", url=url, error=str(e), error_type=type(e).__name__, exc_info=True)
                METRICS["pages_analyzed"].labels(status="error").inc()
                return self.error_result(url, f"Analysis error: {e}", "Check the logs for details and retry the analysis")

        status = "skipped" if result.skip_reason else "success"
        METRICS["pages_analyzed"].labels(status=status).inc()
        return result

    async def _analyze(self, page: PageInput) -> AnalysisResult:
        category = await self.categorizer.categorize(page.url, page.html or "", page.metadata)
        self.logger.info(
            "Page categorized",
            url=page.url,
            category=category.type.value,
            confidence=category.confidence,
            analysis_level=category.analysis_level.value,
        )

        if category.analysis_level == AnalysisLevel.EXCLUDED:
            return AnalysisResult(
                url=page.url,
                scores=AnalysisResult.empty_scores(0),
                page_category=category,
                global_score=0,
                skip_reason=f"Page type {category.type.value} is excluded from analysis",
            )

        content = PageContent.from_input(page, category)
        plan = build_rule_plan(self.catalog, self.gateway, category.type, self.settings.use_model_rules)
        result = await self.orchestrator.run(
            content,
            plan,
            category,
            gateway=self.gateway,
            model_content_chars=self.settings.model_content_chars,
        )
        result.global_score = self.global_score(result)

        self.logger.info(
            "Page analyzed",
            url=page.url,
            global_score=result.global_score,
            issues=len(result.issues),
            model_usage=result.model_usage_count,
        )
        return result

    @staticmethod
    def global_score(result: AnalysisResult) -> int:
        """Rounded mean of the dimension scores that are not None; 0 when there are none."""
        present = [score for score in result.scores.values() if score is not None]
        if not present:
            return 0
        return round_half_up(sum(present) / len(present))

    @staticmethod
    def error_result(url: str, description: str, recommendation: str) -> AnalysisResult:
        return AnalysisResult(
            url=url,
            scores=AnalysisResult.empty_scores(),
            issues=[Issue(severity=Severity.CRITICAL, description=description, recommendation=recommendation)],
            page_category=fallback_category("no analysis performed"),
            global_score=0,
        )

    async def analyze_many(self, pages: Iterable[PageLike], concurrency: Optional[int] = None) -> List[AnalysisResult]:
        """Analyze a batch of pages with bounded concurrency, preserving input order."""
        semaphore = asyncio.Semaphore(concurrency or self.settings.max_concurrent_pages)

        async def _bounded(page: PageLike) -> AnalysisResult:
            async with semaphore:
                return await self.analyze(page)

        return list(await asyncio.gather(*(_bounded(page) for page in pages)))
