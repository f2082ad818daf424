"""
Authority dimension rules: comparisons, attribution and citations.
"""

from __future__ import annotations

import re
from typing import List

from pagescore.protocols import (
    Dimension,
    EvidenceItem,
    PageCategoryType,
    PageContent,
    RuleOptions,
    RuleOutcome,
    Severity,
)

from .base import Rule, issue
from .dom import Findings, classify_links, host_of, json_ld_items, meta_content

P = PageCategoryType

COMPARISON_URL = re.compile(r"(?:vs|versus|compare|comparison|difference|alternative)", re.IGNORECASE)
COMPARISON_PATTERNS = (
    re.compile(r"\bvs\b|\bversus\b", re.IGNORECASE),
    re.compile(r"compar(?:e|ed|ing|ison)", re.IGNORECASE),
    re.compile(r"alternatives? to", re.IGNORECASE),
    re.compile(r"better than|worse than", re.IGNORECASE),
    re.compile(r"pros?\s*(?:and|&)\s*cons?", re.IGNORECASE),
    re.compile(r"advantage|disadvantage", re.IGNORECASE),
)
PROS_CONS = COMPARISON_PATTERNS[4]


class ComparisonContentRule(Rule):
    id = "comparison-content"
    name = "Comparison Content"
    dimension = Dimension.AUTHORITY
    weight = 1.5
    applicable_page_types = frozenset(
        {
            P.COMPARISON_PAGE,
            P.BLOG_POST_ARTICLE,
            P.PRODUCT_DETAIL_PAGE,
            P.PRODUCT_ROUNDUP_REVIEW_ARTICLE,
        }
    )

    MAX_CONTENT_LENGTH = 15000
    MIN_CONTENT_LENGTH = 100

    def insufficient_content(self, page: PageContent):
        if len(page.visible_text.strip()) >= self.MIN_CONTENT_LENGTH:
            return None
        return self.outcome(
            20,
            [EvidenceItem.error("Content", "Too little text to analyze for comparisons")],
            [issue(Severity.HIGH, "Insufficient content to analyze for comparisons", "Add substantive comparison content")],
        )

    async def evaluate(self, page: PageContent, options: RuleOptions) -> RuleOutcome:
        early = self.insufficient_content(page)
        if early is not None:
            return early

        evidence: List[EvidenceItem] = []
        if COMPARISON_URL.search(page.url):
            evidence.append(EvidenceItem.success("URL", "URL indicates comparison content"))

        text = page.visible_text[: self.MAX_CONTENT_LENGTH]
        matches = sum(len(pattern.findall(text)) for pattern in COMPARISON_PATTERNS)
        has_table = page.dom.find("table") is not None
        structured = bool(PROS_CONS.search(text)) or (has_table and matches > 0)

        if matches >= 5 and structured:
            evidence.append(EvidenceItem.success("Comparison", f"{matches} comparison signals with structured format"))
            return self.outcome(80, evidence)
        if matches >= 3:
            evidence.append(EvidenceItem.warning("Comparison", f"{matches} comparison signals"))
            return self.outcome(60, evidence, recommendations=["Add a comparison table or pros/cons lists"])
        if matches >= 1:
            evidence.append(EvidenceItem.warning("Comparison", f"Only {matches} comparison signal(s)"))
            return self.outcome(40, evidence, recommendations=["Compare at least two options in depth"])

        evidence.append(EvidenceItem.error("Comparison", "No comparison content found"))
        return self.outcome(
            20,
            evidence,
            [issue(Severity.HIGH, "No comparison content found", "Add comparison content covering 2+ items")],
        )


AUTHOR_SELECTORS = (
    '[class*="author"]',
    '[class*="byline"]',
    '[id*="author"]',
    '[itemprop="author"]',
    ".post-author",
    ".article-author",
)
BYLINE = re.compile(r"\b(?:by|written by|posted by|author:)\s+[A-Z][a-z]+(?:\s+[A-Z][a-z]+)+")


class AuthorAttributionRule(Rule):
    id = "author-attribution"
    name = "Author Attribution"
    dimension = Dimension.AUTHORITY
    weight = 2.0
    applicable_page_types = frozenset(
        {
            P.BLOG_POST_ARTICLE,
            P.HOW_TO_GUIDE_TUTORIAL,
            P.IN_DEPTH_GUIDE_WHITE_PAPER,
            P.PILLAR_PAGE_TOPIC_HUB,
            P.PRODUCT_ROUNDUP_REVIEW_ARTICLE,
            P.CASE_STUDY_SUCCESS_STORY,
            P.WHAT_IS_X_DEFINITIONAL_PAGE,
        }
    )

    async def evaluate(self, page: PageContent, options: RuleOptions) -> RuleOutcome:
        f = Findings()
        dom = page.dom

        meta_author = meta_content(dom, 'meta[name="author"]', 'meta[property="article:author"]')
        if meta_author:
            f.add("Author meta tag", 30)
            f.evidence.append(EvidenceItem.success("Author Meta", f"Author meta tag: {meta_author[:80]}"))

        items, _ = json_ld_items(dom)
        if any(item.data.get("author") for item in items):
            f.add("Schema author", 30)
            f.evidence.append(EvidenceItem.success("Author Schema", "Structured data names an author"))

        byline_elements = [el for selector in AUTHOR_SELECTORS for el in dom.select(selector)]
        if byline_elements or BYLINE.search(page.visible_text[:5000]):
            f.add("Visible byline", 30)
            f.evidence.append(EvidenceItem.success("Byline", "Visible author byline"))

        if dom.select_one('a[rel="author"], [class*="author-bio"], [class*="author-info"]') is not None:
            f.add("Author profile link", 10)
            f.evidence.append(EvidenceItem.success("Author Profile", "Links to an author profile or bio"))

        if not f.breakdown:
            f.add("No attribution", 10)
            f.evidence.append(EvidenceItem.error("Author", "No author attribution found"))
            f.issues.append(
                issue(
                    Severity.MEDIUM,
                    "Content has no author attribution",
                    "Show the author name with a link to their bio and add it to Article schema",
                )
            )
        elif f.score < 60:
            f.recommendations.append("Combine a visible byline with author meta tags and schema markup")

        f.summarize()
        return self.outcome(f.score, f.evidence, f.issues, f.recommendations)


AUTHORITATIVE_SUFFIXES = (".gov", ".edu", ".int", ".ac.uk", ".gov.uk")
AUTHORITATIVE_HOSTS = frozenset(
    {"wikipedia.org", "en.wikipedia.org", "doi.org", "who.int", "nih.gov", "nature.com", "sciencedirect.com"}
)


def is_authoritative(url: str) -> bool:
    host = host_of(url)
    return host in AUTHORITATIVE_HOSTS or host.endswith(AUTHORITATIVE_SUFFIXES)


class OutboundCitationsRule(Rule):
    id = "outbound-citations"
    name = "Outbound Citations"
    dimension = Dimension.AUTHORITY
    weight = 1.0

    async def evaluate(self, page: PageContent, options: RuleOptions) -> RuleOutcome:
        root = page.dom.find("main") or page.dom.find("article") or page.dom
        _, external = classify_links(root, page.url)
        external_hosts = {host_of(url) for url in external}
        authoritative = sorted({host_of(url) for url in external if is_authoritative(url)})

        evidence = [EvidenceItem.info("Citations", f"{len(external)} external link(s) to {len(external_hosts)} domain(s)")]
        issues = []
        recommendations = []

        if not external:
            score = 30
            evidence.append(EvidenceItem.warning("Citations", "No outbound references"))
            issues.append(
                issue(Severity.LOW, "No outbound citations", "Cite sources that back up claims made on the page")
            )
        elif len(external_hosts) >= 3:
            score = 80
        else:
            score = 60
            recommendations.append("Reference a wider range of external sources")

        if authoritative:
            score += 20
            evidence.append(EvidenceItem.success("Citations", "Cites authoritative sources", domains=authoritative[:5]))
        elif external:
            recommendations.append("Include references to authoritative sources (.gov, .edu, research)")

        return self.outcome(score, evidence, issues, recommendations)
