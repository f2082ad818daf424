"""
Quality dimension rules: freshness and depth.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Callable, List, Optional

from dateutil import parser as dateutil_parser

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
from .dom import Findings, json_ld_items, meta_content

P = PageCategoryType

URL_DATE = re.compile(r"/(\d{4})/(\d{1,2})/|/(\d{4})-(\d{1,2})-(\d{1,2})")
PUBLISHED_SELECTORS = (
    'meta[property="article:published_time"]',
    'meta[name="datePublished"]',
    'meta[name="publish_date"]',
    'meta[property="og:article:published_time"]',
    'meta[name="DC.date.issued"]',
)
MODIFIED_SELECTORS = (
    'meta[property="article:modified_time"]',
    'meta[name="dateModified"]',
    'meta[property="og:article:modified_time"]',
    'meta[name="last-modified"]',
)
VISIBLE_DATE = re.compile(
    r"(?:published|updated|modified|posted|last\s+(?:updated|modified))(?:\s+on)?:?\s*"
    r"([A-Za-z]+\s+\d{1,2},?\s+\d{4}|\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4})",
    re.IGNORECASE,
)
FRESHNESS_PATTERNS = (
    re.compile(r"\b(?:new|latest|recent|current|updated|revised)\b", re.IGNORECASE),
    re.compile(r"this\s+(?:year|month|week)|as\s+of\s+\w+\s+\d{4}", re.IGNORECASE),
    re.compile(r"just\s+(?:released|announced|published|launched)", re.IGNORECASE),
)


def parse_date(value: str) -> Optional[datetime]:
    """Parse a date in any common format; naive values are taken as UTC."""
    try:
        parsed = dateutil_parser.parse(value.strip())
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ContentFreshnessRule(Rule):
    id = "content-freshness"
    name = "Content Freshness"
    dimension = Dimension.QUALITY
    weight = 3.0

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self.clock = clock

    async def evaluate(self, page: PageContent, options: RuleOptions) -> RuleOutcome:
        f = Findings()
        now = self.clock()

        if URL_DATE.search(page.url):
            f.add("URL date pattern", 15)
            f.evidence.append(EvidenceItem.success("URL Date", "Date found in URL structure"))

        date = self.metadata_date(page)
        if date is not None:
            f.add("Structured date metadata", 20)
            age_days = (now - date).days
            f.evidence.append(EvidenceItem.success("Date Metadata", f"Content dated {date.date().isoformat()}", age_days=age_days))
            if age_days <= 30:
                f.add("Very fresh content", 25)
            elif age_days <= 180:
                f.add("Recent content", 15)
            elif age_days <= 365:
                f.add("Aging content", 5)
            else:
                f.evidence.append(EvidenceItem.warning("Content Age", f"Content is {age_days} days old"))
                f.issues.append(
                    issue(Severity.MEDIUM, "Content has not been updated in over a year", "Review and update the content")
                )
        else:
            f.evidence.append(EvidenceItem.warning("Date Metadata", "No publication or modification date metadata"))
            f.issues.append(
                issue(
                    Severity.MEDIUM,
                    "Missing date metadata",
                    "Add article:published_time / dateModified metadata or a <time datetime> element",
                )
            )

        text = page.visible_text
        visible_dates = VISIBLE_DATE.findall(text)
        if visible_dates:
            f.add("Visible dates", 15)
            f.evidence.append(EvidenceItem.success("Visible Dates", f"Found {len(visible_dates)} visible date reference(s)"))
        else:
            f.recommendations.append("Add visible publication or update dates to content")

        years = {str(now.year), str(now.year - 1), str(now.year - 2)}
        year_mentions = [y for y in re.findall(r"\b\d{4}\b", text) if y in years]
        if len(year_mentions) >= 3:
            f.add("Multiple year references", 15)
        elif year_mentions:
            f.add("Some year references", 10)
        else:
            f.recommendations.append("Include current year references to show content relevance")

        indicators = sum(len(p.findall(text)) for p in FRESHNESS_PATTERNS)
        if indicators >= 3:
            f.add("Multiple freshness indicators", 10)
        elif indicators:
            f.add("Some freshness indicators", 5)

        f.score = min(100.0, f.score)
        f.summarize()
        return self.outcome(f.score, f.evidence, f.issues, f.recommendations)

    @staticmethod
    def metadata_date(page: PageContent) -> Optional[datetime]:
        """Most recent of the published/modified dates found in metadata."""
        candidates: List[str] = []
        for selectors in (MODIFIED_SELECTORS, PUBLISHED_SELECTORS):
            value = meta_content(page.dom, *selectors)
            if value:
                candidates.append(value)

        for time_tag in page.dom.find_all("time", datetime=True):
            candidates.append(str(time_tag["datetime"]))

        items, _ = json_ld_items(page.dom)
        for item in items:
            for key in ("dateModified", "datePublished"):
                if isinstance(item.data.get(key), str):
                    candidates.append(item.data[key])

        dates = [d for d in (parse_date(c) for c in candidates) if d is not None]
        return max(dates) if dates else None


GUIDE_URL = re.compile(r"(?:guide|tutorial|complete|ultimate|comprehensive|definitive|pillar)", re.IGNORECASE)


class InDepthGuidesRule(Rule):
    id = "in-depth-guides"
    name = "In-Depth Guides"
    dimension = Dimension.QUALITY
    weight = 3.0
    applicable_page_types = frozenset(
        {
            P.IN_DEPTH_GUIDE_WHITE_PAPER,
            P.HOW_TO_GUIDE_TUTORIAL,
            P.BLOG_POST_ARTICLE,
            P.PILLAR_PAGE_TOPIC_HUB,
        }
    )

    MIN_WORDS_EXCELLENT = 3000
    MIN_WORDS_GOOD = 2000
    MIN_WORDS_BASIC = 1500

    async def evaluate(self, page: PageContent, options: RuleOptions) -> RuleOutcome:
        f = self.measure(page)
        f.score = max(0.0, min(100.0, f.score))
        f.summarize()
        return self.outcome(f.score, f.evidence, f.issues, f.recommendations)

    def measure(self, page: PageContent) -> Findings:
        """Structural depth signals; model-backed scoring builds on this."""
        f = Findings()
        if GUIDE_URL.search(page.url):
            f.add("Guide URL", 5)
            f.evidence.append(EvidenceItem.success("URL", "URL indicates guide content"))

        words = page.word_count
        if words >= self.MIN_WORDS_EXCELLENT:
            f.add("Word count", 30)
            f.evidence.append(EvidenceItem.success("Length", f"{words} words (comprehensive)"))
        elif words >= self.MIN_WORDS_GOOD:
            f.add("Word count", 20)
            f.evidence.append(EvidenceItem.success("Length", f"{words} words"))
        elif words >= self.MIN_WORDS_BASIC:
            f.add("Word count", 10)
            f.evidence.append(EvidenceItem.warning("Length", f"{words} words (minimum for a guide)"))
        else:
            f.score = 20.0
            f.breakdown = [("Too short for a guide", 20)]
            f.evidence.append(EvidenceItem.error("Length", f"Only {words} words"))
            f.issues.append(
                issue(
                    Severity.HIGH,
                    "Content too short to be an in-depth guide",
                    f"Expand the content to at least {self.MIN_WORDS_BASIC} words",
                )
            )
            return f

        h2 = len(page.dom.find_all("h2"))
        h3 = len(page.dom.find_all("h3"))
        if h2 + h3 >= 10 and h2 >= 3:
            f.add("Heading structure", 15)
        elif h2 + h3 >= 5:
            f.add("Heading structure", 10)
        else:
            f.add("Heading structure", 5)
            f.issues.append(
                issue(Severity.MEDIUM, "Guide has too few sections", "Organize the guide into clearly headed sections")
            )
        f.evidence.append(EvidenceItem.info("Structure", f"{h2} H2 and {h3} H3 heading(s)"))

        media = len(page.dom.find_all(["img", "video", "iframe", "pre", "code"]))
        if media >= 10:
            f.add("Rich media", 10)
        elif media >= 5:
            f.add("Some media", 5)
        else:
            f.recommendations.append("Add images, diagrams or code examples to support the text")
        f.evidence.append(EvidenceItem.info("Media", f"{media} media/code element(s)"))
        return f
