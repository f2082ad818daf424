"""
Content dimension rules: heading structure and the kinds of content
answer engines quote (definitions, case studies).
"""

from __future__ import annotations

import re
from collections import Counter
from difflib import SequenceMatcher
from typing import List, Tuple

from pagescore.protocols import (
    Dimension,
    EvidenceItem,
    Issue,
    PageCategoryType,
    PageContent,
    RuleOptions,
    RuleOutcome,
    Severity,
)

from .base import Rule, issue
from .dom import Findings, heading_text

P = PageCategoryType


class MainHeadingRule(Rule):
    id = "main-heading"
    name = "Main Heading (H1)"
    dimension = Dimension.CONTENT
    weight = 3.0

    async def evaluate(self, page: PageContent, options: RuleOptions) -> RuleOutcome:
        h1s = [heading_text(tag) for tag in page.dom.find_all("h1")]

        if not h1s:
            return self.outcome(
                0,
                [EvidenceItem.error("H1 Heading", "No H1 heading found")],
                [issue(Severity.CRITICAL, "Missing H1 heading", "Add a single descriptive H1 heading to the page")],
            )

        quality, evidence, issues, recommendations = self._assess_quality(h1s[0], page.title)

        base = 50 if len(h1s) == 1 else 30
        if len(h1s) == 1:
            score = base + quality
            evidence.insert(0, EvidenceItem.success("H1 Heading", f'Single H1: "{h1s[0][:100]}"'))
        else:
            score = base + quality * 0.7
            evidence.insert(0, EvidenceItem.warning("H1 Heading", f"{len(h1s)} H1 headings found"))
            issues.insert(
                0,
                issue(
                    Severity.HIGH,
                    f"Multiple H1 headings ({len(h1s)})",
                    "Use exactly one H1 and demote the others to H2",
                    *[text[:80] for text in h1s[:5]],
                ),
            )

        evidence.append(EvidenceItem.score_breakdown([("H1 presence", base), ("H1 quality", score - base)], score))
        return self.outcome(score, evidence, issues, recommendations)

    @staticmethod
    def _assess_quality(h1: str, title: str) -> Tuple[float, List[EvidenceItem], List[Issue], List[str]]:
        quality = 0.0
        evidence: List[EvidenceItem] = []
        issues: List[Issue] = []
        recommendations: List[str] = []

        if len(h1) < 10:
            quality += 5
            evidence.append(EvidenceItem.warning("H1 Length", f"Too short ({len(h1)} chars)"))
            issues.append(issue(Severity.MEDIUM, "H1 heading is too short", "Write an H1 of 10-70 characters"))
        elif len(h1) > 70:
            quality += 15
            evidence.append(EvidenceItem.warning("H1 Length", f"Long ({len(h1)} chars)"))
            recommendations.append("Shorten the H1 heading to at most 70 characters")
        else:
            quality += 25
            evidence.append(EvidenceItem.success("H1 Length", f"Good length ({len(h1)} chars)"))

        words = Counter(word for word in re.findall(r"\w+", h1.lower()) if len(word) > 3)
        repeated = [word for word, count in words.items() if count > 2]
        if repeated:
            quality += 5
            evidence.append(EvidenceItem.warning("H1 Wording", f"Repeated words: {', '.join(repeated)}"))
            issues.append(issue(Severity.MEDIUM, "H1 heading repeats words", "Avoid keyword stuffing in the H1"))
        else:
            quality += 10

        if title:
            similarity = SequenceMatcher(None, h1.lower(), title.lower()).ratio()
            if similarity > 0.7:
                quality += 15
                evidence.append(EvidenceItem.success("H1/Title", f"H1 consistent with title ({similarity:.0%})"))
            else:
                quality += 5
                evidence.append(EvidenceItem.info("H1/Title", f"H1 differs from title ({similarity:.0%})"))

        return quality, evidence, issues, recommendations


GENERIC_HEADINGS = frozenset(
    {
        "introduction",
        "overview",
        "conclusion",
        "summary",
        "more",
        "details",
        "information",
        "other",
        "misc",
        "miscellaneous",
        "read more",
        "learn more",
        "section",
        "content",
        "untitled",
    }
)


class SubheadingsRule(Rule):
    id = "subheadings"
    name = "Subheading Structure"
    dimension = Dimension.CONTENT
    weight = 2.0

    async def evaluate(self, page: PageContent, options: RuleOptions) -> RuleOutcome:
        f = Findings()
        headings = page.dom.find_all(["h2", "h3"])
        h2 = [h for h in headings if h.name == "h2"]
        h3 = [h for h in headings if h.name == "h3"]

        if h2:
            f.add("H2 headings present", 40)
            f.evidence.append(EvidenceItem.success("H2 Headings", f"{len(h2)} H2 heading(s)"))
        elif h3:
            f.evidence.append(EvidenceItem.error("H2 Headings", "Only H3 headings, no H2"))
            f.issues.append(
                issue(Severity.HIGH, "Only H3 headings used without H2", "Structure sections with H2 before H3")
            )
        else:
            f.evidence.append(EvidenceItem.error("H2 Headings", "No subheadings found"))
            f.issues.append(issue(Severity.HIGH, "No H2 subheadings", "Break content into sections with H2 headings"))

        words = page.word_count
        if words > 500:
            density = len(headings) / (words / 300)
            if 0.8 <= density <= 2:
                f.add("Heading density", 30)
                f.evidence.append(EvidenceItem.success("Heading Density", f"{density:.2f} per 300 words"))
            elif density < 0.5:
                f.add("Heading density", 10)
                f.evidence.append(EvidenceItem.warning("Heading Density", f"Sparse ({density:.2f} per 300 words)"))
                f.recommendations.append("Add a subheading roughly every 300 words")
            elif density > 3:
                f.add("Heading density", 10)
                f.evidence.append(EvidenceItem.warning("Heading Density", f"Dense ({density:.2f} per 300 words)"))
                f.recommendations.append("Merge very short sections; too many subheadings fragment the content")
            else:
                f.add("Heading density", 20)
                f.evidence.append(EvidenceItem.info("Heading Density", f"{density:.2f} per 300 words"))
        elif headings:
            f.add("Heading density (short page)", 20)

        if h2 and h3:
            f.add("H2/H3 hierarchy", 20)
            if headings[0].name == "h3":
                f.add("H3 before first H2", -10)
                f.evidence.append(EvidenceItem.warning("Hierarchy", "An H3 appears before the first H2"))
                f.issues.append(
                    issue(Severity.MEDIUM, "Heading hierarchy skips a level", "Place H3 headings under an H2")
                )

        if headings:
            texts = [heading_text(h).lower().strip(" :") for h in headings]
            generic = [text for text in texts if text in GENERIC_HEADINGS]
            ratio = len(generic) / len(texts)
            if not generic:
                f.add("Descriptive headings", 10)
            elif ratio > 0.3:
                f.evidence.append(EvidenceItem.warning("Heading Wording", f"{len(generic)} generic heading(s)"))
                f.issues.append(
                    issue(
                        Severity.MEDIUM,
                        "Many generic subheadings",
                        "Use headings that describe the section content",
                        *generic[:5],
                    )
                )
            else:
                f.add("Mostly descriptive headings", 5)

        f.summarize()
        return self.outcome(f.score, f.evidence, f.issues, f.recommendations)


DEFINITIONAL_URL = re.compile(r"(?:what[_-]is|definition|glossary|terminology|dictionary)", re.IGNORECASE)
DEFINITION_PATTERNS = (
    re.compile(r"\b(?:is|are|refers? to|means?|defined as|known as)\b", re.IGNORECASE),
    re.compile(r"\bwhat (?:is|are)\b", re.IGNORECASE),
    re.compile(r"\bdefinition:?\s", re.IGNORECASE),
)


class DefinitionalContentRule(Rule):
    id = "definitional-content"
    name = "Definitional Content"
    dimension = Dimension.CONTENT
    weight = 1.5
    applicable_page_types = frozenset(
        {
            P.WHAT_IS_X_DEFINITIONAL_PAGE,
            P.FAQ_GLOSSARY_PAGES,
            P.BLOG_POST_ARTICLE,
            P.PRODUCT_DETAIL_PAGE,
            P.SERVICES_FEATURES_PAGE,
        }
    )

    MAX_CONTENT_LENGTH = 20000
    MIN_CONTENT_LENGTH = 100

    def insufficient_content(self, page: PageContent):
        if len(page.visible_text.strip()) >= self.MIN_CONTENT_LENGTH:
            return None
        return self.outcome(
            20,
            [EvidenceItem.error("Content", "Too little text to analyze for definitions")],
            [
                issue(
                    Severity.HIGH,
                    "Insufficient content to analyze for definitions",
                    "Add substantial content defining key terms and concepts",
                )
            ],
        )

    async def evaluate(self, page: PageContent, options: RuleOptions) -> RuleOutcome:
        early = self.insufficient_content(page)
        if early is not None:
            return early

        evidence = []
        if DEFINITIONAL_URL.search(page.url):
            evidence.append(EvidenceItem.success("URL", "URL indicates definitional content"))

        text = page.visible_text[: self.MAX_CONTENT_LENGTH]
        matches = sum(len(pattern.findall(text)) for pattern in DEFINITION_PATTERNS)
        recommendations = []
        if matches >= 5:
            score = 80
            evidence.append(EvidenceItem.success("Definitions", f"Found {matches} definition patterns"))
        elif matches >= 2:
            score = 60
            evidence.append(EvidenceItem.warning("Definitions", f"Found {matches} definition patterns"))
            recommendations.append('Add more clear definitions using the "X is..." format')
        else:
            score = 40
            evidence.append(EvidenceItem.error("Definitions", f"Only {matches} definition pattern(s) found"))
            recommendations.append('Create dedicated definitional content with a clear "What is X?" format')

        if page.dom.find("dl") is not None:
            evidence.append(EvidenceItem.success("Markup", "Uses definition list markup (dl/dt/dd)"))

        return self.outcome(score, evidence, recommendations=recommendations)


CASE_STUDY_PATTERNS = (
    re.compile(r"case stud(?:y|ies)", re.IGNORECASE),
    re.compile(r"success stor(?:y|ies)", re.IGNORECASE),
    re.compile(r"client success", re.IGNORECASE),
    re.compile(r"customer stor(?:y|ies)", re.IGNORECASE),
)
METRIC_PATTERNS = (
    re.compile(r"\d+%\s*(?:increase|decrease|improvement|reduction|growth)", re.IGNORECASE),
    re.compile(r"\$[\d,]+\s*(?:saved|generated|revenue|cost)", re.IGNORECASE),
)


class CaseStudiesRule(Rule):
    id = "case-studies"
    name = "Case Studies & Success Stories"
    dimension = Dimension.CONTENT
    weight = 1.5
    applicable_page_types = frozenset(
        {
            P.CASE_STUDY_SUCCESS_STORY,
            P.BLOG_POST_ARTICLE,
            P.PRODUCT_DETAIL_PAGE,
            P.SERVICES_FEATURES_PAGE,
        }
    )

    MAX_CONTENT_LENGTH = 15000
    MIN_CONTENT_LENGTH = 100

    def insufficient_content(self, page: PageContent):
        if len(page.visible_text.strip()) >= self.MIN_CONTENT_LENGTH:
            return None
        return self.outcome(
            0,
            [EvidenceItem.error("Content", "Too little text to analyze for case studies")],
            [issue(Severity.HIGH, "Insufficient content to analyze for case studies", "Add detailed customer stories")],
        )

    async def evaluate(self, page: PageContent, options: RuleOptions) -> RuleOutcome:
        early = self.insufficient_content(page)
        if early is not None:
            return early

        text = page.visible_text[: self.MAX_CONTENT_LENGTH]
        story_matches = sum(len(p.findall(text)) for p in CASE_STUDY_PATTERNS)
        metric_matches = sum(len(p.findall(text)) for p in METRIC_PATTERNS)
        matches = story_matches + metric_matches

        if matches >= 5 and metric_matches:
            return self.outcome(
                80,
                [EvidenceItem.success("Case Studies", f"{matches} case study signals including measurable results")],
            )
        if matches >= 2:
            return self.outcome(
                40,
                [EvidenceItem.warning("Case Studies", f"{matches} case study signals, few measurable results")],
                recommendations=["Add quantifiable results (percentages, savings) to case studies"],
            )
        return self.outcome(
            0,
            [EvidenceItem.error("Case Studies", "No case study content found")],
            [
                issue(
                    Severity.HIGH,
                    "No case studies found",
                    "Add case studies with a challenge, solution and measurable result",
                )
            ],
        )
