"""
Model-backed rule variants.

Each variant asks the model gateway for a structured judgment and falls back
to its heuristic counterpart when no model is available or every provider
fails.
"""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from pagescore.gateway.protocols import Prompt
from pagescore.protocols import EvidenceItem, PageContent, RuleOutcome, Severity

from .authority import ComparisonContentRule
from .base import ModelBackedRule, issue
from .content import CaseStudiesRule, DefinitionalContentRule
from .quality import InDepthGuidesRule


def _user_prompt(task: str, page: PageContent, text: str) -> str:
    return f"{task}\n\nURL: {page.url}\nTITLE: {page.title}\n\nCONTENT:\n{text}"


# ---------------------------------------------------------------------------
# In-depth guides
# ---------------------------------------------------------------------------


class GuideTopic(BaseModel):
    topic: str
    depth: Literal["surface", "moderate", "comprehensive"]
    entity_coverage: float = Field(ge=0, le=100, description="Percent of expected concepts covered")


class GuideAnalysis(BaseModel):
    topics: List[GuideTopic] = Field(default_factory=list)
    guide_type: Literal["ultimate_guide", "complete_guide", "pillar_page", "standard_guide", "basic_article", "not_guide"]
    has_table_of_contents: bool = False
    has_examples: bool = False
    has_internal_links: bool = False
    has_external_references: bool = False
    comprehensiveness: Literal["exhaustive", "thorough", "adequate", "basic", "insufficient"]
    industry_focus: Optional[str] = None
    analysis: str = ""


class InDepthGuidesModelRule(ModelBackedRule):
    fallback_rule = InDepthGuidesRule
    answer_shape = GuideAnalysis
    name = "In-Depth Guides (model-assisted)"

    def precheck(self, page: PageContent) -> Optional[RuleOutcome]:
        if page.word_count >= InDepthGuidesRule.MIN_WORDS_BASIC:
            return None
        findings = self.fallback.measure(page)
        findings.summarize()
        return self.outcome(findings.score, findings.evidence, findings.issues, findings.recommendations)

    def build_prompt(self, page: PageContent, text: str) -> Prompt:
        task = (
            "Evaluate whether this page is an in-depth guide. List the major topics it covers with their depth "
            "and the percentage of expected concepts each covers, classify the guide type, and report whether it "
            "has a table of contents, practical examples, internal links and external references."
        )
        return Prompt(system=self.system_prompt, user=_user_prompt(task, page, text))

    def score_answer(self, page: PageContent, answer: GuideAnalysis, provider: str) -> RuleOutcome:
        f = self.fallback.measure(page)

        if answer.has_table_of_contents:
            f.add("Table of contents", 10)
        if answer.guide_type in ("ultimate_guide", "complete_guide"):
            f.add("Comprehensive guide format", 10)
        elif answer.guide_type == "pillar_page":
            f.add("Pillar page format", 7)
        if answer.has_examples:
            f.add("Practical examples", 5)
        if answer.has_internal_links and answer.has_external_references:
            f.add("Internal and external references", 5)
        elif answer.has_internal_links:
            f.add("Internal links", 3)
        if answer.industry_focus:
            f.add("Industry focus", 5)

        if answer.topics:
            coverage = sum(t.entity_coverage for t in answer.topics) / len(answer.topics)
            f.evidence.append(EvidenceItem.info("Topic Coverage", f"{len(answer.topics)} topic(s), {coverage:.0f}% average coverage"))
            if coverage >= 75:
                f.add("High entity coverage", 5)
            elif coverage < 25:
                f.add("Low entity coverage", -10)

        if answer.comprehensiveness == "insufficient" and page.word_count >= InDepthGuidesRule.MIN_WORDS_GOOD:
            f.add("Long but shallow", -10)
            f.issues.append(
                issue(Severity.MEDIUM, "Guide is long but lacks depth", "Cover each subtopic in more detail")
            )

        f.evidence.append(
            EvidenceItem.success("Model Analysis", f"Guide type {answer.guide_type.replace('_', ' ')}", provider=provider)
        )
        f.score = max(0.0, min(100.0, f.score))
        f.summarize()
        return self.outcome(f.score, f.evidence, f.issues, f.recommendations, used_model=True)


# ---------------------------------------------------------------------------
# Definitional content
# ---------------------------------------------------------------------------


class Definition(BaseModel):
    term: str
    definition: str = ""
    excerpt: str = ""
    is_direct_definition: bool = False
    definition_clarity: Literal["clear", "moderate", "vague"] = "moderate"


class DefinitionalAnalysis(BaseModel):
    definitions: List[Definition] = Field(default_factory=list)
    page_type: Literal["dedicated_definition", "glossary", "mixed_content", "non_definitional"]
    has_structured_markup: bool = False
    definition_density: Literal["high", "medium", "low", "none"] = "none"
    analysis: str = ""


class DefinitionalContentModelRule(ModelBackedRule):
    fallback_rule = DefinitionalContentRule
    answer_shape = DefinitionalAnalysis

    def precheck(self, page: PageContent) -> Optional[RuleOutcome]:
        return self.fallback.insufficient_content(page)

    def build_prompt(self, page: PageContent, text: str) -> Prompt:
        task = (
            "Identify every definition of a term or concept in this content. For each, give the term, the "
            "definition, a short quote, whether it is a direct 'X is ...' definition and how clear it is. "
            "Classify the page type and the density of definitional content."
        )
        return Prompt(system=self.system_prompt, user=_user_prompt(task, page, text))

    def score_answer(self, page: PageContent, answer: DefinitionalAnalysis, provider: str) -> RuleOutcome:
        count = len(answer.definitions)
        clear = sum(1 for d in answer.definitions if d.is_direct_definition and d.definition_clarity == "clear")
        dedicated = answer.page_type in ("dedicated_definition", "glossary")
        issues = []
        recommendations = []

        if dedicated and clear >= 5:
            score = 100
            evidence = [EvidenceItem.success("Definitions", f"Definitional page with {clear} clear definitions")]
        elif dedicated and clear >= 2:
            score = 80
            evidence = [EvidenceItem.success("Definitions", f"Good definitional content with {clear} clear definitions")]
        elif count >= 1:
            score = 60
            evidence = [EvidenceItem.warning("Definitions", f"{count} definition(s), few of them clear and direct")]
            issues.append(
                issue(Severity.MEDIUM, "Definitions are not clear or direct", 'Open with a direct "X is ..." sentence')
            )
        else:
            score = 20
            evidence = [EvidenceItem.error("Definitions", "No definitional content found")]
            issues.append(
                issue(Severity.HIGH, "No definitional content found", "Define the key terms your audience searches for")
            )

        evidence.append(EvidenceItem.info("Definition Density", answer.definition_density))
        if answer.has_structured_markup:
            evidence.append(EvidenceItem.success("Markup", "Uses semantic definition markup"))
        else:
            recommendations.append("Mark up definitions with dl/dt/dd or DefinedTerm schema")
        for definition in answer.definitions[:5]:
            evidence.append(
                EvidenceItem.info("Definition", definition.term, clarity=definition.definition_clarity, excerpt=definition.excerpt)
            )
        evidence.append(EvidenceItem.success("Model Analysis", "Model analysis completed", provider=provider))
        return self.outcome(score, evidence, issues, recommendations, used_model=True)


# ---------------------------------------------------------------------------
# Case studies
# ---------------------------------------------------------------------------


class CaseStudy(BaseModel):
    description: str
    excerpt: str = ""
    key_metric: Optional[str] = None
    client_name: Optional[str] = None
    has_challenge_solution_result: bool = False
    has_quantifiable_metrics: bool = False
    has_authentic_client_details: bool = False

    @property
    def is_high_quality(self) -> bool:
        met = [self.has_challenge_solution_result, self.has_quantifiable_metrics, self.has_authentic_client_details]
        return sum(met) >= 2


class CaseStudiesAnalysis(BaseModel):
    case_studies: List[CaseStudy] = Field(default_factory=list)
    analysis: str = ""


class CaseStudiesModelRule(ModelBackedRule):
    fallback_rule = CaseStudiesRule
    answer_shape = CaseStudiesAnalysis

    def precheck(self, page: PageContent) -> Optional[RuleOutcome]:
        return self.fallback.insufficient_content(page)

    def build_prompt(self, page: PageContent, text: str) -> Prompt:
        task = (
            "Find every case study or customer success story in this content. For each, summarize it, quote it, "
            "and report whether it follows a challenge/solution/result structure, includes quantifiable metrics "
            "and names the client or includes other authentic client details."
        )
        return Prompt(system=self.system_prompt, user=_user_prompt(task, page, text))

    def score_answer(self, page: PageContent, answer: CaseStudiesAnalysis, provider: str) -> RuleOutcome:
        total = len(answer.case_studies)
        high_quality = sum(1 for study in answer.case_studies if study.is_high_quality)
        issues = []

        if high_quality >= 5:
            score = 100
            evidence = [EvidenceItem.success("Case Studies", f"{high_quality} high-quality case studies")]
        elif high_quality >= 2:
            score = 80
            evidence = [EvidenceItem.success("Case Studies", f"{high_quality} high-quality case studies")]
        elif total >= 1:
            score = 40
            evidence = [EvidenceItem.warning("Case Studies", f"{total} case stud(ies), {high_quality} high quality")]
            issues.append(
                issue(
                    Severity.MEDIUM,
                    "Case studies lack structure, metrics or client details",
                    "Give each case study a challenge, solution and measurable result",
                )
            )
        else:
            score = 0
            evidence = [EvidenceItem.error("Case Studies", "No case studies found")]
            issues.append(
                issue(
                    Severity.HIGH,
                    "No case studies found",
                    "Add case studies with a challenge, solution and measurable result",
                )
            )

        for study in answer.case_studies[:5]:
            evidence.append(
                EvidenceItem.info("Case Study", study.description[:200], metric=study.key_metric, client=study.client_name)
            )
        evidence.append(EvidenceItem.success("Model Analysis", "Model analysis completed", provider=provider))
        return self.outcome(score, evidence, issues, used_model=True)


# ---------------------------------------------------------------------------
# Comparison content
# ---------------------------------------------------------------------------


class ComparisonItem(BaseModel):
    name: str
    pros: List[str] = Field(default_factory=list)
    cons: List[str] = Field(default_factory=list)


class ComparisonAnalysis(BaseModel):
    comparison_items: List[ComparisonItem] = Field(default_factory=list)
    has_comparison_table: bool = False
    has_pros_cons: bool = False
    has_bulleted_lists: bool = False
    fairness_level: Literal["biased", "somewhat_fair", "balanced"] = "somewhat_fair"
    has_item_list_schema: bool = False
    has_internal_links: bool = False
    analysis: str = ""


class ComparisonContentModelRule(ModelBackedRule):
    fallback_rule = ComparisonContentRule
    answer_shape = ComparisonAnalysis

    def precheck(self, page: PageContent) -> Optional[RuleOutcome]:
        return self.fallback.insufficient_content(page)

    def build_prompt(self, page: PageContent, text: str) -> Prompt:
        task = (
            "Identify the products, services or solutions compared in this content with their pros and cons. "
            "Report whether the page uses a comparison table, pros/cons lists or bulleted lists, whether ItemList "
            "or Product schema and internal links to alternatives are present, and how balanced the comparison is."
        )
        return Prompt(system=self.system_prompt, user=_user_prompt(task, page, text))

    def score_answer(self, page: PageContent, answer: ComparisonAnalysis, provider: str) -> RuleOutcome:
        items = len(answer.comparison_items)
        structured = answer.has_comparison_table or answer.has_pros_cons or answer.has_bulleted_lists
        advanced = answer.has_item_list_schema and answer.has_internal_links
        issues = []
        recommendations = []

        if items >= 2 and advanced and answer.has_comparison_table:
            score = 100
            evidence = [EvidenceItem.success("Comparison", "Comparison with table, schema markup and internal links")]
        elif items >= 2 and structured:
            score = 80
            evidence = [EvidenceItem.success("Comparison", f"Well-structured comparison of {items} items")]
            missing = [
                label
                for label, present in (
                    ("comparison table", answer.has_comparison_table),
                    ("schema markup", answer.has_item_list_schema),
                    ("internal links", answer.has_internal_links),
                )
                if not present
            ]
            if missing:
                recommendations.append(f"Add {', '.join(missing)} to achieve an excellent score")
        elif items >= 2:
            score = 60
            evidence = [EvidenceItem.warning("Comparison", "Comparison present but lacks a structured format")]
            issues.append(
                issue(
                    Severity.MEDIUM,
                    "Comparison lacks structured format",
                    "Add a table, pros/cons lists or bullet points",
                )
            )
        elif items == 1:
            score = 40
            evidence = [EvidenceItem.warning("Comparison", "Only one item analyzed")]
            issues.append(
                issue(Severity.MEDIUM, "Comparison only covers one item", "Compare at least 2 items")
            )
        else:
            score = 20
            evidence = [EvidenceItem.error("Comparison", "No clear comparison content found")]
            issues.append(
                issue(Severity.HIGH, "No comparison content found", "Add comparison content covering 2+ items")
            )

        evidence.append(EvidenceItem.info("Fairness", answer.fairness_level.replace("_", " ")))
        if answer.fairness_level == "biased":
            score = max(40, score - 20)
            evidence.append(EvidenceItem.warning("Fairness", "Comparison appears heavily biased (-20 points)"))
            recommendations.append("Present a more balanced view of all options")

        evidence.append(EvidenceItem.success("Model Analysis", "Model analysis completed", provider=provider))
        return self.outcome(score, evidence, issues, recommendations, used_model=True)
