"""Unit tests for model-backed rule variants and their heuristic fallback."""

from __future__ import annotations

import pytest

from pagescore.protocols import EvidenceKind, PageCategoryType, RuleOptions, Severity
from pagescore.rules import (
    CaseStudiesModelRule,
    ComparisonContentModelRule,
    DefinitionalContentModelRule,
    InDepthGuidesModelRule,
)
from pagescore.rules.model_backed import CaseStudy
from tests.helpers import make_category, make_options, make_page, paragraphs, scripted_gateway

P = PageCategoryType


@pytest.fixture
def article_page():
    return make_page(f"<html><body><h1>Content scoring</h1>{paragraphs(60)}</body></html>")


@pytest.fixture
def guide_page():
    sections = "".join(f"<h3>Step {i}</h3>" for i in range(7))
    images = "".join(f'<img src="figure-{i}.png">' for i in range(10))
    html = f"<html><body><h2>Basics</h2><h2>Setup</h2><h2>Advanced</h2>{sections}{images}{paragraphs(3000)}</body></html>"
    return make_page(html, url="https://example.com/guides/content-scoring", page_type=P.IN_DEPTH_GUIDE_WHITE_PAPER)


def definition(term, clarity="clear", direct=True):
    return {"term": term, "definition": f"{term} is a thing", "is_direct_definition": direct, "definition_clarity": clarity}


def study(structured=True, metrics=True, client=False):
    return {
        "description": "Retailer cut churn",
        "has_challenge_solution_result": structured,
        "has_quantifiable_metrics": metrics,
        "has_authentic_client_details": client,
    }


def guide_answer(**overrides):
    answer = {"guide_type": "standard_guide", "comprehensiveness": "adequate"}
    answer.update(overrides)
    return answer


class TestFallback:
    """Test heuristic fallback shared by every model-backed rule."""

    @pytest.mark.asyncio
    async def test_no_gateway_uses_heuristic(self, guide_page):
        """Test that without a gateway the heuristic score is used with a warning."""
        outcome = await InDepthGuidesModelRule().evaluate(guide_page, make_options(P.IN_DEPTH_GUIDE_WHITE_PAPER))

        assert outcome.score == 60
        assert not outcome.used_model
        first = outcome.evidence[0]
        assert first.kind is EvidenceKind.WARNING
        assert first.message == "No model available, using heuristic analysis"

    @pytest.mark.asyncio
    async def test_failing_gateway_uses_heuristic(self, guide_page, failing_gateway):
        """Test that provider exhaustion falls back to the heuristic rule."""
        options = make_options(P.IN_DEPTH_GUIDE_WHITE_PAPER, gateway=failing_gateway)

        outcome = await InDepthGuidesModelRule().evaluate(guide_page, options)

        assert outcome.score == 60
        assert not outcome.used_model
        assert outcome.evidence[0].message == "Model analysis failed, using heuristic analysis"

    @pytest.mark.asyncio
    async def test_answer_failing_validation_uses_heuristic(self, article_page):
        """Test that an answer outside the expected shape counts as a failure."""
        gateway = scripted_gateway({"comparison_items": [], "fairness_level": "neutral"})

        outcome = await ComparisonContentModelRule().evaluate(article_page, make_options(gateway=gateway))

        assert not outcome.used_model
        assert outcome.evidence[0].message == "Model analysis failed, using heuristic analysis"

    @pytest.mark.asyncio
    async def test_identity_matches_heuristic(self, article_page):
        """Test that the outcome carries the heuristic rule's id and weight."""
        outcome = await CaseStudiesModelRule().evaluate(article_page, make_options())

        assert outcome.rule_id == "case-studies"
        assert outcome.weight == 1.5


class TestInDepthGuidesModelRule:
    """Test model-assisted guide scoring."""

    @pytest.mark.asyncio
    async def test_short_page_skips_model(self):
        """Test that pages below the guide minimum are scored without calling the model."""
        gateway = scripted_gateway(guide_answer())
        page = make_page(f"<html><body>{paragraphs(200)}</body></html>")

        outcome = await InDepthGuidesModelRule().evaluate(page, make_options(gateway=gateway))

        assert outcome.score == 20
        assert not outcome.used_model
        assert gateway.backends[0].calls == 0

    @pytest.mark.asyncio
    async def test_answer_adds_to_structural_score(self, guide_page):
        """Test that model findings add points on top of structural signals."""
        gateway = scripted_gateway(
            guide_answer(
                guide_type="complete_guide",
                has_table_of_contents=True,
                has_examples=True,
                topics=[{"topic": "Setup", "depth": "moderate", "entity_coverage": 50}],
            )
        )

        outcome = await InDepthGuidesModelRule().evaluate(guide_page, make_options(gateway=gateway))

        assert outcome.score == 85
        assert outcome.used_model
        assert any(e.topic == "Model Analysis" and e.data == {"provider": "provider-1"} for e in outcome.evidence)

    @pytest.mark.asyncio
    async def test_score_is_capped(self, guide_page):
        """Test that bonuses never push the score past 100."""
        gateway = scripted_gateway(
            guide_answer(
                guide_type="ultimate_guide",
                has_table_of_contents=True,
                has_examples=True,
                has_internal_links=True,
                has_external_references=True,
                industry_focus="marketing",
                topics=[{"topic": "Setup", "depth": "comprehensive", "entity_coverage": 90}],
            )
        )

        outcome = await InDepthGuidesModelRule().evaluate(guide_page, make_options(gateway=gateway))

        assert outcome.score == 100

    @pytest.mark.asyncio
    async def test_long_but_shallow(self, guide_page):
        """Test that long content judged insufficient loses points."""
        gateway = scripted_gateway(
            guide_answer(
                guide_type="not_guide",
                comprehensiveness="insufficient",
                topics=[{"topic": "Setup", "depth": "surface", "entity_coverage": 10}],
            )
        )

        outcome = await InDepthGuidesModelRule().evaluate(guide_page, make_options(gateway=gateway))

        assert outcome.score == 40
        assert [i.description for i in outcome.issues] == ["Guide is long but lacks depth"]


class TestDefinitionalContentModelRule:
    """Test model-assisted definition scoring."""

    @pytest.mark.asyncio
    async def test_insufficient_content_skips_model(self):
        """Test that short pages are scored without calling the model."""
        gateway = scripted_gateway({"page_type": "glossary"})
        page = make_page("<html><body><p>Tiny</p></body></html>")

        outcome = await DefinitionalContentModelRule().evaluate(page, make_options(gateway=gateway))

        assert outcome.score == 20
        assert gateway.backends[0].calls == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "answer, expected",
        [
            ({"page_type": "dedicated_definition", "definitions": [definition(f"t{i}") for i in range(5)]}, 100),
            ({"page_type": "glossary", "definitions": [definition("a"), definition("b"), definition("c", "vague")]}, 80),
            ({"page_type": "mixed_content", "definitions": [definition("a", "moderate")]}, 60),
            ({"page_type": "dedicated_definition", "definitions": [definition("a", direct=False)]}, 60),
            ({"page_type": "non_definitional"}, 20),
        ],
    )
    async def test_score_bands(self, article_page, answer, expected):
        """Test scoring by page type and clear definition count."""
        outcome = await DefinitionalContentModelRule().evaluate(
            article_page, make_options(gateway=scripted_gateway(answer))
        )

        assert outcome.score == expected
        assert outcome.used_model

    @pytest.mark.asyncio
    async def test_no_definitions_issue(self, article_page):
        """Test the high severity issue and markup recommendation when nothing is defined."""
        gateway = scripted_gateway({"page_type": "non_definitional"})

        outcome = await DefinitionalContentModelRule().evaluate(article_page, make_options(gateway=gateway))

        assert outcome.issues[0].severity is Severity.HIGH
        assert outcome.recommendations == ("Mark up definitions with dl/dt/dd or DefinedTerm schema",)

    @pytest.mark.asyncio
    async def test_prompt_truncates_content(self, article_page):
        """Test that only the configured number of characters is sent to the model."""
        gateway = scripted_gateway({"page_type": "glossary"})
        category = make_category()
        options = RuleOptions(category=category, analysis_level=category.analysis_level, gateway=gateway, model_content_chars=40)

        await DefinitionalContentModelRule().evaluate(article_page, options)
        request = gateway.backends[0].requests[0]

        assert request.schema_name == "DefinitionalAnalysis"
        assert request.prompt.user.endswith("CONTENT:\n" + article_page.visible_text[:40])
        assert "URL: https://example.com/blog/post" in request.prompt.user


class TestCaseStudiesModelRule:
    """Test model-assisted case study scoring."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "studies, expected",
        [
            ([study() for _ in range(5)], 100),
            ([study(), study(structured=False, client=True)], 80),
            ([study(metrics=False)], 40),
            ([], 0),
        ],
    )
    async def test_score_bands(self, article_page, studies, expected):
        """Test scoring by the number of high-quality case studies."""
        gateway = scripted_gateway({"case_studies": studies})

        outcome = await CaseStudiesModelRule().evaluate(article_page, make_options(gateway=gateway))

        assert outcome.score == expected
        assert outcome.used_model

    @pytest.mark.parametrize(
        "flags, expected",
        [((True, True, False), True), ((True, False, True), True), ((False, False, True), False)],
    )
    def test_high_quality_needs_two_criteria(self, flags, expected):
        """Test that a case study is high quality when it meets two of three criteria."""
        structured, metrics, client = flags
        case = CaseStudy(**study(structured=structured, metrics=metrics, client=client))

        assert case.is_high_quality is expected


class TestComparisonContentModelRule:
    """Test model-assisted comparison scoring."""

    @pytest.mark.asyncio
    async def test_excellent_comparison(self, article_page):
        """Test that a table, schema and internal links score 100."""
        answer = {
            "comparison_items": [{"name": "A"}, {"name": "B"}],
            "has_comparison_table": True,
            "has_item_list_schema": True,
            "has_internal_links": True,
            "fairness_level": "balanced",
        }

        outcome = await ComparisonContentModelRule().evaluate(article_page, make_options(gateway=scripted_gateway(answer)))

        assert outcome.score == 100
        assert outcome.recommendations == ()

    @pytest.mark.asyncio
    async def test_structured_comparison_lists_missing_features(self, article_page):
        """Test that a structured comparison names what it lacks for full marks."""
        answer = {"comparison_items": [{"name": "A"}, {"name": "B"}], "has_pros_cons": True}

        outcome = await ComparisonContentModelRule().evaluate(article_page, make_options(gateway=scripted_gateway(answer)))

        assert outcome.score == 80
        assert outcome.recommendations == (
            "Add comparison table, schema markup, internal links to achieve an excellent score",
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "items, expected, severity",
        [([{"name": "A"}, {"name": "B"}], 60, Severity.MEDIUM), ([{"name": "A"}], 40, Severity.MEDIUM), ([], 20, Severity.HIGH)],
    )
    async def test_weak_comparisons(self, article_page, items, expected, severity):
        """Test scores and issue severity for unstructured or missing comparisons."""
        gateway = scripted_gateway({"comparison_items": items})

        outcome = await ComparisonContentModelRule().evaluate(article_page, make_options(gateway=gateway))

        assert outcome.score == expected
        assert outcome.issues[0].severity is severity

    @pytest.mark.asyncio
    async def test_biased_comparison_penalized(self, article_page):
        """Test that a biased comparison loses 20 points."""
        answer = {
            "comparison_items": [{"name": "A"}, {"name": "B"}],
            "has_comparison_table": True,
            "has_item_list_schema": True,
            "has_internal_links": True,
            "fairness_level": "biased",
        }

        outcome = await ComparisonContentModelRule().evaluate(article_page, make_options(gateway=scripted_gateway(answer)))

        assert outcome.score == 80
        assert "Present a more balanced view of all options" in outcome.recommendations
