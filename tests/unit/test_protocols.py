"""Unit tests for the shared data types."""

from __future__ import annotations

import pytest

from pagescore.protocols import (
    AnalysisLevel,
    Dimension,
    EvidenceItem,
    EvidenceKind,
    Issue,
    PageCategory,
    PageCategoryType,
    PageInput,
    RuleOutcome,
    Severity,
    clamp_score,
    round_half_up,
    severity_rank,
)
from tests.helpers import make_page

P = PageCategoryType


class TestPageInput:
    """Test page input construction."""

    def test_from_mapping_camel_case(self):
        """Test that camelCase crawler keys are mapped to metadata fields."""
        page = PageInput.from_mapping(
            {
                "url": "https://x.test/",
                "content": "<p>Hi</p>",
                "metadata": {"statusCode": "200", "contentType": "text/html", "metaDescription": "Desc"},
                "title": "Top-level title",
            }
        )

        assert page.html == "<p>Hi</p>"
        assert page.metadata.status_code == 200
        assert page.metadata.content_type == "text/html"
        assert page.metadata.meta_description == "Desc"
        assert page.metadata.title == "Top-level title"

    @pytest.mark.parametrize("html, expected", [(None, False), ("", False), ("  \n", False), ("<p>x</p>", True)])
    def test_has_html(self, html, expected):
        """Test that blank HTML counts as missing."""
        assert PageInput(url="u", html=html).has_html is expected


class TestPageContent:
    """Test the parsed page shared by rules."""

    def test_visible_text_skips_scripts_and_comments(self):
        """Test that only rendered body text is kept, whitespace collapsed."""
        page = make_page(
            "<html><head><title>T</title></head><body><script>var a = 1;</script>"
            "<!-- hidden --><p>Hello\n   world</p><style>p {}</style><p>again</p></body></html>"
        )

        assert page.visible_text == "Hello world again"
        assert page.word_count == 3

    def test_title_prefers_metadata(self):
        """Test that crawler metadata wins over the title tag."""
        html = "<html><head><title>From markup</title></head><body></body></html>"

        assert make_page(html).title == "From markup"
        assert make_page(html, title="From crawler").title == "From crawler"


class TestScoresAndSeverities:
    """Test score helpers and severity ordering."""

    @pytest.mark.parametrize("value, expected", [(12.5, 13), (12.4999, 12), (0.5, 1), (99.5, 100), (-2.5, -3)])
    def test_round_half_up(self, value, expected):
        """Test that halves round away from zero."""
        assert round_half_up(value) == expected

    @pytest.mark.parametrize("value, expected", [(-5, 0.0), (150, 100.0), (42.5, 42.5)])
    def test_clamp_score(self, value, expected):
        """Test that scores are clamped into [0, 100]."""
        assert clamp_score(value) == expected

    def test_rule_outcome_clamps_and_rejects_negative_weight(self):
        """Test that outcomes clamp their score and refuse negative weights."""
        outcome = RuleOutcome("r", "R", Dimension.CONTENT, score=120, weight=2.0)

        assert outcome.score == 100
        assert outcome.contribution == 2.0
        with pytest.raises(ValueError):
            RuleOutcome("r", "R", Dimension.CONTENT, score=50, weight=-1.0)

    def test_severity_rank(self):
        """Test that severities sort critical first and unknown last."""
        ranked = sorted(["low", Severity.CRITICAL, "bogus", Severity.MEDIUM, "high"], key=severity_rank)

        assert ranked == [Severity.CRITICAL, "high", Severity.MEDIUM, "low", "bogus"]


class TestCategories:
    """Test category labels."""

    @pytest.mark.parametrize(
        "label, expected",
        [("pricing_page", P.PRICING_PAGE), ("How-To Guide Tutorial", P.HOW_TO_GUIDE_TUTORIAL), ("recipes", P.UNKNOWN), (None, P.UNKNOWN)],
    )
    def test_from_label(self, label, expected):
        """Test label normalization onto the closed set."""
        assert PageCategoryType.from_label(label) is expected

    def test_confidence_range_enforced(self):
        """Test that confidence outside [0, 1] is rejected."""
        with pytest.raises(ValueError):
            PageCategory(P.HOMEPAGE, 1.5, AnalysisLevel.FULL, "x")


class TestSerialization:
    """Test dictionary output."""

    def test_issue_to_dict(self):
        """Test that tagged issues include dimension and rule id."""
        issue = Issue(Severity.HIGH, "Problem", "Fix it", ("a.png",)).tagged(Dimension.TECHNICAL, "image-alt-attributes")

        assert issue.to_dict() == {
            "severity": "high",
            "description": "Problem",
            "recommendation": "Fix it",
            "affected_elements": ["a.png"],
            "dimension": "technical",
            "rule_id": "image-alt-attributes",
        }

    def test_score_breakdown(self):
        """Test the calculation evidence item."""
        item = EvidenceItem.score_breakdown([("Base", 20), ("JSON-LD", 40)], 60)

        assert item.kind is EvidenceKind.CALCULATION
        assert item.message == "Base (+20) + JSON-LD (+40) = 60/100"
        assert item.to_dict()["data"]["final"] == 60
