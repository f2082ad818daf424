"""Unit tests for the quality dimension rules."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from pagescore.protocols import Severity
from pagescore.rules import ContentFreshnessRule, InDepthGuidesRule
from pagescore.rules.quality import parse_date
from tests.helpers import make_options, make_page, paragraphs

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def freshness_rule():
    return ContentFreshnessRule(clock=lambda: NOW)


class TestContentFreshnessRule:
    """Test ContentFreshnessRule scoring with a fixed clock."""

    @pytest.mark.asyncio
    async def test_fresh_page_scores_100(self, freshness_rule):
        """Test that every freshness signal together caps at 100."""
        html = (
            '<html><head><meta property="article:published_time" content="2024-06-01T09:00:00Z"></head>'
            "<body><p>Published on June 1, 2024. The latest 2024 report covers new tools "
            "and updated advice compared with 2023.</p></body></html>"
        )
        page = make_page(html, url="https://example.com/2024/06/report")

        outcome = await freshness_rule.evaluate(page, make_options())

        assert outcome.score == 100
        assert outcome.issues == ()

    @pytest.mark.asyncio
    async def test_no_signals(self, freshness_rule):
        """Test that a page without dates scores 0 with a missing metadata issue."""
        page = make_page("<html><body><p>Gardening tips for spring.</p></body></html>")

        outcome = await freshness_rule.evaluate(page, make_options())

        assert outcome.score == 0
        assert [i.description for i in outcome.issues] == ["Missing date metadata"]
        assert outcome.recommendations == (
            "Add visible publication or update dates to content",
            "Include current year references to show content relevance",
        )

    @pytest.mark.asyncio
    async def test_stale_content(self, freshness_rule):
        """Test that content older than a year is flagged."""
        html = '<html><head><meta name="dateModified" content="2020-01-01"></head><body><p>Old text</p></body></html>'

        outcome = await freshness_rule.evaluate(make_page(html), make_options())

        assert outcome.score == 20
        assert outcome.issues[0].severity is Severity.MEDIUM
        assert outcome.issues[0].description == "Content has not been updated in over a year"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("age_days, expected", [(10, 45), (90, 35), (300, 25)])
    async def test_age_bands(self, freshness_rule, age_days, expected):
        """Test points awarded by content age."""
        dated = (NOW - timedelta(days=age_days)).isoformat()
        html = f'<html><head><meta property="article:modified_time" content="{dated}"></head><body><p>Text</p></body></html>'

        outcome = await freshness_rule.evaluate(make_page(html), make_options())

        assert outcome.score == expected

    @pytest.mark.asyncio
    async def test_http_date_in_last_modified(self, freshness_rule):
        """Test that an HTTP-style last-modified date counts as date metadata."""
        html = (
            '<html><head><meta name="last-modified" content="Sat, 01 Jun 2024 09:00:00 GMT"></head>'
            "<body><p>Text</p></body></html>"
        )

        outcome = await freshness_rule.evaluate(make_page(html), make_options())

        assert outcome.score == 45
        assert outcome.issues == ()

    def test_most_recent_date_wins(self):
        """Test that the newest of meta, time and JSON-LD dates is used."""
        html = (
            '<html><head><meta property="article:published_time" content="2023-01-01">'
            '<script type="application/ld+json">{"@type": "Article", "dateModified": "2024-05-01T10:00:00Z"}</script>'
            '</head><body><time datetime="2022-03-03">March 2022</time></body></html>'
        )

        date = ContentFreshnessRule.metadata_date(make_page(html))

        assert date == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("2024-05-01T10:00:00Z", datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)),
            ("2024-05-01", datetime(2024, 5, 1, tzinfo=timezone.utc)),
            ("2024-05-01T12:00:00+02:00", datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)),
            ("Sat, 01 Jun 2024 09:00:00 GMT", datetime(2024, 6, 1, 9, 0, tzinfo=timezone.utc)),
            ("June 1, 2024", datetime(2024, 6, 1, tzinfo=timezone.utc)),
            ("2024/06/01", datetime(2024, 6, 1, tzinfo=timezone.utc)),
            ("01 Jun 2024", datetime(2024, 6, 1, tzinfo=timezone.utc)),
            ("next tuesday", None),
            ("", None),
        ],
    )
    def test_parse_date(self, value, expected):
        """Test ISO, HTTP and written-out dates, with UTC as the default zone."""
        assert parse_date(value) == expected


class TestInDepthGuidesRule:
    """Test InDepthGuidesRule scoring."""

    @pytest.mark.asyncio
    async def test_short_page(self):
        """Test that pages under the minimum length score 20 with a high issue."""
        page = make_page(f"<html><body>{paragraphs(200)}</body></html>")

        outcome = await InDepthGuidesRule().evaluate(page, make_options())

        assert outcome.score == 20
        assert outcome.issues[0].severity is Severity.HIGH
        assert outcome.issues[0].recommendation == "Expand the content to at least 1500 words"

    @pytest.mark.asyncio
    async def test_comprehensive_guide(self):
        """Test that long, well-sectioned, illustrated guides collect every structural point."""
        sections = "".join(f"<h3>Step {i}</h3>" for i in range(7))
        images = "".join(f'<img src="figure-{i}.png">' for i in range(10))
        html = f"<html><body><h2>Basics</h2><h2>Setup</h2><h2>Advanced</h2>{sections}{images}{paragraphs(3000)}</body></html>"
        page = make_page(html, url="https://example.com/guides/content-scoring")

        outcome = await InDepthGuidesRule().evaluate(page, make_options())

        assert outcome.score == 60
        assert outcome.issues == ()
        assert outcome.recommendations == ()

    @pytest.mark.asyncio
    async def test_basic_length_with_few_sections(self):
        """Test that a minimal-length page with few sections is flagged."""
        html = f"<html><body><h2>Part one</h2><h2>Part two</h2>{paragraphs(1500)}</body></html>"

        outcome = await InDepthGuidesRule().evaluate(make_page(html), make_options())

        assert outcome.score == 15
        assert [i.description for i in outcome.issues] == ["Guide has too few sections"]
        assert outcome.recommendations == ("Add images, diagrams or code examples to support the text",)
