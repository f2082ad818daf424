"""
Test configuration for PageScore.

Provides sample pages, scripted model backends and helpers for building
rule inputs without a network or real provider keys.
"""

# Standard library imports
import asyncio
import os
from typing import AsyncGenerator

# Third-party imports
import pytest
import pytest_asyncio

# Local imports
from tests.helpers.pages import ScriptedBackend, scripted_gateway

# Keep provider keys from the developer's shell out of tests
for _key in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GOOGLE_API_KEY"):
    os.environ.pop(_key, None)
os.environ["PAGESCORE_TEST_MODE"] = "1"

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    os.environ["PAGESCORE_TEST_MODE"] = "1"
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests across modules")
    config.addinivalue_line("markers", "slow: Tests that take >10 seconds")


@pytest_asyncio.fixture(autouse=True)
async def cleanup_tasks() -> AsyncGenerator[None, None]:
    """Cancel any asyncio tasks a test leaves behind."""
    tasks_before = asyncio.all_tasks()
    yield
    new_tasks = asyncio.all_tasks() - tasks_before

    for task in new_tasks:
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_config_search(tmp_path, monkeypatch):
    """Keep configuration discovery away from the developer's own files."""
    monkeypatch.delenv("PAGESCORE_CONFIG", raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))


@pytest.fixture
def scripted_backend():
    return ScriptedBackend


@pytest.fixture
def failing_gateway():
    return scripted_gateway(RuntimeError("provider down"))


@pytest.fixture
def sample_html() -> str:
    """A well-formed article page."""
    return """
    <!DOCTYPE html>
    <html lang="en">
    <head>
        <title>What is Content Scoring? A Complete Guide</title>
        <meta name="description" content="Learn what content scoring is, how it works and how to improve the quality of your web pages step by step.">
        <meta name="author" content="Jane Smith">
        <meta property="article:published_time" content="2024-03-01T10:00:00Z">
        <script type="application/ld+json">
        {"@context": "https://schema.org", "@type": "Article", "headline": "What is Content Scoring?",
         "author": {"@type": "Person", "name": "Jane Smith"}, "datePublished": "2024-03-01"}
        </script>
        <script>var tracking = "ignored";</script>
    </head>
    <body>
        <header><nav><a href="/">Home</a></nav></header>
        <main>
            <article>
                <h1>What is Content Scoring?</h1>
                <p class="byline">By Jane Smith</p>
                <h2>Definition of content scoring</h2>
                <p>Content scoring is a method for measuring how useful a page is to readers and search engines.</p>
                <h2>How scoring works</h2>
                <p>A scoring pipeline refers to a set of rules that inspect structure, metadata and text.</p>
                <img src="diagram.png" alt="Diagram of the scoring pipeline stages">
                <h2>Further reading</h2>
                <p>See <a href="https://www.nih.gov/research">the NIH</a> and <a href="/blog/other">our other post</a>.</p>
            </article>
        </main>
        <footer>Copyright</footer>
    </body>
    </html>
    """


@pytest.fixture
def minimal_html() -> str:
    """A page with almost nothing on it."""
    return "<html><body><div>Hello</div></body></html>"
