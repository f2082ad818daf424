"""
Read-only DOM helpers shared by the rule implementations.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from pagescore.protocols import EvidenceItem, Issue


@dataclass
class Findings:
    """Mutable scratchpad a rule fills in before building its outcome."""

    score: float = 0.0
    evidence: List[EvidenceItem] = field(default_factory=list)
    issues: List[Issue] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    breakdown: List[Tuple[str, float]] = field(default_factory=list)

    def add(self, component: str, points: float) -> None:
        self.score += points
        self.breakdown.append((component, points))

    def summarize(self) -> None:
        self.evidence.append(EvidenceItem.score_breakdown(self.breakdown, max(0.0, min(100.0, self.score))))


@dataclass(frozen=True)
class JsonLdItem:
    type: str
    properties: Tuple[str, ...]
    data: Dict[str, Any]


def _flatten(node: Any) -> Iterator[Dict[str, Any]]:
    if isinstance(node, list):
        for child in node:
            yield from _flatten(child)
    elif isinstance(node, dict):
        if "@graph" in node:
            yield from _flatten(node["@graph"])
        else:
            yield node


def json_ld_items(dom: BeautifulSoup) -> Tuple[List[JsonLdItem], int]:
    """
    Parse every application/ld+json block.

    Returns:
        (items, invalid_block_count)
    """
    items: List[JsonLdItem] = []
    invalid = 0
    for script in dom.find_all("script", type="application/ld+json"):
        raw = script.string if script.string is not None else script.get_text()
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            invalid += 1
            continue
        for node in _flatten(data):
            schema_type = node.get("@type", "Unknown")
            if isinstance(schema_type, list):
                schema_type = ",".join(str(t) for t in schema_type) or "Unknown"
            properties = tuple(key for key in node if not key.startswith("@"))
            items.append(JsonLdItem(type=str(schema_type), properties=properties, data=node))
    return items, invalid


def meta_content(dom: BeautifulSoup, *selectors: str) -> Optional[str]:
    """First non-empty `content` attribute among the given meta selectors."""
    for selector in selectors:
        tag = dom.select_one(selector)
        if tag is not None:
            value = (tag.get("content") or "").strip()
            if value:
                return value
    return None


def host_of(url: str) -> str:
    host = urlparse(url).netloc.lower()
    return host[4:] if host.startswith("www.") else host


def classify_links(dom: BeautifulSoup, page_url: str) -> Tuple[List[str], List[str]]:
    """Split anchors into (internal, external) absolute URLs."""
    page_host = host_of(page_url)
    internal: List[str] = []
    external: List[str] = []
    for anchor in dom.find_all("a", href=True):
        href = anchor["href"].strip()
        if not href or href.startswith(("#", "mailto:", "tel:", "javascript:")):
            continue
        absolute = urljoin(page_url, href)
        if urlparse(absolute).scheme not in ("http", "https"):
            continue
        if host_of(absolute) == page_host:
            internal.append(absolute)
        else:
            external.append(absolute)
    return internal, external


def heading_text(tag: Any) -> str:
    return " ".join(tag.get_text(separator=" ").split())
