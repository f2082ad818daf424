"""
Technical dimension rules: markup and metadata a machine reader relies on.
"""

from __future__ import annotations

import re
from collections import Counter
from typing import Dict, FrozenSet, List, Tuple

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

RECOMMENDED_SCHEMAS: Dict[PageCategoryType, Tuple[str, ...]] = {
    P.HOMEPAGE: ("Organization", "WebSite"),
    P.PRODUCT_DETAIL_PAGE: ("Product",),
    P.PRODUCT_CATEGORY_PAGE: ("ItemList", "CollectionPage"),
    P.SERVICES_FEATURES_PAGE: ("Service", "Product"),
    P.PRICING_PAGE: ("Offer", "Product"),
    P.COMPARISON_PAGE: ("ItemList", "Product"),
    P.BLOG_POST_ARTICLE: ("Article", "BlogPosting"),
    P.PILLAR_PAGE_TOPIC_HUB: ("Article", "CollectionPage"),
    P.PRODUCT_ROUNDUP_REVIEW_ARTICLE: ("Review", "ItemList"),
    P.HOW_TO_GUIDE_TUTORIAL: ("HowTo", "Article"),
    P.CASE_STUDY_SUCCESS_STORY: ("Article", "Review"),
    P.WHAT_IS_X_DEFINITIONAL_PAGE: ("DefinedTerm", "Article"),
    P.IN_DEPTH_GUIDE_WHITE_PAPER: ("Article", "TechArticle"),
    P.FAQ_GLOSSARY_PAGES: ("FAQPage", "DefinedTermSet"),
    P.PUBLIC_FORUM_UGC_PAGES: ("DiscussionForumPosting", "QAPage"),
    P.CORPORATE_CONTACT_PAGES: ("Organization", "ContactPage", "AboutPage"),
}

ESSENTIAL_PROPERTIES: Dict[str, Tuple[str, ...]] = {
    "Article": ("headline", "author", "datePublished"),
    "BlogPosting": ("headline", "author", "datePublished"),
    "NewsArticle": ("headline", "author", "datePublished"),
    "Product": ("name", "offers"),
    "Organization": ("name", "url"),
    "WebSite": ("name", "url"),
    "FAQPage": ("mainEntity",),
    "HowTo": ("name", "step"),
    "BreadcrumbList": ("itemListElement",),
    "Review": ("itemReviewed", "author"),
}


class StructuredDataRule(Rule):
    id = "structured-data"
    name = "Structured Data"
    dimension = Dimension.TECHNICAL
    weight = 3.0

    async def evaluate(self, page: PageContent, options: RuleOptions) -> RuleOutcome:
        f = Findings()
        f.add("Base score", 20)

        json_ld, invalid_blocks = json_ld_items(page.dom)
        microdata = page.dom.select("[itemscope][itemtype]")
        rdfa = page.dom.select("[typeof]")
        total = len(json_ld) + len(microdata) + len(rdfa)
        f.evidence.append(EvidenceItem.info("Schema Analysis", f"Found {total} structured data item(s)"))

        if invalid_blocks:
            f.evidence.append(EvidenceItem.warning("Schema Analysis", f"{invalid_blocks} JSON-LD block(s) failed to parse"))
            f.issues.append(
                issue(Severity.MEDIUM, "Invalid JSON-LD markup", "Fix the JSON syntax of structured data blocks")
            )

        if total == 0:
            f.evidence.append(EvidenceItem.error("Structured Data", "No structured data found"))
            f.issues.append(
                issue(Severity.MEDIUM, "No structured data found", "Add schema.org markup, preferably JSON-LD")
            )
            f.recommendations.append("Add schema.org markup to help AI understand your content")
            f.summarize()
            return self.outcome(f.score, f.evidence, f.issues, f.recommendations)

        if json_ld:
            f.add("JSON-LD format detected", 40)
            types = [item.type for item in json_ld if item.type != "Unknown"]
            f.evidence.append(
                EvidenceItem.success(
                    "Schema Analysis",
                    f"JSON-LD format detected ({len(json_ld)} item(s))",
                    types=types,
                )
            )
            untyped = len(json_ld) - len(types)
            if untyped:
                f.evidence.append(EvidenceItem.warning("Schema Analysis", f"{untyped} schema(s) missing @type"))
        elif microdata:
            f.evidence.append(
                EvidenceItem.warning(
                    "Schema Analysis", f"Microdata detected ({len(microdata)} item(s)); consider migrating to JSON-LD"
                )
            )

        implemented = [item.type for item in json_ld]
        implemented += [str(tag.get("itemtype", "")) for tag in microdata]
        implemented += [str(tag.get("typeof", "")) for tag in rdfa]
        recommended = RECOMMENDED_SCHEMAS.get(page.category.type, ())
        if recommended and any(schema in found for schema in recommended for found in implemented):
            f.add("Recommended schema types", min(20, 100 - f.score))
            f.evidence.append(EvidenceItem.success("Schema", "Implements recommended schema types for this page type"))
        elif recommended:
            f.evidence.append(
                EvidenceItem.warning("Schema", "Missing recommended schemas", recommended=list(recommended))
            )
            f.recommendations.append(f"Consider adding: {', '.join(recommended)} schemas")

        missing = self._missing_properties(json_ld)
        if json_ld and not missing:
            f.add("Essential properties present", min(20, 100 - f.score))
            f.evidence.append(EvidenceItem.success("Schema", "Essential schema properties are present"))
        for schema, props in missing:
            f.recommendations.append(f"Add to {schema}: {', '.join(props)}")
        if missing:
            f.evidence.append(
                EvidenceItem.warning(
                    "Schema",
                    "Missing some essential schema properties",
                    missing={schema: list(props) for schema, props in missing},
                )
            )

        og_tags = page.dom.select('meta[property^="og:"]')
        if len(og_tags) >= 4:
            f.evidence.append(EvidenceItem.success("Social", "Open Graph tags present"))
        elif og_tags:
            f.evidence.append(EvidenceItem.info("Social", f"{len(og_tags)} Open Graph tags (minimum 4 recommended)"))
            f.recommendations.append("Add complete Open Graph tags (title, description, image, url)")

        f.summarize()
        return self.outcome(f.score, f.evidence, f.issues, f.recommendations)

    @staticmethod
    def _missing_properties(items) -> List[Tuple[str, Tuple[str, ...]]]:
        missing = []
        for item in items:
            required = ESSENTIAL_PROPERTIES.get(item.type)
            if not required:
                continue
            absent = tuple(prop for prop in required if prop not in item.properties)
            if absent:
                missing.append((item.type, absent))
        return missing


GENERIC_ALT_TEXT: FrozenSet[str] = frozenset(
    {"image", "img", "photo", "picture", "pic", "logo", "icon", "banner", "graphic", "placeholder", "untitled"}
)
_FILENAME_ALT = re.compile(r"\.(?:jpe?g|png|gif|webp|svg|avif)$", re.IGNORECASE)


def is_descriptive_alt(alt: str) -> bool:
    words = alt.split()
    if len(words) < 4 or _FILENAME_ALT.search(alt.strip()):
        return False
    return not all(word.lower().strip(".,-_") in GENERIC_ALT_TEXT for word in words[:2])


class ImageAltRule(Rule):
    id = "image-alt-attributes"
    name = "Image Alt Attributes"
    dimension = Dimension.TECHNICAL
    weight = 2.0

    BANDS = ((95, 100), (75, 80), (50, 60), (25, 40))

    async def evaluate(self, page: PageContent, options: RuleOptions) -> RuleOutcome:
        images = page.dom.find_all("img")
        if not images:
            return self.outcome(100, [EvidenceItem.info("Images", "No images on page")])

        missing, empty, descriptive, weak = [], [], [], []
        for img in images:
            src = str(img.get("src", ""))[:120]
            alt = img.get("alt")
            if alt is None:
                missing.append(src)
            elif not alt.strip():
                empty.append(src)
            elif is_descriptive_alt(alt):
                descriptive.append(src)
            else:
                weak.append(src)

        percent = len(descriptive) / len(images) * 100
        score = next((points for threshold, points in self.BANDS if percent >= threshold), 20)

        evidence = [
            EvidenceItem.info("Images", f"{len(images)} image(s) analyzed"),
            EvidenceItem.success("Alt Text", f"{len(descriptive)} descriptive alt attribute(s) ({percent:.0f}%)")
            if descriptive
            else EvidenceItem.error("Alt Text", "No descriptive alt attributes"),
        ]
        issues = []
        recommendations = []

        if missing:
            evidence.append(EvidenceItem.error("Alt Text", f"{len(missing)} image(s) without alt attribute"))
            issues.append(
                issue(
                    Severity.HIGH,
                    f"{len(missing)} image(s) missing alt attributes",
                    "Add descriptive alt text to every meaningful image",
                    *missing[:5],
                )
            )
        if empty:
            evidence.append(EvidenceItem.warning("Alt Text", f"{len(empty)} image(s) with empty alt"))
            recommendations.append("Check that images with empty alt text are purely decorative")
        if weak:
            evidence.append(EvidenceItem.warning("Alt Text", f"{len(weak)} image(s) with short or generic alt text"))
            recommendations.append("Use alt text of at least four words describing the image content")

        evidence.append(EvidenceItem.score_breakdown([(f"{percent:.0f}% descriptive", score)], score))
        return self.outcome(score, evidence, issues, recommendations)


SEMANTIC_TAGS = ("article", "section", "nav", "header", "footer", "main", "aside")
DEPRECATED_TAGS = ("font", "center", "marquee", "blink", "big", "strike", "tt", "frame", "frameset")
BLOCK_TAGS = ("div", "section", "article", "table", "ul", "ol", "h1", "h2", "h3", "h4", "h5", "h6")

# (error count above, score cap, severity)
VALIDATION_CAPS = (
    (15, 20, Severity.HIGH),
    (10, 40, Severity.HIGH),
    (5, 60, Severity.MEDIUM),
    (0, 80, Severity.LOW),
)

_SCRIPT_BLOCK = re.compile(r"<script[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)


class CleanHtmlRule(Rule):
    id = "clean-html-structure"
    name = "Clean HTML Structure"
    dimension = Dimension.TECHNICAL
    weight = 3.0

    async def evaluate(self, page: PageContent, options: RuleOptions) -> RuleOutcome:
        f = Findings()
        f.add("Base score", 100)
        dom = page.dom

        found = [tag for tag in SEMANTIC_TAGS if dom.find(tag) is not None]
        if found:
            f.evidence.append(EvidenceItem.success("Semantic HTML5 Tags", f"Found {len(found)}: {', '.join(found)}"))
        else:
            f.add("No semantic HTML", -40)
            f.evidence.append(EvidenceItem.error("Semantic HTML5 Tags", "No semantic HTML5 tags found"))
            f.issues.append(
                issue(
                    Severity.MEDIUM,
                    "No semantic HTML5 structure",
                    "Add semantic HTML5 tags (header, nav, main, article, section, footer)",
                )
            )

        markup_length = len(_SCRIPT_BLOCK.sub("", page.html))
        text_length = len(page.visible_text)
        if text_length and markup_length:
            ratio = text_length / markup_length
            if ratio < 0.3:
                f.add("Low content ratio", -30)
                f.evidence.append(
                    EvidenceItem.warning("Content Ratio", f"Low ratio ({ratio:.1%}); content may be loaded via JavaScript")
                )
                f.issues.append(
                    issue(
                        Severity.HIGH,
                        "Most page content is not present in the raw HTML",
                        "Ensure 30%+ of content is in raw HTML (not JS-loaded)",
                    )
                )
            else:
                f.evidence.append(EvidenceItem.success("Content Ratio", f"Good ratio ({ratio:.1%})"))

        errors = self.validation_errors(page)
        error_count = sum(errors.values())
        if error_count:
            for limit, cap, severity in VALIDATION_CAPS:
                if error_count > limit:
                    if f.score > cap:
                        f.add(f"HTML errors ({error_count})", cap - f.score)
                    f.issues.append(
                        issue(
                            severity,
                            f"{error_count} HTML validation problem(s)",
                            "Fix duplicate ids, deprecated tags and invalid nesting",
                            *[f"{kind}: {count}" for kind, count in errors.items() if count],
                        )
                    )
                    break
            f.evidence.append(EvidenceItem.warning("HTML Validation", f"{error_count} problem(s) found", **errors))
        else:
            f.evidence.append(EvidenceItem.success("HTML Validation", "No HTML validation problems detected"))

        all_tags = dom.find_all(True)
        divs = dom.find_all("div")
        div_ratio = len(divs) / len(all_tags) if all_tags else 0.0
        if div_ratio > 0.5:
            f.add("Excessive div usage", -20)
            f.evidence.append(EvidenceItem.warning("Div Usage", f"High usage ({div_ratio:.1%} of all tags)"))
            f.issues.append(
                issue(Severity.LOW, "Excessive use of generic div elements", "Replace generic divs with semantic tags")
            )
        else:
            f.evidence.append(EvidenceItem.success("Div Usage", f"Acceptable usage ({div_ratio:.1%} of all tags)"))

        html_tag = dom.find("html")
        if html_tag is None or not html_tag.get("lang"):
            f.add("Missing lang attribute", -10)
            f.evidence.append(EvidenceItem.warning("Lang Attribute", "Missing lang attribute on html tag"))
            f.issues.append(
                issue(Severity.LOW, "Missing lang attribute", 'Add lang="en" (or the page language) to the html tag')
            )
        else:
            f.evidence.append(EvidenceItem.success("Lang Attribute", f"lang=\"{html_tag.get('lang')}\""))

        f.summarize()
        return self.outcome(f.score, f.evidence, f.issues)

    @staticmethod
    def validation_errors(page: PageContent) -> Dict[str, int]:
        dom = page.dom
        ids = Counter(tag["id"] for tag in dom.find_all(id=True))
        return {
            "duplicate_ids": sum(count - 1 for count in ids.values() if count > 1),
            "deprecated_tags": len(dom.find_all(DEPRECATED_TAGS)),
            "nested_links": sum(1 for a in dom.find_all("a") if a.find_parent("a") is not None),
            "block_in_paragraph": sum(1 for p in dom.find_all("p") if p.find(BLOCK_TAGS) is not None),
        }


class MetaDescriptionRule(Rule):
    id = "meta-description"
    name = "Meta Description"
    dimension = Dimension.TECHNICAL
    weight = 1.0

    MIN_LENGTH = 50
    MAX_LENGTH = 160

    async def evaluate(self, page: PageContent, options: RuleOptions) -> RuleOutcome:
        description = page.metadata.meta_description or meta_content(
            page.dom, 'meta[name="description"]', 'meta[property="og:description"]'
        )
        if not description:
            return self.outcome(
                0,
                [EvidenceItem.error("Meta Description", "No meta description")],
                [issue(Severity.HIGH, "Missing meta description", "Add a 50-160 character meta description")],
            )

        length = len(description)
        if length < self.MIN_LENGTH:
            return self.outcome(
                50,
                [EvidenceItem.warning("Meta Description", f"Too short ({length} chars)")],
                [issue(Severity.MEDIUM, "Meta description is too short", "Expand the meta description to 50-160 characters")],
            )
        if length > self.MAX_LENGTH:
            return self.outcome(
                70,
                [EvidenceItem.warning("Meta Description", f"Too long ({length} chars), likely truncated")],
                recommendations=["Shorten the meta description to at most 160 characters"],
            )
        return self.outcome(100, [EvidenceItem.success("Meta Description", f"Good length ({length} chars)")])
