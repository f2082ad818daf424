"""
Scoring rules, grouped by dimension, and the registry that selects them.
"""

from .authority import AuthorAttributionRule, ComparisonContentRule, OutboundCitationsRule
from .base import ModelBackedRule, Rule
from .content import CaseStudiesRule, DefinitionalContentRule, MainHeadingRule, SubheadingsRule
from .model_backed import (
    CaseStudiesModelRule,
    ComparisonContentModelRule,
    DefinitionalContentModelRule,
    InDepthGuidesModelRule,
)
from .quality import ContentFreshnessRule, InDepthGuidesRule
from .registry import MODEL_VARIANTS, RuleCatalog, RulePlan, build_rule_plan, default_catalog
from .technical import CleanHtmlRule, ImageAltRule, MetaDescriptionRule, StructuredDataRule

__all__ = [
    "Rule",
    "ModelBackedRule",
    "RuleCatalog",
    "RulePlan",
    "MODEL_VARIANTS",
    "build_rule_plan",
    "default_catalog",
    # Technical
    "StructuredDataRule",
    "ImageAltRule",
    "CleanHtmlRule",
    "MetaDescriptionRule",
    # Content
    "MainHeadingRule",
    "SubheadingsRule",
    "DefinitionalContentRule",
    "CaseStudiesRule",
    # Authority
    "ComparisonContentRule",
    "AuthorAttributionRule",
    "OutboundCitationsRule",
    # Quality
    "ContentFreshnessRule",
    "InDepthGuidesRule",
    # Model-backed
    "InDepthGuidesModelRule",
    "DefinitionalContentModelRule",
    "CaseStudiesModelRule",
    "ComparisonContentModelRule",
]
