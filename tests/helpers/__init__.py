"""Shared test helpers."""

from .metric_delta import histogram_observes, metric_delta, sample_value
from .pages import ScriptedBackend, make_category, make_options, make_page, paragraphs, scripted_gateway

__all__ = [
    "ScriptedBackend",
    "histogram_observes",
    "make_category",
    "make_options",
    "make_page",
    "metric_delta",
    "paragraphs",
    "sample_value",
    "scripted_gateway",
]
