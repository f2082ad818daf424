"""
Defines the Prometheus metrics emitted by the scoring pipeline.
"""

from __future__ import annotations

from typing import Any, Dict

from prometheus_client import REGISTRY as _PROM_REGISTRY
from prometheus_client import Counter as _OrigCounter
from prometheus_client import Histogram as _OrigHistogram

# ---------------------------------------------------------------------------
# Duplicate-safe Prometheus metric wrappers
# ---------------------------------------------------------------------------
# Importing this module twice (test collection, reloads) must not raise
# "Duplicated timeseries" from the default registry.


def _duplicate_safe_factory(metric_cls):
    """Return a factory that reuses an existing collector if already present."""

    def _factory(name: str, documentation: str, *args, **kwargs):  # type: ignore[override]
        # Counters register under both "x" and "x_total"
        for key in (name, f"{name}_total"):
            existing = _PROM_REGISTRY._names_to_collectors.get(key)
            if existing is not None:
                return existing  # type: ignore[return-value]

        try:
            return metric_cls(name, documentation, *args, **kwargs)  # type: ignore[call-arg]
        except ValueError:
            return _PROM_REGISTRY._names_to_collectors[name]  # type: ignore[return-value]

    return _factory


Counter = _duplicate_safe_factory(_OrigCounter)  # type: ignore[assignment]
Histogram = _duplicate_safe_factory(_OrigHistogram)  # type: ignore[assignment]


def _create_metrics() -> Dict[str, Any]:
    return {
        "pages_analyzed": Counter(
            "pagescore_pages_analyzed",
            "Pages run through analyze(), by outcome",
            ["status"],
        ),
        "categorizations": Counter(
            "pagescore_categorizations",
            "Page categorizations, by source (fast_path, model, fallback)",
            ["source"],
        ),
        "rule_latency_seconds": Histogram(
            "pagescore_rule_latency_seconds",
            "Time taken to evaluate a single rule",
            ["rule"],
        ),
        "rule_errors": Counter(
            "pagescore_rule_errors",
            "Rules that raised during evaluation and were omitted",
            ["rule"],
        ),
        "gateway_calls": Counter(
            "pagescore_gateway_calls",
            "Model provider attempts made by the gateway, by outcome",
            ["provider", "outcome"],
        ),
        "dimension_score": Histogram(
            "pagescore_dimension_score",
            "Distribution of aggregated dimension scores",
            ["dimension"],
            buckets=(0, 20, 40, 60, 80, 100),
        ),
    }


METRICS: Dict[str, Any] = _create_metrics()
