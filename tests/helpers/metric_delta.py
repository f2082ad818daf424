"""
Helpers for asserting that prometheus samples change during a test.

Samples are read from the default registry by name and labels, so labelled
children created lazily by the code under test are handled too.
"""

from contextlib import contextmanager
from typing import Dict, Optional

from prometheus_client import REGISTRY


def sample_value(name: str, labels: Optional[Dict[str, str]] = None) -> float:
    value = REGISTRY.get_sample_value(name, labels or {})
    return value if value is not None else 0.0


@contextmanager
def metric_delta(name: str, labels: Optional[Dict[str, str]] = None, expected_delta: float = 1):
    """
    Assert a sample changes by exactly `expected_delta`.

    Usage:
        with metric_delta("pagescore_rule_errors_total", {"rule": "broken"}):
            # Code that should count one rule error
            ...
    """
    initial_value = sample_value(name, labels)
    yield
    actual_delta = sample_value(name, labels) - initial_value

    if actual_delta != expected_delta:
        raise AssertionError(
            f"Expected {name}{labels or ''} to change by {expected_delta}, but it changed by {actual_delta}"
        )


@contextmanager
def histogram_observes(name: str, labels: Optional[Dict[str, str]] = None, min_observations: int = 1):
    """Assert a histogram records at least `min_observations` observations."""
    initial_count = sample_value(f"{name}_count", labels)
    yield
    actual = sample_value(f"{name}_count", labels) - initial_count

    if actual < min_observations:
        raise AssertionError(f"Expected at least {min_observations} observations of {name}, got {actual}")
