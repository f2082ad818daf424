"""Logging and metrics for PageScore."""

from .logging import configure_logging
from .metrics import METRICS

__all__ = ["METRICS", "configure_logging"]
