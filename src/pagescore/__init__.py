"""
PageScore - web page content quality scoring.
"""

from __future__ import annotations

__version__ = "0.1.0"

from .analyzer import PageAnalyzer
from .config import Config
from .container import AnalysisContext
from .protocols import AnalysisResult, Dimension, PageInput, PageMetadata

__all__ = [
    "__version__",
    "AnalysisContext",
    "AnalysisResult",
    "Config",
    "Dimension",
    "PageAnalyzer",
    "PageInput",
    "PageMetadata",
]
