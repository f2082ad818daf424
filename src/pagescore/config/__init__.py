"""Configuration models for PageScore."""

from .config import (
    AnalysisConfig,
    CategorizerConfig,
    Config,
    GatewayConfig,
    MonitoringConfig,
    ProviderConfig,
    find_config_file,
)

__all__ = [
    "AnalysisConfig",
    "CategorizerConfig",
    "Config",
    "GatewayConfig",
    "MonitoringConfig",
    "ProviderConfig",
    "find_config_file",
]
