"""
Per-batch dependency container for the scoring pipeline.

An AnalysisContext is built at the start of an analysis batch, handed to
whatever drives the batch, and shut down at the end so backend sessions are
closed.
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, List, Optional
from uuid import uuid4

import structlog

from pagescore.config import Config, find_config_file

from .aggregator import Aggregator
from .analyzer import PageAnalyzer
from .categorizer import PageCategorizer
from .gateway import ModelGateway, build_backends
from .orchestrator import RuleOrchestrator
from .rules.registry import RuleCatalog, default_catalog


class AnalysisContext:
    """
    Owns the configuration, model gateway and analysis components for one batch.

    Components are wired explicitly: the gateway (None when no provider has
    an API key) is passed to the categorizer and the analyzer, which passes
    it on to rules through their options.
    """

    def __init__(self, config: Optional[Config] = None, config_path: Optional[Path] = None) -> None:
        self.config_path = config_path
        self.config: Optional[Config] = config
        self.logger = structlog.get_logger(self.__class__.__name__)

        self.gateway: Optional[ModelGateway] = None
        self.categorizer: Optional[PageCategorizer] = None
        self.catalog: Optional[RuleCatalog] = None
        self.orchestrator: Optional[RuleOrchestrator] = None
        self.analyzer: Optional[PageAnalyzer] = None

        self._shutdown_handlers: List[Callable[[], Any]] = []
        self.batch_id = str(uuid4())
        self.is_running = False

    async def initialize(self) -> None:
        """Load configuration (unless one was given) and build the components."""
        if self.config is None:
            self.load_config()
        self._create_components()
        self.is_running = True

        self.logger.info(
            "Analysis context initialized",
            batch_id=self.batch_id,
            config_path=str(self.config_path) if self.config_path else "default",
            providers=self.gateway.providers if self.gateway else [],
        )

    def load_config(self) -> None:
        if self.config_path is None:
            self.config_path = find_config_file()
        if self.config_path and self.config_path.exists():
            self.config = Config.from_yaml(self.config_path)
        else:
            self.config = Config()

    def _create_components(self) -> None:
        if self.config is None:
            raise RuntimeError("Configuration must be loaded before creating components")

        backends = build_backends(self.config.gateway)
        if backends:
            self.gateway = ModelGateway(backends, timeout_seconds=self.config.gateway.timeout_seconds)
        else:
            self.logger.warning("No model providers configured, using heuristic analysis only")
            self.gateway = None

        self.categorizer = PageCategorizer(self.gateway, self.config.categorizer)
        self.catalog = default_catalog()
        self.orchestrator = RuleOrchestrator(Aggregator())
        self.analyzer = PageAnalyzer(
            categorizer=self.categorizer,
            catalog=self.catalog,
            orchestrator=self.orchestrator,
            gateway=self.gateway,
            settings=self.config.analysis,
        )

    @asynccontextmanager
    async def lifecycle(self) -> AsyncIterator[AnalysisContext]:
        """Context manager for proper lifecycle management."""
        try:
            await self.initialize()
            yield self
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        """Run shutdown handlers and close model backend sessions."""
        if not self.is_running:
            return

        self.logger.info("Shutting down analysis context", batch_id=self.batch_id)

        for handler in self._shutdown_handlers:
            try:
                if asyncio.iscoroutinefunction(handler):
                    await handler()
                else:
                    handler()
            except Exception as e:
                self.logger.error("Error in shutdown handler", error=str(e))

        if self.gateway is not None:
            await self.gateway.close()

        self.is_running = False
        self.logger.info("Analysis context shutdown complete")

    def add_shutdown_handler(self, handler: Callable[[], Any]) -> None:
        self._shutdown_handlers.append(handler)

    def get_health_status(self) -> Dict[str, Any]:
        """Health status of the context and its model providers."""
        return {
            "batch_id": self.batch_id,
            "is_running": self.is_running,
            "config_loaded": self.config is not None,
            "config_path": str(self.config_path) if self.config_path else None,
            "model_providers": self.gateway.providers if self.gateway else [],
            "provider_metrics": self.gateway.get_metrics() if self.gateway else {},
            "rules": self.catalog.rule_ids() if self.catalog else {},
        }
