"""Command-line interface for PageScore."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, Optional

import click
import structlog
from rich.console import Console
from rich.table import Table

from pagescore import __version__
from pagescore.config import Config, MonitoringConfig, find_config_file
from pagescore.container import AnalysisContext
from pagescore.observability import configure_logging
from pagescore.protocols import AnalysisResult, PageInput, PageMetadata

console = Console(stderr=True)
logger = structlog.get_logger(__name__)


def _load_config(ctx: click.Context) -> Config:
    config_path: Optional[Path] = ctx.obj.get("config_path") or find_config_file()
    ctx.obj["config_path"] = config_path
    return Config.from_yaml(config_path) if config_path else Config()


def _save(formatted: str, output: str) -> None:
    Path(output).write_text(formatted, encoding="utf-8")
    console.print(f"[green]Result saved to {output}[/green]")


def _emit(payload: Dict[str, Any], output: Optional[str]) -> None:
    formatted = json.dumps(payload, indent=2, ensure_ascii=False)
    click.echo(formatted)
    if output:
        _save(formatted, output)


def _score_table(result: AnalysisResult) -> Table:
    table = Table(title=f"PageScore: {result.url}")
    table.add_column("Dimension", style="cyan")
    table.add_column("Score", style="magenta", justify="right")
    table.add_column("Explanation")

    for dimension, score in result.scores.items():
        detail = result.per_dimension.get(dimension)
        table.add_row(
            dimension.value,
            "n/a" if score is None else str(score),
            detail.explanation if detail else (result.skip_reason or "no applicable rules"),
        )
    table.add_row("global", "n/a" if result.global_score is None else str(result.global_score), "")
    return table


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", type=click.Path(exists=True), help="Configuration file path")
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level",
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], log_level: str) -> None:
    """PageScore - web page content quality scoring."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config) if config else None
    ctx.obj["log_level"] = log_level

    configure_logging(MonitoringConfig(log_level=log_level))


@cli.command()
@click.argument("html_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--url", required=True, help="URL the HTML was fetched from")
@click.option("--title", default=None, help="Page title reported by the crawler")
@click.option("--meta-description", default=None, help="Meta description reported by the crawler")
@click.option("--no-model", is_flag=True, help="Use heuristic rules only, without model providers")
@click.option("--output", "-o", type=click.Path(), help="Also write the JSON result to this file")
@click.option(
    "--format",
    "output_format",
    default="json",
    type=click.Choice(["json", "table"]),
    help="Output format",
)
@click.pass_context
def analyze(
    ctx: click.Context,
    html_file: str,
    url: str,
    title: Optional[str],
    meta_description: Optional[str],
    no_model: bool,
    output: Optional[str],
    output_format: str,
) -> None:
    """Score a saved HTML page."""
    config = _load_config(ctx)
    if no_model:
        for provider in config.gateway.providers:
            provider.enabled = False

    page = PageInput(
        url=url,
        html=Path(html_file).read_text(encoding="utf-8", errors="replace"),
        metadata=PageMetadata(title=title, meta_description=meta_description),
    )

    async def run_analysis() -> AnalysisResult:
        context = AnalysisContext(config=config, config_path=ctx.obj["config_path"])
        async with context.lifecycle():
            assert context.analyzer is not None
            return await context.analyzer.analyze(page)

    result = asyncio.run(run_analysis())
    logger.info("Page analyzed", url=url, global_score=result.global_score, model_calls=result.model_usage_count)

    if output_format == "table":
        console.print(_score_table(result))
        for item in result.issues[:10]:
            console.print(f"[yellow]{item.severity.value}[/yellow] {item.description}")
        if output:
            _save(json.dumps(result.to_dict(), indent=2, ensure_ascii=False), output)
    else:
        _emit(result.to_dict(), output)


@cli.command()
@click.argument("html_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--url", required=True, help="URL the HTML was fetched from")
@click.option("--no-model", is_flag=True, help="Only use URL patterns")
@click.pass_context
def categorize(ctx: click.Context, html_file: str, url: str, no_model: bool) -> None:
    """Classify the page type of a saved HTML page."""
    config = _load_config(ctx)
    if no_model:
        for provider in config.gateway.providers:
            provider.enabled = False
    html = Path(html_file).read_text(encoding="utf-8", errors="replace")

    async def run_categorize() -> Dict[str, Any]:
        context = AnalysisContext(config=config, config_path=ctx.obj["config_path"])
        async with context.lifecycle():
            assert context.categorizer is not None
            category = await context.categorizer.categorize(url, html)
            return category.to_dict()

    _emit(asyncio.run(run_categorize()), None)


@cli.command()
@click.pass_context
def health(ctx: click.Context) -> None:
    """Show configured model providers and the rule catalog."""
    config = _load_config(ctx)

    async def check_health() -> Dict[str, Any]:
        context = AnalysisContext(config=config, config_path=ctx.obj["config_path"])
        async with context.lifecycle():
            return context.get_health_status()

    status = asyncio.run(check_health())
    table = Table(title="PageScore Health")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="magenta")
    providers = status["model_providers"]
    table.add_row("model providers", ", ".join(providers) if providers else "none (heuristics only)")
    for dimension, rule_ids in status["rules"].items():
        table.add_row(f"rules.{dimension}", ", ".join(rule_ids))
    console.print(table)


def main() -> None:
    """Main entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
