"""folioscope CLI."""

import asyncio
import math
import sys

import click

from folioscope.app import AnalysisReport, DashboardApp
from folioscope.constants import Timeframe
from folioscope.errors import FolioscopeError

CONFIG_OPTION = click.option(
    "--config",
    type=click.Path(exists=True),
    default="config/config.yaml",
    help="Path to configuration file",
)


def _fmt(value: float, pct: bool) -> str:
    if not math.isfinite(value):
        return "n/a"
    return f"{value:+.2%}" if pct else f"{value:+.2f}"


def _print_report(report: AnalysisReport) -> None:
    first, last = report.points[0].date, report.points[-1].date
    click.echo("=" * 60)
    click.echo(f"PERFORMANCE {first.isoformat()} to {last.isoformat()} ({len(report.points)} points)")
    click.echo("=" * 60)
    click.echo(report.metrics.summary())

    if report.benchmark_metrics:
        click.echo("")
        click.echo("Benchmark series:")
        click.echo(report.benchmark_metrics.summary())

    click.echo("")
    click.echo(f"{'Metric':<20}{'Portfolio':>12}{'Benchmark':>12}{'Diff':>12}")
    for row in report.comparisons:
        pct = row.name not in ("sharpe_ratio", "beta")
        marker = {True: "+", False: "-", None: " "}[row.outperforms]
        click.echo(
            f"{row.name:<20}{_fmt(row.portfolio, pct):>12}{_fmt(row.benchmark, pct):>12}"
            f"{_fmt(row.difference, pct):>12} {marker}"
        )


@click.group()
def cli():
    """folioscope Command Line Interface."""
    pass


@cli.command()
@CONFIG_OPTION
@click.option("--symbol", "symbols", multiple=True, help="Symbol to stream (repeatable)")
@click.option("--duration", type=float, help="Stop after this many seconds")
@click.option("--sim", is_flag=True, help="Use the simulated transport")
@click.option("--log-level", help="Override log level")
def watch(config, symbols, duration, sim, log_level):
    """Stream real-time prices for symbols."""
    app = DashboardApp(
        config_path=config, log_level=log_level, transport_mode="sim" if sim else None
    )

    def echo_tick(tick):
        click.echo(
            f"{tick.timestamp:%H:%M:%S} {tick.symbol:<6} {tick.price:>10.2f} "
            f"{tick.change:+8.2f} ({tick.change_percent:+.2f}%) vol {tick.volume:,}"
        )

    try:
        asyncio.run(app.watch(list(symbols), duration=duration, listener=echo_tick))
    except KeyboardInterrupt:
        pass
    except (FolioscopeError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@CONFIG_OPTION
@click.option("--portfolio", help="Portfolio ID to fetch history for")
@click.option(
    "--timeframe",
    type=click.Choice([t.value for t in Timeframe]),
    help="History window (defaults to config)",
)
@click.option("--file", "history_file", type=click.Path(exists=True), help="History JSON file")
def analyze(config, portfolio, timeframe, history_file):
    """Compute performance metrics for a portfolio history."""
    if bool(portfolio) == bool(history_file):
        click.echo("Provide exactly one of --portfolio or --file", err=True)
        sys.exit(2)

    app = DashboardApp(config_path=config)
    try:
        if history_file:
            report = app.analyze_file(history_file)
        else:
            report = app.analyze_portfolio(portfolio, timeframe)
    except (FolioscopeError, ValueError) as e:
        click.echo(f"Analysis failed: {e}", err=True)
        sys.exit(1)

    _print_report(report)


@cli.command()
@CONFIG_OPTION
def smoke_test(config):
    """Run a smoke test (initialize components and exit)."""
    try:
        app = DashboardApp(config_path=config)
        app.initialize()
        click.echo("Smoke test passed: Components initialized successfully.")
    except Exception as e:
        click.echo(f"Smoke test failed: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    cli()

# Alias for __main__.py
main = cli
