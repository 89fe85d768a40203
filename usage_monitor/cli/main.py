"""
CLI interface for Usage Monitor.

Provides command-line reports over the local usage logs.
"""

import logging
import sys
from dataclasses import replace
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from usage_monitor.config.loader import (
    LOG_LEVELS,
    MonitorConfig,
    default_monitor_config,
    load_monitor_config,
)
from usage_monitor.core.aggregator import (
    AggregatedPeriod,
    aggregate_from_windows,
    calculate_totals,
)
from usage_monitor.core.alerts import evaluate_alerts
from usage_monitor.core.analysis import AnalysisResult, analyze_usage
from usage_monitor.core.plans import PlanType, get_token_limit

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"

DataPathOption = typer.Option(None, "--data-path", "-d", help="Root directory of the usage logs")
HoursBackOption = typer.Option(None, "--hours-back", "-H", help="Only analyze this many recent hours")
ConfigOption = typer.Option(None, "--config", "-c", help="Path to a YAML configuration file")
PlanOption = typer.Option(None, "--plan", "-p", help="Plan: pro, max5, max20 or custom")
LogLevelOption = typer.Option(None, "--log-level", "-l", help="Logging level")
JsonOption = typer.Option(False, "--json", help="Print machine-readable JSON")


def _load_settings(
    config_path: Optional[str],
    data_path: Optional[str],
    hours_back: Optional[int],
    plan: Optional[str],
    log_level: Optional[str],
) -> MonitorConfig:
    """Merge command-line overrides on top of the configuration file."""
    config = load_monitor_config(config_path) if config_path else default_monitor_config()

    overrides = {}
    if data_path is not None:
        overrides["data_path"] = data_path
    if hours_back is not None:
        overrides["hours_back"] = hours_back
    if plan is not None:
        overrides["plan"] = PlanType.from_string(plan)
    if log_level is not None:
        if log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"log level must be one of: {list(LOG_LEVELS)}")
        overrides["log_level"] = log_level.upper()
    if overrides:
        config = replace(config, **overrides)

    logging.basicConfig(level=getattr(logging, config.log_level), format=LOG_FORMAT)
    return config


def _run_analysis(config: MonitorConfig) -> AnalysisResult:
    return analyze_usage(
        hours_back=config.hours_back,
        data_path=config.data_path,
        session_hours=config.session_hours,
        cost_mode=config.cost_mode,
        custom_pricing=config.pricing or None,
    )


def _token_limit(config: MonitorConfig, result: AnalysisResult) -> int:
    if config.plan == PlanType.CUSTOM and config.custom_limit_tokens is not None:
        return config.custom_limit_tokens
    return get_token_limit(config.plan.value, result.windows)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """Usage Monitor CLI."""
    if ctx.invoked_subcommand is None:
        console.print("Usage Monitor - Use --help to see available commands")


@app.command()
def analyze(
    data_path: Optional[str] = DataPathOption,
    hours_back: Optional[int] = HoursBackOption,
    config_path: Optional[str] = ConfigOption,
    plan: Optional[str] = PlanOption,
    log_level: Optional[str] = LogLevelOption,
    as_json: bool = JsonOption,
):
    """Show session windows, burn rates and detected limits."""
    try:
        config = _load_settings(config_path, data_path, hours_back, plan, log_level)
        result = _run_analysis(config)
        token_limit = _token_limit(config, result)
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if as_json:
        data = result.to_dict()
        data["tokenLimit"] = token_limit
        console.print_json(data=data)
        sys.exit(EXIT_CODE_PASS)

    if not result.windows:
        console.print("\n[bold yellow]No usage data found[/]")
        sys.exit(EXIT_CODE_PASS)

    _display_windows(result)
    console.print(f"\nTotal: {result.total_tokens:,} tokens, {_format_currency(result.total_cost)}")
    console.print(f"Token limit ({config.plan.value}): {token_limit:,}")

    active = result.active_window
    if active is not None:
        for alert in evaluate_alerts(active, token_limit, config.plan.value):
            style = "red" if alert.severity.value == "critical" else "yellow"
            console.print(f"[{style}]{alert.severity.value.upper()}[/] {alert.message}")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def daily(
    data_path: Optional[str] = DataPathOption,
    hours_back: Optional[int] = HoursBackOption,
    config_path: Optional[str] = ConfigOption,
    log_level: Optional[str] = LogLevelOption,
    as_json: bool = JsonOption,
):
    """Show usage aggregated per day."""
    _report_periods("daily", config_path, data_path, hours_back, log_level, as_json)


@app.command()
def monthly(
    data_path: Optional[str] = DataPathOption,
    hours_back: Optional[int] = HoursBackOption,
    config_path: Optional[str] = ConfigOption,
    log_level: Optional[str] = LogLevelOption,
    as_json: bool = JsonOption,
):
    """Show usage aggregated per month."""
    _report_periods("monthly", config_path, data_path, hours_back, log_level, as_json)


@app.command()
def limit(
    data_path: Optional[str] = DataPathOption,
    hours_back: Optional[int] = HoursBackOption,
    config_path: Optional[str] = ConfigOption,
    plan: Optional[str] = PlanOption,
    log_level: Optional[str] = LogLevelOption,
    as_json: bool = JsonOption,
):
    """Show the token limit estimated from past sessions."""
    try:
        config = _load_settings(config_path, data_path, hours_back, plan, log_level)
        result = _run_analysis(config)
        token_limit = _token_limit(config, result)
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if as_json:
        console.print_json(data={"plan": config.plan.value, "tokenLimit": token_limit})
    else:
        console.print(f"Token limit ({config.plan.value}): {token_limit:,}")
    sys.exit(EXIT_CODE_PASS)


def _report_periods(
    view: str,
    config_path: Optional[str],
    data_path: Optional[str],
    hours_back: Optional[int],
    log_level: Optional[str],
    as_json: bool,
):
    try:
        config = _load_settings(config_path, data_path, hours_back, None, log_level)
        result = _run_analysis(config)
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    periods = aggregate_from_windows(result.windows, view)
    totals = calculate_totals(periods)

    if as_json:
        console.print_json(data={
            "view": view,
            "periods": [period.to_dict() for period in periods],
            "totals": totals.to_dict(),
        })
        sys.exit(EXIT_CODE_PASS)

    if not periods:
        console.print("\n[bold yellow]No usage data found[/]")
        sys.exit(EXIT_CODE_PASS)

    _display_periods(view, periods)
    console.print(f"\nTotal: {totals.total_tokens:,} tokens, {_format_currency(totals.cost)}")
    sys.exit(EXIT_CODE_PASS)


def _format_currency(amount: float) -> str:
    """Format currency with proper symbols and formatting."""
    return f"${abs(amount):,.2f}"


def _display_windows(result: AnalysisResult):
    table = Table(title="Session Windows")
    table.add_column("Window")
    table.add_column("Active")
    table.add_column("Tokens", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Models")
    table.add_column("Limits", justify="right")

    for window in result.windows:
        if window.is_gap:
            table.add_row(f"[dim]{window.id}[/]", "", "", "", "[dim]idle[/]", "")
            continue
        table.add_row(
            window.id,
            "[green]yes[/]" if window.is_active else "no",
            f"{window.total_tokens:,}",
            _format_currency(window.cost_usd),
            ", ".join(window.models),
            str(len(window.limit_signals)),
        )
    console.print(table)


def _display_periods(view: str, periods: List[AggregatedPeriod]):
    table = Table(title="Daily Usage" if view == "daily" else "Monthly Usage")
    table.add_column("Period")
    table.add_column("Input", justify="right")
    table.add_column("Output", justify="right")
    table.add_column("Cache Create", justify="right")
    table.add_column("Cache Read", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Models")

    for period in periods:
        stats = period.stats
        table.add_row(
            period.period_key,
            f"{stats.input_tokens:,}",
            f"{stats.output_tokens:,}",
            f"{stats.cache_creation_tokens:,}",
            f"{stats.cache_read_tokens:,}",
            _format_currency(stats.cost),
            ", ".join(sorted(period.models_used)),
        )
    console.print(table)


if __name__ == "__main__":
    app()
