"""
CLI interface for the usage dashboard.

Provides command-line access to refresh cycles, the cached snapshot and the
HTTP API.
"""

import logging
import sys
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from usage_dashboard.config.loader import DashboardConfig, load_dashboard_config
from usage_dashboard.core.refresh import RefreshOrchestrator, RefreshScheduler, SnapshotCell
from usage_dashboard.core.tips import TipSeverity
from usage_dashboard.server.api import create_server
from usage_dashboard.storage.cache import CacheStore, DashboardSnapshot

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

_SEVERITY_STYLE = {
    TipSeverity.INFO: "cyan",
    TipSeverity.SUCCESS: "green",
    TipSeverity.WARNING: "yellow",
    TipSeverity.DANGER: "red",
}


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a YAML configuration file"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging"
    )
):
    """Usage dashboard CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    ctx.obj = {"config_path": config}
    if ctx.invoked_subcommand is None:
        console.print("Usage Dashboard - Use --help to see available commands")


def _load_config(ctx: typer.Context) -> DashboardConfig:
    path = (ctx.obj or {}).get("config_path")
    try:
        return load_dashboard_config(path)
    except (FileNotFoundError, yaml.YAMLError, ValueError) as e:
        console.print(f"[red]Error loading configuration:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


def _format_currency(amount: float) -> str:
    """Format currency with four decimals for small per-call amounts."""
    return f"${amount:,.4f}"


def _format_tokens(n: int) -> str:
    if n >= 1_000_000:
        return f"{n / 1_000_000:.2f}M"
    if n >= 1_000:
        return f"{n / 1_000:.1f}k"
    return str(n)


def _display_snapshot(snapshot: DashboardSnapshot, top: int = 10) -> None:
    """Display summary, model table and tips."""
    summary = snapshot.aggregate.summary
    updated = snapshot.updated_at.strftime("%Y-%m-%d %H:%M:%S") if snapshot.updated_at else "never"

    console.print("\n[bold]Usage Summary[/bold]")
    console.print("-" * 40)
    console.print(f"Total cost: {_format_currency(summary.total_cost)}")
    console.print(f"Total calls: {summary.total_calls:,}")
    console.print(f"Total tokens: {_format_tokens(summary.total_tokens)}")
    console.print(f"Today: {_format_currency(summary.today_cost)}  "
                  f"This week: {_format_currency(summary.week_cost)}  "
                  f"This month: {_format_currency(summary.month_cost)}")
    console.print(f"Updated: {updated}")

    if snapshot.aggregate.models:
        table = Table(title="Models")
        table.add_column("Model")
        table.add_column("Calls", justify="right")
        table.add_column("Tokens", justify="right")
        table.add_column("Cost", justify="right")
        for bucket in snapshot.aggregate.models[:top]:
            table.add_row(
                bucket.key,
                f"{bucket.calls:,}",
                _format_tokens(bucket.tokens),
                _format_currency(bucket.cost),
            )
        console.print(table)

    _display_tips(snapshot)


def _display_tips(snapshot: DashboardSnapshot) -> None:
    if not snapshot.tips:
        return
    console.print("\n[bold]Tips[/bold]")
    for tip in snapshot.tips:
        style = _SEVERITY_STYLE[tip.severity]
        console.print(f"[{style}]•[/] {tip.text}")


@app.command()
def refresh(ctx: typer.Context):
    """Scan session logs, update the cache and print the result."""
    config = _load_config(ctx)
    orchestrator = RefreshOrchestrator(config)
    snapshot = orchestrator.refresh()
    if snapshot is None:
        console.print("[yellow]A refresh is already in progress[/]")
        sys.exit(EXIT_CODE_FAIL)
    _display_snapshot(snapshot)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def show(ctx: typer.Context):
    """Print the cached snapshot without scanning."""
    config = _load_config(ctx)
    snapshot = CacheStore(config.cache_path).cached_result()
    if snapshot is None:
        console.print("\n[bold yellow]No cached usage data found[/]")
        console.print("Run `usage-dashboard refresh` to scan session logs\n")
        sys.exit(EXIT_CODE_FAIL)
    _display_snapshot(snapshot)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def tips(ctx: typer.Context):
    """Print tips from the cached snapshot."""
    config = _load_config(ctx)
    snapshot = CacheStore(config.cache_path).cached_result()
    if snapshot is None:
        console.print("[bold yellow]No cached usage data found[/]")
        sys.exit(EXIT_CODE_FAIL)
    _display_tips(snapshot)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def serve(
    ctx: typer.Context,
    port: Optional[int] = typer.Option(
        None,
        "--port",
        "-p",
        help="Port to listen on (overrides configuration)"
    )
):
    """Serve the dashboard API and refresh it periodically."""
    config = _load_config(ctx)
    cell = SnapshotCell()
    orchestrator = RefreshOrchestrator(config, cell=cell)
    orchestrator.prime()

    server = create_server(cell, config.host, port if port is not None else config.port)
    host, bound_port = server.server_address[:2]
    console.print(f"[green]✓[/] Listening on http://{host}:{bound_port}")

    # Listen first, then collect in the background
    scheduler = RefreshScheduler(orchestrator, config.refresh_interval)
    scheduler.start()
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        console.print("Shutting down")
    finally:
        scheduler.stop(timeout=5)
        server.server_close()


if __name__ == "__main__":
    app()
