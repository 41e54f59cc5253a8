"""API usage stats command implementation."""

from datetime import datetime

import typer
from rich.console import Console
from rich.table import Table

from tgw.cli.utils import (
    OPTIONAL_USER_ID_OPTION,
    OUTPUT_FORMAT_OPTION,
    OutputFormat,
    handle_json_output,
    load_user_credential,
    open_services,
)
from tgw.exceptions import TGWError
from tgw.models.ratelimit import ApiUsageStats

console = Console()


def _display_table(stats: ApiUsageStats, throttled: bool) -> None:
    table = Table(title=f"API usage for {stats.date}", show_header=False)
    table.add_column("Metric", style="bold cyan")
    table.add_column("Value")

    table.add_row("Source", stats.source)
    table.add_row("Calls used", f"{stats.count} / {stats.limit}")
    table.add_row("Remaining", str(stats.remaining) if stats.remaining is not None else "unknown")
    table.add_row("Used", f"{stats.percentage:.1f}%")
    if stats.reset_at is not None:
        table.add_row("Resets at", datetime.fromtimestamp(stats.reset_at).strftime("%Y-%m-%d %H:%M:%S"))
    table.add_row("Calls made by this gateway today", str(stats.internal_count))
    table.add_row("Throttling advised", "[red]yes[/red]" if throttled else "[green]no[/green]")
    console.print(table)


def show_stats(
    user_id: OPTIONAL_USER_ID_OPTION = None,
    output_format: OUTPUT_FORMAT_OPTION = OutputFormat.TABLE,
) -> None:
    """Show today's API usage.

    Quota headers are only known after an upstream call, so pass --user-id to
    make one signed account lookup first. Without it the local call counter
    is shown.
    """
    with open_services() as services:
        credential = load_user_credential(services, user_id, required=bool(user_id))
        if credential is not None:
            try:
                with console.status("[bold blue]Checking quota...[/bold blue]", spinner="dots"):
                    services.gateway.get_user_info(credential)
            except TGWError as e:
                console.print(f"[yellow]⚠ Quota check failed: {e.message}[/yellow]")

        stats = services.gateway.usage_stats()
        throttled = services.tracker.should_throttle()

    if output_format == OutputFormat.JSON:
        handle_json_output({**stats.model_dump(), "should_throttle": throttled}, None)
    elif output_format == OutputFormat.CSV:
        console.print("[red]CSV output is not supported for stats[/red]")
        raise typer.Exit(1)
    else:
        _display_table(stats, throttled)
