"""Blog info command implementation."""

from typing import Annotated, Any

import typer
from rich.console import Console
from rich.table import Table

from tgw.cli.utils import (
    OPTIONAL_USER_ID_OPTION,
    OUTPUT_FORMAT_OPTION,
    OUTPUT_PATH_OPTION,
    OutputFormat,
    handle_csv_output,
    handle_json_output,
    load_user_credential,
    open_services,
)
from tgw.exceptions import TGWError

console = Console()

BLOG_FIELDS = ("name", "title", "url", "posts", "likes", "updated", "description")


def _display_table(blog: dict[str, Any]) -> None:
    table = Table(title=f"Blog: {blog.get('name', 'unknown')}", show_header=False)
    table.add_column("Field", style="bold cyan")
    table.add_column("Value")
    for field in BLOG_FIELDS:
        value = blog.get(field)
        if value is not None:
            table.add_row(field, str(value))
    console.print(table)


def blog_info(
    blog: Annotated[str, typer.Argument(help="Blog name or hostname")],
    user_id: OPTIONAL_USER_ID_OPTION = None,
    output_format: OUTPUT_FORMAT_OPTION = OutputFormat.TABLE,
    output: OUTPUT_PATH_OPTION = None,
) -> None:
    """Show a blog's metadata."""
    with open_services() as services:
        credential = load_user_credential(services, user_id)
        try:
            data = services.gateway.get_blog_info(blog, credential)
        except TGWError as e:
            console.print(f"[red]✗ {e.message}[/red]")
            raise typer.Exit(1) from e

    info = data.get("response", {}).get("blog", {})
    if output_format == OutputFormat.JSON:
        handle_json_output(info, output)
    elif output_format == OutputFormat.CSV:
        handle_csv_output([{field: info.get(field) for field in BLOG_FIELDS}], output)
    else:
        _display_table(info)
