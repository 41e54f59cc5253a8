"""Main CLI entry point for the Tumblr gateway."""

from typing import Annotated

import typer

from tgw.cli.commands.blog import blog_info
from tgw.cli.commands.connect import connect_account, disconnect_account
from tgw.cli.commands.likes import list_likes
from tgw.cli.commands.serve import serve
from tgw.cli.commands.stats import show_stats
from tgw.config import load_config
from tgw.core.logging import configure_logging

app = typer.Typer(
    name="tgw",
    help="Tumblr Gateway - rate-limited, OAuth-signed access to the Tumblr API",
    add_completion=True,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


@app.callback()
def callback(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
) -> None:
    """
    Tumblr Gateway CLI
    """
    configure_logging("DEBUG" if verbose else load_config().log_level)


app.command("connect", help="Authorize a Tumblr account for a local user")(connect_account)
app.command("disconnect", help="Remove a user's stored Tumblr credential")(disconnect_account)
app.command("blog", help="Show blog info")(blog_info)
app.command("likes", help="List a blog's liked posts")(list_likes)
app.command("stats", help="Show rate limit state and today's call count")(show_stats)
app.command("serve", help="Run the HTTP proxy server")(serve)


if __name__ == "__main__":
    app()
