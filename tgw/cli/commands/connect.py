"""Connect and disconnect Tumblr accounts."""

import logging

import typer
from rich.console import Console

from tgw.cli.utils import USER_ID_OPTION, open_services
from tgw.exceptions import APIError, ConfigurationError, NetworkError

console = Console()
logger = logging.getLogger(__name__)


def connect_account(user_id: USER_ID_OPTION) -> None:
    """Authorize a Tumblr account and store its credential encrypted.

    Prints the authorization URL, then asks for the verifier Tumblr shows
    (or appends to the callback URL) after approval.
    """
    with open_services() as services:
        try:
            signer = services.require_signer()
            with console.status("[bold blue]Requesting authorization token...[/bold blue]", spinner="dots"):
                request_token = signer.begin_authorization()
        except (ConfigurationError, APIError, NetworkError) as e:
            console.print(f"[red]✗ Could not start authorization:[/red] {e.message}")
            raise typer.Exit(1) from e

        console.print("Open this URL in your browser and approve access:")
        console.print(f"[bold cyan]{request_token.authorize_url}[/bold cyan]")
        verifier = typer.prompt("oauth_verifier").strip()

        try:
            with console.status("[bold blue]Exchanging verifier...[/bold blue]", spinner="dots"):
                result = signer.complete_authorization(request_token.token, verifier)
        except (APIError, NetworkError) as e:
            console.print(f"[red]✗ Authorization failed:[/red] {e.message}")
            raise typer.Exit(1) from e

        services.credentials.save_credential(user_id, result.to_credential(), result.resolved_identity)
        console.print(f"[green]✓ Connected as[/green] [bold]{result.resolved_identity}[/bold]")


def disconnect_account(user_id: USER_ID_OPTION) -> None:
    """Delete a user's stored Tumblr credential."""
    with open_services() as services:
        if services.credentials.delete_credential(user_id):
            console.print(f"[green]✓ Disconnected user {user_id}[/green]")
        else:
            console.print(f"[yellow]No Tumblr account connected for user {user_id}[/yellow]")
