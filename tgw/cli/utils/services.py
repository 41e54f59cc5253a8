"""Service construction helpers for CLI commands."""

import typer
from rich.console import Console

from tgw.config import load_config
from tgw.exceptions import ConfigurationError, CryptoIntegrityError
from tgw.models.oauth import OAuthCredential
from tgw.services.gateway import GatewayServices

console = Console()


def open_services() -> GatewayServices:
    """Build gateway services from the environment.

    Exits with code 1 when configuration is missing or invalid.

    Note: The caller owns the returned services; use them in a ``with`` block.
    """
    try:
        return GatewayServices.from_config(load_config())
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e.message}")
        console.print("[dim]Set TGW_API_KEY and TGW_ENCRYPTION_SECRET in the environment or a .env file[/dim]")
        raise typer.Exit(1) from e


def load_user_credential(services: GatewayServices, user_id: str | None, required: bool = False) -> OAuthCredential | None:
    """Stored credential for a user, exiting when it is required but unusable.

    Args:
        services: Open gateway services
        user_id: Local user id, or None for unsigned access
        required: Whether a missing credential is fatal
    """
    if not user_id:
        return None

    try:
        credential = services.credentials.load_credential(user_id)
    except CryptoIntegrityError as e:
        console.print(f"[red]Stored credential for {user_id} is corrupted and was removed.[/red]")
        console.print(f"Run [bold]tgw connect --user-id {user_id}[/bold] to authorize again.")
        raise typer.Exit(1) from e

    if credential is None and required:
        console.print(f"[red]No Tumblr account connected for user {user_id}.[/red]")
        console.print(f"Run [bold]tgw connect --user-id {user_id}[/bold] first.")
        raise typer.Exit(1)
    return credential
