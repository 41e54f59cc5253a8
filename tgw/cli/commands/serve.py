"""Run the HTTP proxy server."""

from typing import Annotated

import typer
import uvicorn
from rich.console import Console

from tgw.cli.utils import open_services
from tgw.server.app import create_app

console = Console()


def serve(
    host: Annotated[str, typer.Option("--host", help="Interface to bind")] = "127.0.0.1",
    port: Annotated[int, typer.Option("--port", "-p", help="Port to listen on")] = 8000,
) -> None:
    """Serve the gateway's HTTP surface with uvicorn."""
    services = open_services()
    try:
        app = create_app(services)
        console.print(f"[green]✓ Gateway listening on[/green] http://{host}:{port}")
        uvicorn.run(app, host=host, port=port, log_config=None)
    finally:
        services.close()
