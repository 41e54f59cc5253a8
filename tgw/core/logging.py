"""Logging setup shared by the CLI and the proxy server."""

import logging

from rich.console import Console
from rich.logging import RichHandler

from tgw.core.constants import OAuthConstants


def configure_logging(level: str | int = "INFO") -> None:
    """Route the root logger through a rich handler on stderr."""
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
        markup=False,
    )
    logging.basicConfig(
        level=level.upper() if isinstance(level, str) else level,
        format="%(name)s: %(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def mask_token(token: str | None) -> str:
    """Show only the leading characters of a token."""
    if not token:
        return "<none>"
    visible = OAuthConstants.TOKEN_MASK_LENGTH
    if len(token) <= visible:
        return "*" * len(token)
    return f"{token[:visible]}…"
