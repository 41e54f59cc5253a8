"""Shared CLI options and enums for commands."""

from enum import StrEnum
from pathlib import Path
from typing import Annotated

import typer


class OutputFormat(StrEnum):
    """Supported output formats across commands."""

    TABLE = "table"
    JSON = "json"
    CSV = "csv"


# Common typer options
USER_ID_OPTION = Annotated[
    str,
    typer.Option(
        "--user-id",
        "-u",
        help="Local user the Tumblr credential is stored under",
    ),
]

OPTIONAL_USER_ID_OPTION = Annotated[
    str | None,
    typer.Option(
        "--user-id",
        "-u",
        help="Sign the request with this user's stored credential",
    ),
]

OUTPUT_PATH_OPTION = Annotated[
    Path | None,
    typer.Option(
        "--output",
        "-o",
        help="Output file path (prints to stdout when omitted)",
    ),
]

OUTPUT_FORMAT_OPTION = Annotated[
    OutputFormat,
    typer.Option(
        "--format",
        "-f",
        help="Output format",
        case_sensitive=False,
    ),
]

PAGE_SIZE_OPTION = Annotated[
    int,
    typer.Option(
        "--page-size",
        "-n",
        min=1,
        max=20,
        help="Liked posts per page (1-20)",
    ),
]
