"""CLI utilities module."""

from tgw.cli.utils.options import (
    OPTIONAL_USER_ID_OPTION,
    OUTPUT_FORMAT_OPTION,
    OUTPUT_PATH_OPTION,
    PAGE_SIZE_OPTION,
    USER_ID_OPTION,
    OutputFormat,
)
from tgw.cli.utils.output import handle_csv_output, handle_json_output
from tgw.cli.utils.services import load_user_credential, open_services

__all__ = [
    "OPTIONAL_USER_ID_OPTION",
    "OUTPUT_FORMAT_OPTION",
    "OUTPUT_PATH_OPTION",
    "PAGE_SIZE_OPTION",
    "USER_ID_OPTION",
    "OutputFormat",
    "handle_csv_output",
    "handle_json_output",
    "load_user_credential",
    "open_services",
]
