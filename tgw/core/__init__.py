"""Core functionality module."""

from tgw.core.constants import FormattingConstants, NotesMode
from tgw.core.logging import configure_logging, mask_token

__all__ = [
    "FormattingConstants",
    "NotesMode",
    "configure_logging",
    "mask_token",
]
