"""Outbound request description."""

from typing import Any

from pydantic import BaseModel, Field


class RequestSpec(BaseModel):
    """Everything the scheduler needs to issue one upstream call."""

    method: str = "GET"
    url: str
    params: dict[str, Any] = Field(default_factory=dict)
    headers: dict[str, str] = Field(default_factory=dict)
    data: dict[str, Any] | None = None

    @property
    def label(self) -> str:
        """Method and URL without query, safe to log."""
        return f"{self.method.upper()} {self.url.split('?')[0]}"
