"""Rate limit and usage models."""

from typing import Literal

from pydantic import BaseModel

from tgw.core.constants import APIConstants


class RateLimitState(BaseModel):
    """Latest quota information observed in upstream response headers.

    ``None`` means unknown: no header has reported the value yet.
    """

    limit: int = int(APIConstants.DEFAULT_DAILY_LIMIT)
    remaining: int | None = None
    reset_at: int | None = None  # Unix timestamp
    last_updated_at: float | None = None

    @property
    def is_known(self) -> bool:
        """Whether ``remaining`` has been observed."""
        return self.remaining is not None

    @property
    def used(self) -> int | None:
        """Calls consumed in the current window, if known."""
        if self.remaining is None:
            return None
        return self.limit - self.remaining

    @property
    def percentage_used(self) -> float | None:
        """Share of the window consumed, rounded to one decimal."""
        if self.used is None or self.limit <= 0:
            return None
        return round(self.used / self.limit * 100, 1)


class ApiUsageStats(BaseModel):
    """Daily usage summary combining upstream headers and the local counter."""

    date: str
    count: int
    remaining: int | None = None
    limit: int
    percentage: float = 0.0
    reset_at: int | None = None
    source: Literal["upstream", "internal"] = "internal"
    last_updated_at: float | None = None
    internal_count: int = 0
