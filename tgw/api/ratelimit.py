"""Upstream quota tracking from response headers."""

import logging
import threading
import time
from collections.abc import Mapping
from datetime import datetime

from tgw.core.constants import RATE_LIMIT_HEADER_CANDIDATES, APIConstants, RateLimitThresholds
from tgw.models.ratelimit import RateLimitState

logger = logging.getLogger(__name__)


def _first_header(headers: Mapping[str, str], candidates: tuple[str, ...]) -> int | None:
    """Return the first candidate header that parses as an integer."""
    lowered = {str(k).lower(): v for k, v in headers.items()}
    for name in candidates:
        raw = lowered.get(name)
        if raw is None or str(raw).strip() == "":
            continue
        try:
            return int(str(raw).strip())
        except ValueError:
            logger.debug(f"Ignoring unparsable rate limit header {name}={raw!r}")
    return None


class RateLimitTracker:
    """Process-wide record of the upstream's daily quota.

    State only changes through :meth:`ingest`. The most recent observation is
    trusted even when ``remaining`` goes up, since the upstream window resets
    on its own schedule.
    """

    def __init__(self, default_limit: int = APIConstants.DEFAULT_DAILY_LIMIT) -> None:
        self._lock = threading.Lock()
        self._default_limit = int(default_limit)
        self._state = RateLimitState(limit=self._default_limit)

    def ingest(self, headers: Mapping[str, str]) -> None:
        """Update state from whichever rate limit headers are present.

        Args:
            headers: Response headers (any mapping; lookup is case-insensitive)

        """
        try:
            limit = _first_header(headers, RATE_LIMIT_HEADER_CANDIDATES["limit"])
            remaining = _first_header(headers, RATE_LIMIT_HEADER_CANDIDATES["remaining"])
            reset = _first_header(headers, RATE_LIMIT_HEADER_CANDIDATES["reset"])
        except Exception as e:
            logger.error(f"Failed to read rate limit headers: {e}")
            return

        if limit is None and remaining is None and reset is None:
            return

        with self._lock:
            updates: dict[str, int | float] = {"last_updated_at": time.time()}
            if limit is not None:
                updates["limit"] = limit
            if remaining is not None:
                updates["remaining"] = remaining
            if reset is not None:
                updates["reset_at"] = reset
            self._state = self._state.model_copy(update=updates)
            state = self._state

        if remaining is not None:
            self._warn_if_low(remaining)

        reset_label = datetime.fromtimestamp(state.reset_at).strftime("%H:%M:%S") if state.reset_at else "unknown"
        used = state.used if state.used is not None else "?"
        logger.info(
            f"Upstream quota: {used}/{state.limit} used, {state.remaining} remaining (resets: {reset_label})"
        )

    @staticmethod
    def _warn_if_low(remaining: int) -> None:
        if remaining == RateLimitThresholds.EXHAUSTED:
            logger.critical("Rate limit reached: 0 API calls remaining until reset")
        elif remaining <= RateLimitThresholds.CRITICAL:
            logger.critical(f"Only {remaining} API calls left, stop making requests")
        elif remaining <= RateLimitThresholds.WARNING:
            logger.warning(f"Only {remaining} API calls remaining, consider stopping soon")
        elif remaining <= RateLimitThresholds.NOTICE:
            logger.info(f"{remaining} API calls remaining")

    def current_state(self) -> RateLimitState:
        """Snapshot of the latest known quota."""
        with self._lock:
            return self._state.model_copy()

    def should_throttle(self) -> bool:
        """Whether optional background calls should be skipped.

        False while ``remaining`` is unknown.
        """
        state = self.current_state()
        return state.remaining is not None and state.remaining <= RateLimitThresholds.THROTTLE

    def response_headers(self) -> dict[str, str]:
        """``X-RateLimit-*`` headers for the proxy surface, empty while unknown."""
        state = self.current_state()
        if state.remaining is None:
            return {}
        headers = {
            "X-RateLimit-Remaining": str(state.remaining),
            "X-RateLimit-Limit": str(state.limit),
        }
        if state.reset_at is not None:
            headers["X-RateLimit-Reset"] = str(state.reset_at)
        return headers

    def reset(self) -> None:
        """Forget all observations and return to the unknown state."""
        with self._lock:
            self._state = RateLimitState(limit=self._default_limit)
        logger.info("Rate limit state reset")
