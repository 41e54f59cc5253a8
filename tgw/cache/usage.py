"""Local daily upstream call counter."""

import logging
from datetime import date
from pathlib import Path

from tgw.cache.base import SimpleCacheManager

logger = logging.getLogger(__name__)

# Day records are kept for a month
RETENTION_SECONDS = 31 * 24 * 3600


class DailyCallCounter(SimpleCacheManager):
    """Counts upstream calls per calendar date.

    Local bookkeeping only, independent of the quota the upstream reports.
    """

    def __init__(self, data_dir: Path) -> None:
        """Initialize the counter store."""
        super().__init__(data_dir, cache_subdir="usage")

    @staticmethod
    def _key(day: date | None = None) -> str:
        return (day or date.today()).isoformat()

    def increment(self, day: date | None = None) -> int:
        """Record one call and return the day's new total."""
        key = self._key(day)
        try:
            with self.cache.transact():
                count = int(self.cache.get(key, 0)) + 1
                self.cache.set(key, count, expire=RETENTION_SECONDS)
        except Exception as e:
            logger.error(f"Error updating call counter: {e}")
            return 0

        logger.debug(f"Internal counter: {count} calls tracked on {key}")
        return count

    def get_count(self, day: date | None = None) -> int:
        """Calls recorded for a day (today by default)."""
        value = self.load(self._key(day))
        return int(value) if value else 0
