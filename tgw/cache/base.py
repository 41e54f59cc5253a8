"""Base class for on-disk stores backed by DiskCache."""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Generic, TypeVar

from diskcache import Cache

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BaseCacheManager(ABC, Generic[T]):
    """Abstract base class for disk-backed stores."""

    def __init__(self, data_dir: Path, cache_subdir: str) -> None:
        """Initialize the store.

        Args:
            data_dir: Root directory for gateway state
            cache_subdir: Subdirectory holding this store
        """
        cache_path = Path(data_dir) / cache_subdir
        cache_path.mkdir(parents=True, exist_ok=True)

        self.cache = Cache(str(cache_path))
        self.cache_path = cache_path

        logger.debug(f"Initialized store at {cache_path}")

    def close(self) -> None:
        """Close the underlying DiskCache handles."""
        self.cache.close()

    def clear_cache(self) -> None:
        """Clear all stored data."""
        try:
            self.cache.clear()
            logger.info(f"Cleared store at {self.cache_path}")
        except Exception as e:
            logger.error(f"Error clearing store: {e}")

    def get_cache_size(self) -> int:
        """Get number of items in the store.

        Returns:
            Number of stored items
        """
        return len(self.cache)

    def delete_item(self, key: str) -> bool:
        """Delete a specific item.

        Args:
            key: Key to delete

        Returns:
            True if item was deleted, False if not found
        """
        try:
            return bool(self.cache.delete(key))
        except Exception as e:
            logger.error(f"Error deleting store item {key}: {e}")
            return False

    def exists(self, key: str) -> bool:
        """Check if a key exists."""
        return key in self.cache

    @abstractmethod
    def save(self, key: str, data: T) -> None:
        """Save data under a key."""

    @abstractmethod
    def load(self, key: str) -> T | None:
        """Load data for a key, None if absent."""


class SimpleCacheManager(BaseCacheManager[Any]):
    """Simple store for plain key-value data."""

    def save(self, key: str, data: Any, expire: float | None = None) -> None:
        """Save data with optional expiration.

        Args:
            key: Store key
            data: Data to store
            expire: Optional expiration time in seconds
        """
        self.cache.set(key, data, expire=expire)
        logger.debug(f"Stored data with key: {key}")

    def load(self, key: str) -> Any | None:
        """Load data for a key.

        Args:
            key: Store key

        Returns:
            Stored data or None if not found
        """
        try:
            return self.cache.get(key)
        except Exception as e:
            logger.debug(f"Error loading store key {key}: {e}")
            return None
