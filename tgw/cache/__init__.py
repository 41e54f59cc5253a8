"""Cache and on-disk store module for the Tumblr gateway."""

from tgw.cache.base import BaseCacheManager, SimpleCacheManager
from tgw.cache.credentials import CredentialStore
from tgw.cache.response import ResponseCache, make_key
from tgw.cache.usage import DailyCallCounter

__all__ = [
    "BaseCacheManager",
    "CredentialStore",
    "DailyCallCounter",
    "ResponseCache",
    "SimpleCacheManager",
    "make_key",
]
