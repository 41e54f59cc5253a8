"""Cache-related data models."""

from typing import Any

from pydantic import BaseModel, Field


class CacheEntry(BaseModel):
    """A single response cache entry."""

    key: str
    value: Any
    stored_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        """Check expiry; an entry is still valid at exactly ``expires_at``."""
        return now > self.expires_at


class CacheEntryInfo(BaseModel):
    """Admin view of one cache entry."""

    key: str
    age_seconds: int
    ttl_seconds: int
    size_bytes: int


class CacheStats(BaseModel):
    """Admin view of the response cache."""

    total_entries: int = 0
    total_size_bytes: int = 0
    entries: list[CacheEntryInfo] = Field(default_factory=list)


class StoredCredential(BaseModel):
    """On-disk record for one user's OAuth credential pair (encrypted)."""

    encrypted_token: str
    encrypted_token_secret: str
    identity: str | None = None
    connected_at: float
