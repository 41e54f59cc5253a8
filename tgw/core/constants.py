"""
Constants and configuration values for the Tumblr gateway.
"""

from enum import IntEnum, StrEnum

# API Base URL
API_BASE_URL = "https://api.tumblr.com/v2"

# OAuth 1.0a endpoints
OAUTH_REQUEST_TOKEN_URL = "https://www.tumblr.com/oauth/request_token"
OAUTH_ACCESS_TOKEN_URL = "https://www.tumblr.com/oauth/access_token"
OAUTH_AUTHORIZE_URL = "https://www.tumblr.com/oauth/authorize"
DEFAULT_CALLBACK_URL = "http://localhost:5173/auth/tumblr/callback"

# Identity recorded when the account lookup after authorization fails
UNKNOWN_IDENTITY = "unknown"

# Version
PACKAGE_VERSION = "0.1.0"


class APIConstants(IntEnum):
    """API-related limits and constants."""

    DEFAULT_PAGE_SIZE = 20
    MIN_PAGE_SIZE = 1
    MAX_PAGE_SIZE = 20
    OFFSET_CEILING = 1000
    REQUEST_TIMEOUT = 30
    DEFAULT_DAILY_LIMIT = 5000
    MAX_LIKES_WALK = 10000
    MAX_LIKES_SESSIONS = 1000


class SchedulerConstants(IntEnum):
    """Outbound request pacing."""

    REQUEST_DELAY_MS = 300


class CacheTTL(IntEnum):
    """Response cache lifetimes in seconds."""

    DEFAULT = 300
    BLOG_INFO = 600
    POSTS = 120
    SWEEP_INTERVAL = 600
    LIKES_SESSION_IDLE = 1800


class RateLimitThresholds(IntEnum):
    """Remaining-quota levels that trigger advisory logging."""

    NOTICE = 100
    WARNING = 50
    CRITICAL = 10
    EXHAUSTED = 0
    THROTTLE = 10


class CryptoConstants(IntEnum):
    """Key derivation and AES-GCM parameters."""

    SALT_LENGTH = 64
    IV_LENGTH = 16
    TAG_LENGTH = 16
    KEY_LENGTH = 32
    PBKDF2_ITERATIONS = 100_000
    MIN_SECRET_LENGTH = 32
    SECURE_TOKEN_BYTES = 32


class OAuthConstants(IntEnum):
    """OAuth flow limits."""

    REQUEST_TOKEN_TTL = 3600
    NONCE_BYTES = 16
    TOKEN_MASK_LENGTH = 6


class QuotaRetryConstants(IntEnum):
    """Caller-side retry for long likes walks that hit the quota."""

    MAX_TRIES = 3
    DEFAULT_WAIT = 60  # seconds, when the upstream sends no Retry-After
    MAX_WAIT = 300


class ProgressBarConstants(IntEnum):
    """Progress bar update intervals."""

    MIN_UPDATE_INTERVAL = 100  # milliseconds
    MAX_UPDATE_INTERVAL = 300  # milliseconds


class FormattingConstants(IntEnum):
    """Formatting constants."""

    JSON_INDENT = 2


class NotesMode(StrEnum):
    """Modes accepted by the notes endpoint."""

    ALL = "all"
    LIKES = "likes"
    CONVERSATION = "conversation"
    ROLLUP = "rollup"
    REBLOGS_WITH_TAGS = "reblogs_with_tags"


# Candidate header names per rate-limit field, tried in order.
RATE_LIMIT_HEADER_CANDIDATES: dict[str, tuple[str, ...]] = {
    "limit": ("x-ratelimit-limit", "x_ratelimit_api_day_limit", "x-ratelimit-api-day-limit"),
    "remaining": ("x-ratelimit-remaining", "x_ratelimit_api_day_remaining", "x-ratelimit-api-day-remaining"),
    "reset": ("x-ratelimit-reset", "x_ratelimit_api_day_reset", "x-ratelimit-api-day-reset"),
}
