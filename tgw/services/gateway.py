"""Process-wide gateway singletons, built once and closed at exit."""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from tgw.api.client import TumblrGateway
from tgw.api.pagination import LikesPaginator
from tgw.api.ratelimit import RateLimitTracker
from tgw.api.scheduler import RequestScheduler
from tgw.auth.cipher import TokenCipher
from tgw.auth.oauth import OAuthSigner
from tgw.cache.credentials import CredentialStore
from tgw.cache.response import ResponseCache
from tgw.cache.usage import DailyCallCounter
from tgw.core.constants import APIConstants, CacheTTL
from tgw.config import Config, validate_startup
from tgw.exceptions import ConfigurationError
from tgw.models.oauth import OAuthCredential

logger = logging.getLogger(__name__)

SessionKey = tuple[str, str, int]


@dataclass
class GatewayServices:
    """Container for the scheduler, cache, tracker and stores."""

    config: Config
    scheduler: RequestScheduler
    cache: ResponseCache
    tracker: RateLimitTracker
    counter: DailyCallCounter
    credentials: CredentialStore
    gateway: TumblrGateway
    signer: OAuthSigner | None = None
    sessions: dict[SessionKey, LikesPaginator] = field(default_factory=dict)
    session_idle_ttl: float = CacheTTL.LIKES_SESSION_IDLE
    max_sessions: int = APIConstants.MAX_LIKES_SESSIONS
    clock: Callable[[], float] = time.monotonic
    _last_used: dict[SessionKey, float] = field(default_factory=dict, init=False, repr=False)
    _sessions_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    @classmethod
    def from_config(cls, config: Config) -> "GatewayServices":
        """Validate configuration and construct every singleton.

        Raises:
            ConfigurationError: If required configuration is missing

        """
        validate_startup(config)
        api_key = config.api_key.get_secret_value()  # type: ignore[union-attr]

        scheduler = RequestScheduler(
            min_delay=config.request_delay_ms / 1000,
            timeout=config.request_timeout,
        )
        cache = ResponseCache(
            default_ttl=config.cache_ttl_seconds,
            sweep_interval=config.cache_sweep_interval_seconds,
        )
        cache.start_sweeper()
        tracker = RateLimitTracker()
        counter = DailyCallCounter(config.data_dir)
        cipher = TokenCipher(config.encryption_secret.get_secret_value())  # type: ignore[union-attr]
        credentials = CredentialStore(config.data_dir, cipher)

        signer = None
        if config.consumer_secret and config.consumer_secret.get_secret_value():
            signer = OAuthSigner(
                api_key,
                config.consumer_secret.get_secret_value(),
                scheduler=scheduler,
                callback_url=config.callback_url,
                api_base_url=config.api_base_url,
                tracker=tracker,
            )
        else:
            logger.warning("TGW_CONSUMER_SECRET is not set; OAuth routes are disabled")

        gateway = TumblrGateway(
            api_key,
            scheduler=scheduler,
            cache=cache,
            tracker=tracker,
            signer=signer,
            counter=counter,
            api_base_url=config.api_base_url,
        )
        logger.info(f"Gateway services started (data dir: {config.data_dir})")
        return cls(
            config=config,
            scheduler=scheduler,
            cache=cache,
            tracker=tracker,
            counter=counter,
            credentials=credentials,
            gateway=gateway,
            signer=signer,
            session_idle_ttl=config.likes_session_idle_seconds,
        )

    def require_signer(self) -> OAuthSigner:
        """The OAuth signer, or ConfigurationError when OAuth is not configured."""
        if self.signer is None:
            raise ConfigurationError("OAuth is not configured: TGW_CONSUMER_SECRET is not set")
        return self.signer

    def _forget_session(self, key: SessionKey) -> None:
        self.sessions.pop(key, None)
        self._last_used.pop(key, None)

    def _evict_sessions(self, now: float) -> None:
        idle = [key for key, used in self._last_used.items() if now - used > self.session_idle_ttl]
        for key in idle:
            self._forget_session(key)
        if idle:
            logger.debug(f"Dropped {len(idle)} idle likes sessions")

        while self.sessions and len(self.sessions) >= self.max_sessions:
            oldest = min(self._last_used, key=self._last_used.__getitem__)
            self._forget_session(oldest)
            logger.debug(f"Dropped least recently used likes session {oldest}")

    def paginator(
        self, user_id: str, blog: str, page_size: int, credential: OAuthCredential | None
    ) -> LikesPaginator:
        """Likes session for (user, blog, page_size), created on first use.

        Sessions idle for longer than ``session_idle_ttl`` are discarded, and
        the least recently used one makes room once ``max_sessions`` is reached.
        """
        key = (user_id, blog.lower(), page_size)
        with self._sessions_lock:
            now = self.clock()
            paginator = self.sessions.get(key)
            if paginator is not None and now - self._last_used.get(key, now) > self.session_idle_ttl:
                paginator = None
            if paginator is None:
                self._evict_sessions(now)
                paginator = LikesPaginator(
                    self.gateway,
                    blog,
                    credential,
                    page_size=page_size,
                    cache_offset_horizon=self.config.likes_cache_offset_horizon,
                )
                self.sessions[key] = paginator
            else:
                paginator.credential = credential
            self._last_used[key] = now
        return paginator

    def drop_sessions(self, user_id: str) -> int:
        """Forget every likes session belonging to a user."""
        with self._sessions_lock:
            keys = [key for key in self.sessions if key[0] == user_id]
            for key in keys:
                self._forget_session(key)
        return len(keys)

    def close(self) -> None:
        """Stop background threads and close on-disk stores."""
        self.cache.shutdown_sweeper()
        self.scheduler.shutdown()
        self.credentials.close()
        self.counter.close()
        logger.debug("Gateway services closed")

    def __enter__(self) -> "GatewayServices":
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()
