"""Tumblr API gateway: the direct call path for every upstream read."""

import logging
from collections.abc import Callable
from datetime import date
from typing import Any

import requests

from tgw.api.ratelimit import RateLimitTracker
from tgw.api.scheduler import RequestScheduler
from tgw.auth.cipher import hash_value
from tgw.auth.oauth import OAuthSigner
from tgw.cache.response import ResponseCache, make_key
from tgw.cache.usage import DailyCallCounter
from tgw.core.constants import API_BASE_URL, APIConstants, CacheTTL, NotesMode
from tgw.exceptions import (
    APIError,
    AuthenticationFailure,
    ConfigurationError,
    NetworkError,
    NotFoundError,
    QuotaExceededError,
    ValidationError,
)
from tgw.models.oauth import OAuthCredential
from tgw.models.ratelimit import ApiUsageStats
from tgw.models.request import RequestSpec

logger = logging.getLogger(__name__)


def normalize_blog_identifier(blog: str) -> str:
    """Lowercase a blog name and qualify bare names with ``.tumblr.com``."""
    blog = blog.strip().lower()
    if not blog:
        raise ValidationError("blog", blog, "Blog identifier must not be empty")
    return blog if "." in blog else f"{blog}.tumblr.com"


def credential_scope(credential: OAuthCredential | None) -> str:
    """Cache-key component naming whose view of the upstream a response is."""
    if credential is None:
        return "public"
    return hash_value(credential.token)


def likes_cache_key(blog: str, credential: OAuthCredential | None = None, **params: Any) -> str:
    """Response-cache key for one likes request."""
    return make_key("likes", blog=normalize_blog_identifier(blog), scope=credential_scope(credential), **params)


def _retry_after(response: requests.Response) -> int | None:
    value = response.headers.get("Retry-After")
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


class TumblrGateway:
    """Issues upstream calls through the shared scheduler, cache and tracker."""

    def __init__(
        self,
        api_key: str,
        scheduler: RequestScheduler,
        cache: ResponseCache,
        tracker: RateLimitTracker,
        signer: OAuthSigner | None = None,
        counter: DailyCallCounter | None = None,
        api_base_url: str = API_BASE_URL,
    ) -> None:
        """Initialize the gateway.

        Args:
            api_key: Consumer key sent as ``api_key`` on unsigned calls
            scheduler: Single choke point for outbound traffic
            cache: Response cache for idempotent reads
            tracker: Receives quota headers from every response
            signer: OAuth signer for credentialed calls
            counter: Local daily call counter

        Raises:
            ConfigurationError: If no API key is provided

        """
        if not api_key:
            raise ConfigurationError("API key not provided")

        self.api_key = api_key
        self.scheduler = scheduler
        self.cache = cache
        self.tracker = tracker
        self.signer = signer
        self.counter = counter
        self.base_url = api_base_url.rstrip("/")
        logger.debug("TumblrGateway initialized")

    def _build_spec(
        self,
        method: str,
        url: str,
        params: dict[str, Any],
        credential: OAuthCredential | None,
    ) -> RequestSpec:
        if credential is None:
            return RequestSpec(method=method, url=url, params={"api_key": self.api_key, **params})
        if self.signer is None:
            raise ConfigurationError("OAuth signing is not configured (missing consumer secret)")
        return self.signer.signed_request(method, url, credential, params)

    def _make_request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        credential: OAuthCredential | None = None,
    ) -> dict[str, Any]:
        """Send one upstream request and map failures onto gateway errors.

        Args:
            method: HTTP method
            endpoint: API path below the base URL
            params: Query parameters (``None`` values dropped)
            credential: Access credential; the request is signed when given

        Returns:
            Decoded JSON envelope (``meta`` and ``response``)

        """
        url = f"{self.base_url}{endpoint}"
        method_name = f"{method} {endpoint}"
        clean_params = {k: v for k, v in (params or {}).items() if v is not None}
        spec = self._build_spec(method, url, clean_params, credential)

        if self.counter:
            self.counter.increment()

        logger.debug(f"Making request: {method_name}")
        try:
            response = self.scheduler.submit(spec)
        except requests.exceptions.Timeout as e:
            raise NetworkError(f"Request timed out in {method_name}", url) from e
        except requests.RequestException as e:
            raise NetworkError(f"Network failure in {method_name}: {e}", url) from e

        # Quota headers are read on every path, errors included
        self.tracker.ingest(response.headers)

        response_text = response.text
        try:
            payload = response.json()
        except ValueError:
            payload = None

        meta = payload.get("meta", {}) if isinstance(payload, dict) else {}
        status = response.status_code
        if status == 200 and isinstance(meta, dict) and meta.get("status") not in (None, 200):
            status = int(meta["status"])

        if status == 200:
            if not isinstance(payload, dict):
                raise APIError(status, f"Invalid JSON response in {method_name}", response_text)
            return payload

        message = meta.get("msg") if isinstance(meta, dict) else None
        logger.error(f"Upstream error {status} in {method_name}: {message or response.reason}")

        # Map status codes to exceptions
        error_map: dict[int, Callable[[], APIError]] = {
            401: lambda: AuthenticationFailure(f"Unauthorized access in {method_name}", response_text, 401),
            403: lambda: AuthenticationFailure(f"Access forbidden in {method_name}", response_text, 403),
            404: lambda: NotFoundError(f"Resource not found in {method_name}", response_text),
            429: lambda: QuotaExceededError(
                f"Rate limit exceeded in {method_name}", response_text, _retry_after(response)
            ),
        }

        if status in error_map:
            raise error_map[status]()
        elif 500 <= status < 600:
            raise APIError(status, f"Server error in {method_name}", response_text)
        else:
            raise APIError(
                status,
                f"Unexpected response status {status} in {method_name}" + (f": {message}" if message else ""),
                response_text,
            )

    def _cached_request(
        self,
        cache_key: str,
        ttl: float,
        endpoint: str,
        params: dict[str, Any] | None = None,
        credential: OAuthCredential | None = None,
    ) -> dict[str, Any]:
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached
        data = self._make_request("GET", endpoint, params, credential)
        self.cache.set(cache_key, data, ttl)
        return data

    @staticmethod
    def _require_credential(credential: OAuthCredential | None, what: str) -> OAuthCredential:
        if credential is None:
            raise AuthenticationFailure(f"{what} requires a connected Tumblr account")
        return credential

    def get_blog_info(self, blog: str, credential: OAuthCredential | None = None) -> dict[str, Any]:
        """Blog metadata, cached for ten minutes.

        Args:
            blog: Blog name or hostname
            credential: Signs the call when given, otherwise the API key is used

        """
        blog = normalize_blog_identifier(blog)
        logger.info(f"Fetching blog info for {blog}")
        return self._cached_request(
            make_key("blog-info", blog=blog, scope=credential_scope(credential)),
            CacheTTL.BLOG_INFO,
            f"/blog/{blog}/info",
            credential=credential,
        )

    def get_blog_posts(
        self,
        blog: str,
        limit: int = APIConstants.DEFAULT_PAGE_SIZE,
        offset: int = 0,
        post_type: str | None = None,
        tag: str | None = None,
        before: int | None = None,
        notes_info: bool = True,
        credential: OAuthCredential | None = None,
    ) -> dict[str, Any]:
        """Blog posts; only the first page is cached, for two minutes."""
        blog = normalize_blog_identifier(blog)
        params: dict[str, Any] = {
            "limit": limit,
            "offset": offset,
            "type": post_type,
            "tag": tag,
            "before": before,
            "notes_info": "true" if notes_info else "false",
        }
        endpoint = f"/blog/{blog}/posts"

        if offset == 0 and before is None:
            cache_key = make_key("posts", blog=blog, scope=credential_scope(credential), **params)
            return self._cached_request(cache_key, CacheTTL.POSTS, endpoint, params, credential)
        return self._make_request("GET", endpoint, params, credential)

    def get_blog_likes(
        self,
        blog: str,
        credential: OAuthCredential | None = None,
        limit: int = APIConstants.DEFAULT_PAGE_SIZE,
        offset: int | None = None,
        before: int | None = None,
        after: int | None = None,
        cache_ttl: float | None = None,
    ) -> dict[str, Any]:
        """One page of a blog's liked posts.

        Only blogs owned by the credential's user (or with public likes) return
        data. At most one of ``offset``, ``before`` and ``after`` may be given.

        Args:
            blog: Blog name or hostname
            credential: Signs the call when given
            limit: Posts per page, 1-20
            offset: Skip count, at most 1000
            before: Liked-before Unix timestamp
            after: Liked-after Unix timestamp
            cache_ttl: Serve from and store to the response cache when set

        Raises:
            ValidationError: If the pagination arguments are invalid

        """
        if sum(value is not None for value in (offset, before, after)) > 1:
            raise ValidationError(
                "pagination",
                {"offset": offset, "before": before, "after": after},
                "Only one pagination method allowed at a time (offset, before, or after)",
            )
        if not APIConstants.MIN_PAGE_SIZE <= limit <= APIConstants.MAX_PAGE_SIZE:
            raise ValidationError("limit", limit, "limit must be between 1 and 20")
        if offset is not None and not 0 <= offset <= APIConstants.OFFSET_CEILING:
            raise ValidationError(
                "offset",
                offset,
                "offset cannot exceed 1000. Use timestamp-based pagination (before/after) for posts beyond 1000",
            )

        blog = normalize_blog_identifier(blog)
        params = {"limit": limit, "offset": offset, "before": before, "after": after}
        endpoint = f"/blog/{blog}/likes"
        logger.info(f"Fetching blog likes: {blog}")

        if cache_ttl is not None:
            return self._cached_request(likes_cache_key(blog, credential, **params), cache_ttl, endpoint, params, credential)
        return self._make_request("GET", endpoint, params, credential)

    def get_post_notes(
        self,
        blog: str,
        post_id: str,
        mode: NotesMode | str = NotesMode.ALL,
        credential: OAuthCredential | None = None,
    ) -> dict[str, Any]:
        """Notes timeline for one post."""
        blog = normalize_blog_identifier(blog)
        mode = NotesMode(mode)
        logger.info(f"Fetching notes for post {post_id} from {blog}")
        return self._make_request("GET", f"/blog/{blog}/notes", {"id": post_id, "mode": mode.value}, credential)

    def get_user_info(self, credential: OAuthCredential | None) -> dict[str, Any]:
        """Account info for the credential's user."""
        credential = self._require_credential(credential, "User info")
        return self._make_request("GET", "/user/info", credential=credential)

    def get_user_following(
        self,
        credential: OAuthCredential | None,
        limit: int = APIConstants.DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> dict[str, Any]:
        """Blogs followed by the credential's user."""
        credential = self._require_credential(credential, "Following list")
        return self._make_request("GET", "/user/following", {"limit": limit, "offset": offset}, credential)

    def get_blog_followers(
        self,
        blog: str,
        credential: OAuthCredential | None,
        limit: int = APIConstants.DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> dict[str, Any]:
        """Followers of a blog the credential's user owns."""
        credential = self._require_credential(credential, "Followers list")
        blog = normalize_blog_identifier(blog)
        return self._make_request("GET", f"/blog/{blog}/followers", {"limit": limit, "offset": offset}, credential)

    def get_tagged(
        self,
        tag: str,
        limit: int = APIConstants.DEFAULT_PAGE_SIZE,
        before: int | None = None,
        filter: str | None = None,
    ) -> dict[str, Any]:
        """Public posts carrying a tag."""
        if not tag:
            raise ValidationError("tag", tag, "Tag parameter is required")
        logger.info(f"Searching for tag: {tag!r}")
        return self._make_request("GET", "/tagged", {"tag": tag, "limit": limit, "before": before, "filter": filter})

    def usage_stats(self) -> ApiUsageStats:
        """Today's usage, preferring upstream quota headers over the local counter."""
        today = date.today()
        internal = self.counter.get_count(today) if self.counter else 0
        state = self.tracker.current_state()

        return ApiUsageStats(
            date=today.isoformat(),
            count=state.used if state.used is not None else internal,
            remaining=state.remaining,
            limit=state.limit,
            percentage=state.percentage_used or 0.0,
            reset_at=state.reset_at,
            source="upstream" if state.is_known else "internal",
            last_updated_at=state.last_updated_at,
            internal_count=internal,
        )
