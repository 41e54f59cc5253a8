"""Likes pagination across the upstream's 1000-item offset ceiling.

Pages below the ceiling are addressed by offset. Beyond it the upstream only
accepts ``before=<liked_timestamp>``, so each page is addressed through the
oldest timestamp observed on the page before it.
"""

import logging
import threading
from collections.abc import Iterator
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from tgw.api.client import TumblrGateway, likes_cache_key, normalize_blog_identifier
from tgw.core.constants import APIConstants, CacheTTL
from tgw.exceptions import PaginationBoundaryError, ValidationError
from tgw.models.likes import LikedPost, LikesPage, PaginationCursor, PaginationMode
from tgw.models.oauth import OAuthCredential

logger = logging.getLogger(__name__)


class LikesPaginator:
    """One browsing session over one blog's liked posts."""

    def __init__(
        self,
        gateway: TumblrGateway,
        blog: str,
        credential: OAuthCredential | None = None,
        page_size: int = APIConstants.DEFAULT_PAGE_SIZE,
        cache_offset_horizon: int = 0,
        cache_ttl: float = CacheTTL.POSTS,
    ) -> None:
        """Initialize the session.

        Args:
            gateway: Gateway issuing the upstream calls
            blog: Blog whose likes are browsed
            credential: Access credential of the blog's owner
            page_size: Posts per page, 1-20
            cache_offset_horizon: Offset pages up to this offset go through the response cache
            cache_ttl: TTL for cached offset pages

        Raises:
            ValidationError: If page_size is out of range

        """
        if not APIConstants.MIN_PAGE_SIZE <= page_size <= APIConstants.MAX_PAGE_SIZE:
            raise ValidationError("page_size", page_size, "page_size must be between 1 and 20")

        self.gateway = gateway
        self.blog = normalize_blog_identifier(blog)
        self.credential = credential
        self.page_size = page_size
        self.cache_offset_horizon = cache_offset_horizon
        self.cache_ttl = cache_ttl

        # page -> liked_timestamp of the oldest post seen on it
        self.index: dict[int, int] = {}
        # page -> cursor that fetched it
        self.cursors: dict[int, PaginationCursor] = {}
        self.current_page: LikesPage | None = None

        # Sessions are shared between server worker threads
        self._lock = threading.RLock()

    def offset_for(self, page: int) -> int:
        """Offset addressing a page."""
        if page < 1:
            raise ValidationError("page", page, "page must be 1 or greater")
        return (page - 1) * self.page_size

    @property
    def last_offset_page(self) -> int:
        """Highest page whose offset is still below the ceiling."""
        return (APIConstants.OFFSET_CEILING - 1) // self.page_size + 1

    def can_jump_to_page(self, page: int) -> bool:
        """Whether a page is reachable directly, without walking to it."""
        return self.offset_for(page) < APIConstants.OFFSET_CEILING

    def resolve_cursor(self, page: int) -> PaginationCursor:
        """Cursor addressing a page.

        Offset pages and timestamp pages with a known predecessor resolve
        locally. The first timestamp page is bridged by fetching the last
        offset page, which costs one upstream call.

        Raises:
            PaginationBoundaryError: If the page lies beyond the ceiling and
                no timestamp is known for the page before it

        """
        offset = self.offset_for(page)
        if offset < APIConstants.OFFSET_CEILING:
            return PaginationCursor(mode=PaginationMode.OFFSET, page=page, page_size=self.page_size, offset=offset)

        with self._lock:
            cursor = self.cursors.get(page)
            if cursor is not None:
                return cursor

            before = self.index.get(page - 1)
            if before is None and page == self.last_offset_page + 1:
                before = self._bridge()

            if before is None:
                raise PaginationBoundaryError(
                    page,
                    f"Cannot jump to page {page}: pages past offset {APIConstants.OFFSET_CEILING} "
                    "must be reached by navigating sequentially",
                )

            return PaginationCursor(
                mode=PaginationMode.TIMESTAMP, page=page, page_size=self.page_size, before_timestamp=before
            )

    def _bridge(self) -> int:
        page = self.last_offset_page
        logger.info(f"Bridging to timestamp pagination via page {page} of {self.blog}")

        cursor = self.resolve_cursor(page)
        result = self._fetch(page, cursor)
        if result.oldest_timestamp is None:
            raise PaginationBoundaryError(page + 1, f"No liked posts on page {page} to continue from")
        return result.oldest_timestamp

    def _cache_ttl_for(self, cursor: PaginationCursor) -> float | None:
        if cursor.mode is PaginationMode.OFFSET and cursor.offset <= self.cache_offset_horizon:
            return self.cache_ttl
        return None

    @staticmethod
    def _oldest_timestamp(raw_posts: list[Any]) -> int | None:
        timestamps = [
            raw.get("liked_timestamp")
            for raw in raw_posts
            if isinstance(raw, dict) and isinstance(raw.get("liked_timestamp"), int)
        ]
        return min(timestamps, default=None)

    def _parse_posts(self, raw_posts: list[dict[str, Any]]) -> list[LikedPost]:
        posts = []
        for raw in raw_posts:
            try:
                posts.append(LikedPost.model_validate(raw))
            except PydanticValidationError as e:
                logger.warning(f"Skipping malformed liked post from {self.blog}: {e.error_count()} errors")
        return posts

    def _fetch(self, page: int, cursor: PaginationCursor) -> LikesPage:
        data = self.gateway.get_blog_likes(
            self.blog,
            self.credential,
            cache_ttl=self._cache_ttl_for(cursor),
            **cursor.query_params(),
        )
        body = data.get("response") or {}
        raw_posts = body.get("liked_posts") or []
        posts = self._parse_posts(raw_posts)
        liked_count = body.get("liked_count")

        has_more = len(raw_posts) == self.page_size
        if (
            cursor.mode is PaginationMode.OFFSET
            and liked_count is not None
            and cursor.offset + len(raw_posts) >= liked_count
        ):
            has_more = False

        result = LikesPage(
            page=page,
            cursor=cursor,
            posts=posts,
            liked_count=liked_count,
            has_more=has_more,
            oldest_timestamp=self._oldest_timestamp(raw_posts),
        )
        self.cursors[page] = cursor
        if result.oldest_timestamp is not None:
            self.index[page] = result.oldest_timestamp

        logger.debug(
            f"Fetched likes page {page} of {self.blog} ({cursor.mode.value}): "
            f"{len(posts)} posts, has_more={has_more}"
        )
        return result

    def fetch_page(self, page: int) -> LikesPage:
        """Fetch a page, resolving its cursor first."""
        with self._lock:
            cursor = self.resolve_cursor(page)
            result = self._fetch(page, cursor)
            self.current_page = result
            return result

    def fetch_next(self) -> LikesPage | None:
        """Page after the current one; None when there are no more likes."""
        with self._lock:
            if self.current_page is None:
                return self.fetch_page(1)
            if not self.current_page.has_more:
                return None
            return self.fetch_page(self.current_page.page + 1)

    def fetch_previous(self) -> LikesPage | None:
        """Page before the current one; None on the first page."""
        with self._lock:
            if self.current_page is None or self.current_page.page <= 1:
                return None
            return self.fetch_page(self.current_page.page - 1)

    def jump_to_page(self, page: int) -> LikesPage:
        """Fetch an offset-addressable page directly.

        Raises:
            PaginationBoundaryError: If the page lies beyond the offset ceiling

        """
        if not self.can_jump_to_page(page):
            raise PaginationBoundaryError(
                page,
                f"Cannot jump to page {page}. Tumblr API limits offset-based pagination "
                f"to {APIConstants.OFFSET_CEILING} items; use next/previous navigation instead",
            )
        return self.fetch_page(page)

    def refresh(self) -> LikesPage:
        """Refetch the current page (or the first) bypassing cached data."""
        with self._lock:
            page = self.current_page.page if self.current_page else 1
            cursor = self.resolve_cursor(page)
            if self._cache_ttl_for(cursor) is not None:
                self.gateway.cache.delete(likes_cache_key(self.blog, self.credential, **cursor.query_params()))
            return self.fetch_page(page)

    def reset(self) -> None:
        """Forget the current position, cursors and timestamp index."""
        with self._lock:
            self.index.clear()
            self.cursors.clear()
            self.current_page = None
        logger.debug(f"Reset likes pagination for {self.blog}")

    def iter_all(
        self, start_page: int = 1, max_posts: int = APIConstants.MAX_LIKES_WALK
    ) -> Iterator[LikesPage]:
        """Walk forward from a page until the likes run out.

        Args:
            start_page: First page to fetch
            max_posts: Stop once this many posts have been yielded

        Yields:
            Each fetched page in order

        """
        page = start_page
        total = 0
        while True:
            result = self.fetch_page(page)
            total += len(result.posts)
            yield result

            if not result.has_more:
                break
            if total >= max_posts:
                logger.warning(f"Reached safety limit of {max_posts} posts for {self.blog}")
                break
            page += 1
