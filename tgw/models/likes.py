"""Liked-post and pagination models for the likes endpoint."""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class PaginationMode(StrEnum):
    """How a likes page is addressed upstream."""

    OFFSET = "offset"
    TIMESTAMP = "timestamp"


class PhotoSize(BaseModel):
    """One rendition of a photo."""

    url: str
    width: int = 0
    height: int = 0


class Photo(BaseModel):
    """Photo attached to a post."""

    model_config = ConfigDict(extra="allow")

    caption: str | None = None
    original_size: PhotoSize | None = None


class LikedImage(BaseModel):
    """A single image extracted from a liked post."""

    id: str
    url: str
    width: int = 0
    height: int = 0
    post_id: int
    blog_name: str
    liked_timestamp: int | None = None
    tags: list[str] = Field(default_factory=list)
    post_url: str = ""
    caption: str | None = None


class LikedPost(BaseModel):
    """A post from a blog's liked posts list."""

    model_config = ConfigDict(extra="allow")

    id: int
    blog_name: str = "unknown"
    post_url: str = ""
    type: str | None = None
    timestamp: int | None = None
    liked_timestamp: int | None = None
    tags: list[str] = Field(default_factory=list)
    note_count: int = 0
    summary: str | None = None
    caption: str | None = None
    photos: list[Photo] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def parse_id(cls, v: Any) -> int:
        """Accept both numeric and string post ids."""
        if isinstance(v, str):
            return int(v)
        return v

    @property
    def images(self) -> list[LikedImage]:
        """Images carried by this post, using each photo's original size."""
        images = []
        for index, photo in enumerate(self.photos):
            if not photo.original_size or not photo.original_size.url:
                continue
            images.append(
                LikedImage(
                    id=f"{self.id}-img-{index}",
                    url=photo.original_size.url,
                    width=photo.original_size.width,
                    height=photo.original_size.height,
                    post_id=self.id,
                    blog_name=self.blog_name,
                    liked_timestamp=self.liked_timestamp or self.timestamp,
                    tags=self.tags,
                    post_url=self.post_url,
                    caption=photo.caption or self.caption or self.summary,
                )
            )
        return images


class PaginationCursor(BaseModel):
    """Position of one likes page."""

    mode: PaginationMode
    page: int = Field(ge=1)
    page_size: int = Field(ge=1)
    offset: int | None = None
    before_timestamp: int | None = None

    @model_validator(mode="after")
    def check_mode_fields(self) -> "PaginationCursor":
        """Offset mode needs an offset, timestamp mode needs an observed timestamp."""
        if self.mode is PaginationMode.OFFSET and self.offset is None:
            raise ValueError("offset cursor requires an offset")
        if self.mode is PaginationMode.TIMESTAMP and self.before_timestamp is None:
            raise ValueError("timestamp cursor requires before_timestamp")
        return self

    def query_params(self) -> dict[str, int]:
        """Upstream query parameters addressing this page."""
        params = {"limit": self.page_size}
        if self.mode is PaginationMode.OFFSET:
            params["offset"] = self.offset  # type: ignore[assignment]
        else:
            params["before"] = self.before_timestamp  # type: ignore[assignment]
        return params


class LikesPage(BaseModel):
    """One fetched page of liked posts."""

    page: int
    cursor: PaginationCursor
    posts: list[LikedPost] = Field(default_factory=list)
    liked_count: int | None = None
    has_more: bool = False
    oldest_timestamp: int | None = Field(
        default=None, description="Smallest liked_timestamp on the upstream page, skipped posts included"
    )

    @property
    def images(self) -> list[LikedImage]:
        """All images across the page's posts."""
        return [image for post in self.posts for image in post.images]
