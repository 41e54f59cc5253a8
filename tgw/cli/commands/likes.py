"""Liked posts command implementation."""

import logging
from typing import Annotated, Any

import backoff
import typer
from rich.console import Console
from rich.table import Table
from tqdm import tqdm

from tgw.api.pagination import LikesPaginator
from tgw.cli.utils import (
    OUTPUT_FORMAT_OPTION,
    OUTPUT_PATH_OPTION,
    PAGE_SIZE_OPTION,
    USER_ID_OPTION,
    OutputFormat,
    handle_csv_output,
    handle_json_output,
    load_user_credential,
    open_services,
)
from tgw.core.constants import APIConstants, ProgressBarConstants, QuotaRetryConstants
from tgw.exceptions import QuotaExceededError, TGWError
from tgw.models.likes import LikedPost, LikesPage

console = Console()
logger = logging.getLogger(__name__)

CSV_FIELDS = ["id", "blog_name", "type", "liked_timestamp", "note_count", "post_url", "tags", "image_urls"]


def quota_wait(exc: QuotaExceededError) -> float:
    """Seconds to wait before retrying after a 429."""
    wait = exc.retry_after if exc.retry_after is not None else QuotaRetryConstants.DEFAULT_WAIT
    return float(min(max(wait, 0), QuotaRetryConstants.MAX_WAIT))


def _log_backoff(details: dict[str, Any]) -> None:
    logger.warning(f"Quota exceeded, retrying in {details['wait']:.0f}s (attempt {details['tries']})")


@backoff.on_exception(
    backoff.runtime,
    QuotaExceededError,
    value=quota_wait,
    max_tries=QuotaRetryConstants.MAX_TRIES,
    jitter=None,
    on_backoff=_log_backoff,
)
def fetch_next_with_retry(paginator: LikesPaginator) -> LikesPage | None:
    """Advance the paginator, retrying the same page when the quota is hit."""
    return paginator.fetch_next()


def walk_likes(paginator: LikesPaginator, max_posts: int = APIConstants.MAX_LIKES_WALK) -> list[LikedPost]:
    """Collect every liked post with a progress bar."""
    posts: list[LikedPost] = []
    pbar = tqdm(
        desc="Fetching likes",
        unit=" posts",
        mininterval=ProgressBarConstants.MIN_UPDATE_INTERVAL / 1000,
        maxinterval=ProgressBarConstants.MAX_UPDATE_INTERVAL / 1000,
    )
    try:
        while True:
            page = fetch_next_with_retry(paginator)
            if page is None:
                break

            posts.extend(page.posts)
            pbar.update(len(page.posts))
            pbar.set_postfix({"page": page.page, "mode": page.cursor.mode.value})

            if not page.has_more:
                break
            if len(posts) >= max_posts:
                logger.warning(f"Reached safety limit of {max_posts} posts")
                break
    finally:
        pbar.close()
    return posts


def _post_row(post: LikedPost) -> dict[str, Any]:
    return {
        "id": post.id,
        "blog_name": post.blog_name,
        "type": post.type,
        "liked_timestamp": post.liked_timestamp,
        "note_count": post.note_count,
        "post_url": post.post_url,
        "tags": post.tags,
        "image_urls": [image.url for image in post.images],
    }


def _display_table(posts: list[LikedPost], title: str) -> None:
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Blog", style="cyan")
    table.add_column("Type")
    table.add_column("Liked", justify="right")
    table.add_column("Images", justify="right")
    table.add_column("Tags")
    for post in posts:
        table.add_row(
            str(post.id),
            post.blog_name,
            post.type or "",
            str(post.liked_timestamp or ""),
            str(len(post.images)),
            ", ".join(post.tags[:3]),
        )
    console.print(table)


def list_likes(
    blog: Annotated[str, typer.Argument(help="Blog whose likes to list")],
    user_id: USER_ID_OPTION,
    page: Annotated[int, typer.Option("--page", "-p", min=1, help="Page to fetch")] = 1,
    page_size: PAGE_SIZE_OPTION = int(APIConstants.DEFAULT_PAGE_SIZE),
    fetch_all: Annotated[bool, typer.Option("--all", "-a", help="Walk every page of likes")] = False,
    output_format: OUTPUT_FORMAT_OPTION = OutputFormat.TABLE,
    output: OUTPUT_PATH_OPTION = None,
) -> None:
    """List a blog's liked posts, one page or all of them.

    Pages past offset 1000 are reached through timestamps, so a single
    ``--page`` beyond that point is only available right after the last
    offset page. Use ``--all`` to walk further.
    """
    with open_services() as services:
        credential = load_user_credential(services, user_id, required=True)
        paginator = LikesPaginator(
            services.gateway,
            blog,
            credential,
            page_size=page_size,
            cache_offset_horizon=services.config.likes_cache_offset_horizon,
        )
        try:
            if fetch_all:
                posts = walk_likes(paginator)
                title = f"Likes of {paginator.blog} ({len(posts)} posts)"
            else:
                result = paginator.fetch_page(page)
                posts = result.posts
                more = "more available" if result.has_more else "last page"
                title = f"Likes of {paginator.blog}, page {result.page} ({result.cursor.mode.value}, {more})"
        except TGWError as e:
            console.print(f"[red]✗ {e.message}[/red]")
            raise typer.Exit(1) from e

    if output_format == OutputFormat.JSON:
        handle_json_output(posts, output, lambda items: [post.model_dump(mode="json") for post in items])
    elif output_format == OutputFormat.CSV:
        handle_csv_output([_post_row(post) for post in posts], output, CSV_FIELDS)
    else:
        _display_table(posts, title)
