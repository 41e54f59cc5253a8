"""HTTP proxy surface over the Tumblr gateway."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from tgw.api.client import normalize_blog_identifier
from tgw.api.pagination import LikesPaginator
from tgw.config import load_config
from tgw.core.constants import PACKAGE_VERSION, UNKNOWN_IDENTITY, APIConstants, NotesMode
from tgw.core.logging import configure_logging
from tgw.exceptions import (
    APIError,
    AuthenticationFailure,
    ConfigurationError,
    CryptoIntegrityError,
    NetworkError,
    NotFoundError,
    PaginationBoundaryError,
    QuotaExceededError,
    TGWError,
    ValidationError,
)
from tgw.models.oauth import OAuthCredential
from tgw.services.gateway import GatewayServices

logger = logging.getLogger(__name__)


class CallbackRequest(BaseModel):
    """Body of the OAuth callback route."""

    user_id: str
    oauth_token: str
    oauth_verifier: str


class DisconnectRequest(BaseModel):
    """Body of the disconnect route."""

    user_id: str


def error_response(exc: TGWError) -> JSONResponse:
    """Map a gateway exception onto an HTTP response."""
    body: dict[str, Any] = {"error": type(exc).__name__, "message": exc.message}
    headers: dict[str, str] = {}

    if isinstance(exc, QuotaExceededError):
        status = 429
        if exc.retry_after is not None:
            headers["Retry-After"] = str(exc.retry_after)
    elif isinstance(exc, AuthenticationFailure):
        status = 403 if exc.status_code == 403 else 401
    elif isinstance(exc, NotFoundError):
        status = 404
    elif isinstance(exc, APIError):
        status = exc.status_code if 400 <= exc.status_code < 600 else 502
    elif isinstance(exc, NetworkError):
        status = 502
    elif isinstance(exc, PaginationBoundaryError):
        status = 400
        body["page"] = exc.page
    elif isinstance(exc, ValidationError):
        status = 400
        body["field"] = exc.field
    elif isinstance(exc, CryptoIntegrityError):
        status = 401
        body["reauthorize"] = True
    elif isinstance(exc, ConfigurationError):
        status = 503
    else:
        status = 500

    return JSONResponse(status_code=status, content=body, headers=headers)


def get_services(request: Request) -> GatewayServices:
    """Dependency returning the application's gateway services."""
    return request.app.state.services


def _credential(services: GatewayServices, user_id: str | None) -> OAuthCredential | None:
    if not user_id:
        return None
    return services.credentials.load_credential(user_id)


def _require_credential(services: GatewayServices, user_id: str) -> OAuthCredential:
    credential = services.credentials.load_credential(user_id)
    if credential is None:
        raise AuthenticationFailure("Tumblr account not connected")
    return credential


def _require_blog_owner(services: GatewayServices, user_id: str, blog: str, what: str) -> OAuthCredential:
    """Credential of a user, provided the blog is the one they connected with."""
    credential = _require_credential(services, user_id)
    record = services.credentials.get_record(user_id)
    owned = None
    if record and record.identity and record.identity != UNKNOWN_IDENTITY:
        owned = normalize_blog_identifier(record.identity)
    if normalize_blog_identifier(blog) != owned:
        raise AuthenticationFailure(f"Can only get {what} for your own blog", status_code=403)
    return credential


def create_app(services: GatewayServices | None = None) -> FastAPI:
    """Create the FastAPI application.

    Args:
        services: Prebuilt services; built from the environment when omitted
            and closed on shutdown

    """
    owns_services = services is None
    if services is None:
        config = load_config()
        configure_logging(config.log_level)
        services = GatewayServices.from_config(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        if owns_services:
            app.state.services.close()

    app = FastAPI(title="Tumblr Gateway", version=PACKAGE_VERSION, lifespan=lifespan)
    app.state.services = services

    @app.exception_handler(TGWError)
    async def handle_gateway_error(request: Request, exc: TGWError) -> JSONResponse:
        response = error_response(exc)
        if response.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected ({response.status_code}): {exc.message}")
        return response

    @app.middleware("http")
    async def rate_limit_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in request.app.state.services.tracker.response_headers().items():
            response.headers[name] = value
        return response

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"status": "ok", "version": PACKAGE_VERSION}

    @app.get("/blog/{blog_id}/info")
    def blog_info(
        blog_id: str,
        user_id: str | None = None,
        services: GatewayServices = Depends(get_services),
    ) -> dict[str, Any]:
        return services.gateway.get_blog_info(blog_id, _credential(services, user_id))

    @app.get("/blog/{blog_id}/posts")
    def blog_posts(
        blog_id: str,
        limit: int = int(APIConstants.DEFAULT_PAGE_SIZE),
        offset: int = 0,
        type: str | None = None,
        tag: str | None = None,
        before: int | None = None,
        notes_info: bool = True,
        services: GatewayServices = Depends(get_services),
    ) -> dict[str, Any]:
        return services.gateway.get_blog_posts(
            blog_id,
            limit=limit,
            offset=offset,
            post_type=type,
            tag=tag,
            before=before,
            notes_info=notes_info,
        )

    @app.get("/blog/{blog_id}/likes")
    def blog_likes(
        blog_id: str,
        user_id: str | None = None,
        limit: int = int(APIConstants.DEFAULT_PAGE_SIZE),
        offset: int | None = None,
        before: int | None = None,
        after: int | None = None,
        services: GatewayServices = Depends(get_services),
    ) -> dict[str, Any]:
        return services.gateway.get_blog_likes(
            blog_id,
            _credential(services, user_id),
            limit=limit,
            offset=offset,
            before=before,
            after=after,
        )

    @app.get("/blog/{blog_id}/likes/pages/{page}")
    def blog_likes_page(
        blog_id: str,
        page: int,
        user_id: str,
        page_size: int = int(APIConstants.DEFAULT_PAGE_SIZE),
        services: GatewayServices = Depends(get_services),
    ) -> dict[str, Any]:
        paginator = services.paginator(user_id, blog_id, page_size, _credential(services, user_id))
        result = paginator.fetch_page(page)
        return {
            "page": result.page,
            "mode": result.cursor.mode.value,
            "has_more": result.has_more,
            "liked_count": result.liked_count,
            "can_jump_to_next": paginator.can_jump_to_page(result.page + 1),
            "last_offset_page": paginator.last_offset_page,
            "posts": [post.model_dump(mode="json") for post in result.posts],
            "images": [image.model_dump(mode="json") for image in result.images],
        }

    @app.get("/blog/{blog_id}/notes")
    def post_notes(
        blog_id: str,
        id: str,
        mode: NotesMode = NotesMode.ALL,
        user_id: str | None = None,
        services: GatewayServices = Depends(get_services),
    ) -> dict[str, Any]:
        return services.gateway.get_post_notes(blog_id, id, mode, _credential(services, user_id))

    @app.get("/blog/{blog_id}/likes/all")
    def blog_likes_all(
        blog_id: str,
        user_id: str,
        start_page: int = 1,
        max_posts: int = int(APIConstants.MAX_LIKES_WALK),
        services: GatewayServices = Depends(get_services),
    ) -> dict[str, Any]:
        credential = _require_blog_owner(services, user_id, blog_id, "likes")
        if not 1 <= max_posts <= APIConstants.MAX_LIKES_WALK:
            raise ValidationError(
                "max_posts", max_posts, f"max_posts must be between 1 and {int(APIConstants.MAX_LIKES_WALK)}"
            )

        paginator = LikesPaginator(
            services.gateway,
            blog_id,
            credential,
            page_size=int(APIConstants.MAX_PAGE_SIZE),
            cache_offset_horizon=services.config.likes_cache_offset_horizon,
        )
        posts = [
            post.model_dump(mode="json")
            for page in paginator.iter_all(start_page=start_page, max_posts=max_posts)
            for post in page.posts
        ]
        logger.info(f"Collected {len(posts)} liked posts from {paginator.blog}")
        return {"liked_posts": posts, "count": len(posts)}

    @app.get("/blog/{blog_id}/followers")
    def blog_followers(
        blog_id: str,
        user_id: str,
        limit: int = int(APIConstants.DEFAULT_PAGE_SIZE),
        offset: int = 0,
        services: GatewayServices = Depends(get_services),
    ) -> dict[str, Any]:
        credential = _require_blog_owner(services, user_id, blog_id, "followers")
        return services.gateway.get_blog_followers(blog_id, credential, limit=limit, offset=offset)

    @app.get("/user/following")
    def user_following(
        user_id: str,
        limit: int = int(APIConstants.DEFAULT_PAGE_SIZE),
        offset: int = 0,
        services: GatewayServices = Depends(get_services),
    ) -> dict[str, Any]:
        return services.gateway.get_user_following(_require_credential(services, user_id), limit=limit, offset=offset)

    @app.get("/tagged")
    def tagged(
        tag: str = "",
        limit: int = int(APIConstants.DEFAULT_PAGE_SIZE),
        before: int | None = None,
        filter: str | None = None,
        services: GatewayServices = Depends(get_services),
    ) -> dict[str, Any]:
        return services.gateway.get_tagged(tag, limit=limit, before=before, filter=filter)

    @app.post("/auth/connect")
    def auth_connect(services: GatewayServices = Depends(get_services)) -> dict[str, str]:
        request_token = services.require_signer().begin_authorization()
        return {"request_token": request_token.token, "authorize_url": request_token.authorize_url}

    @app.post("/auth/callback")
    def auth_callback(
        body: CallbackRequest, services: GatewayServices = Depends(get_services)
    ) -> dict[str, Any]:
        result = services.require_signer().complete_authorization(body.oauth_token, body.oauth_verifier)
        services.credentials.save_credential(body.user_id, result.to_credential(), result.resolved_identity)
        services.drop_sessions(body.user_id)
        return {"user_id": body.user_id, "connected": True, "identity": result.resolved_identity}

    @app.post("/auth/disconnect")
    def auth_disconnect(
        body: DisconnectRequest, services: GatewayServices = Depends(get_services)
    ) -> dict[str, Any]:
        deleted = services.credentials.delete_credential(body.user_id)
        dropped = services.drop_sessions(body.user_id)
        return {"user_id": body.user_id, "disconnected": deleted, "sessions_dropped": dropped}

    @app.get("/auth/status/{user_id}")
    def auth_status(user_id: str, services: GatewayServices = Depends(get_services)) -> dict[str, Any]:
        record = services.credentials.get_record(user_id)
        if record is None:
            return {"user_id": user_id, "connected": False, "identity": None, "connected_at": None}
        return {
            "user_id": user_id,
            "connected": True,
            "identity": record.identity,
            "connected_at": record.connected_at,
        }

    @app.get("/admin/stats")
    def admin_stats(services: GatewayServices = Depends(get_services)) -> dict[str, Any]:
        stats = services.gateway.usage_stats()
        return {**stats.model_dump(), "should_throttle": services.tracker.should_throttle()}

    @app.get("/admin/cache-stats")
    def admin_cache_stats(services: GatewayServices = Depends(get_services)) -> dict[str, Any]:
        return services.cache.stats().model_dump()

    @app.post("/admin/clear-cache")
    def admin_clear_cache(services: GatewayServices = Depends(get_services)) -> dict[str, int]:
        cleared = services.cache.clear()
        logger.info(f"Response cache cleared ({cleared} entries)")
        return {"cleared": cleared}

    return app
