"""Shared fixtures: a scripted transport, a fake clock and wired-up services."""

import json
from collections.abc import Callable
from typing import Any

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from tgw.api.client import TumblrGateway
from tgw.api.ratelimit import RateLimitTracker
from tgw.api.scheduler import RequestScheduler
from tgw.auth.oauth import OAuthSigner
from tgw.cache.response import ResponseCache
from tgw.cache.usage import DailyCallCounter
from tgw.config import Config

ENCRYPTION_SECRET = "0123456789abcdef0123456789abcdef-test"


def make_response(
    status_code: int = 200,
    payload: Any = None,
    headers: dict[str, str] | None = None,
    text: str | None = None,
) -> requests.Response:
    """Build a real ``requests.Response`` without touching the network."""
    response = requests.Response()
    response.status_code = status_code
    response.reason = "OK" if status_code == 200 else "Error"
    response.headers = CaseInsensitiveDict(headers or {})
    response.encoding = "utf-8"
    if text is not None:
        response._content = text.encode("utf-8")
    elif payload is not None:
        response._content = json.dumps(payload).encode("utf-8")
    else:
        response._content = b""
    return response


def envelope(body: dict[str, Any], status: int = 200, msg: str = "OK") -> dict[str, Any]:
    """Wrap a body the way the upstream does."""
    return {"meta": {"status": status, "msg": msg}, "response": body}


def liked_posts(count: int, newest_timestamp: int, start_id: int = 1) -> list[dict[str, Any]]:
    """Liked posts ordered newest first, one second apart."""
    return [
        {
            "id": start_id + i,
            "blog_name": f"blog{start_id + i}",
            "post_url": f"https://blog{start_id + i}.tumblr.com/post/{start_id + i}",
            "type": "photo",
            "timestamp": newest_timestamp - i - 100,
            "liked_timestamp": newest_timestamp - i,
            "tags": ["art"],
            "photos": [{"original_size": {"url": f"https://64.media.tumblr.com/{start_id + i}.jpg", "width": 500, "height": 400}}],
        }
        for i in range(count)
    ]


class FakeSession:
    """Stands in for ``requests.Session``; replies come from a handler or a queue."""

    def __init__(self, handler: Callable[..., requests.Response] | None = None) -> None:
        self.handler = handler
        self.responses: list[requests.Response | Exception] = []
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def queue(self, *responses: requests.Response | Exception) -> None:
        self.responses.extend(responses)

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        self.calls.append({"method": method, "url": url, **kwargs})
        if self.handler is not None:
            return self.handler(method, url, **kwargs)
        if not self.responses:
            raise AssertionError(f"Unexpected request: {method} {url}")
        reply = self.responses.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    def close(self) -> None:
        self.closed = True


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def scheduler(session):
    scheduler = RequestScheduler(session=session, min_delay=0, timeout=5)
    yield scheduler
    scheduler.shutdown()


@pytest.fixture
def tracker() -> RateLimitTracker:
    return RateLimitTracker()


@pytest.fixture
def response_cache(clock) -> ResponseCache:
    return ResponseCache(clock=clock)


@pytest.fixture
def counter(tmp_path):
    counter = DailyCallCounter(tmp_path)
    yield counter
    counter.close()


@pytest.fixture
def signer(scheduler, tracker) -> OAuthSigner:
    return OAuthSigner("test-consumer-key", "test-consumer-secret", scheduler=scheduler, tracker=tracker)


@pytest.fixture
def gateway(scheduler, response_cache, tracker, signer, counter) -> TumblrGateway:
    return TumblrGateway(
        "test-consumer-key",
        scheduler=scheduler,
        cache=response_cache,
        tracker=tracker,
        signer=signer,
        counter=counter,
    )


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(
        api_key="test-consumer-key",
        consumer_secret="test-consumer-secret",
        encryption_secret=ENCRYPTION_SECRET,
        data_dir=tmp_path / "data",
        request_delay_ms=0,
        _env_file=None,
    )
