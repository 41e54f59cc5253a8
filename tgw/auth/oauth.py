"""Three-legged OAuth 1.0a (HMAC-SHA1) for the Tumblr API.

Covers the request-token and access-token legs plus per-request signing.
Every network call goes through the shared :class:`RequestScheduler`.
"""

import base64
import hashlib
import hmac
import logging
import threading
import time
from collections.abc import Callable, Iterable, Mapping
from typing import Any
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

import requests

from tgw.api.ratelimit import RateLimitTracker
from tgw.api.scheduler import RequestScheduler
from tgw.auth.cipher import constant_time_compare, generate_secure_token
from tgw.core.constants import (
    API_BASE_URL,
    DEFAULT_CALLBACK_URL,
    OAUTH_ACCESS_TOKEN_URL,
    OAUTH_AUTHORIZE_URL,
    OAUTH_REQUEST_TOKEN_URL,
    UNKNOWN_IDENTITY,
    OAuthConstants,
)
from tgw.core.logging import mask_token
from tgw.exceptions import APIError, AuthenticationFailure, ConfigurationError, NetworkError
from tgw.models.oauth import AuthorizationResult, OAuthCredential, RequestToken
from tgw.models.request import RequestSpec

logger = logging.getLogger(__name__)

SIGNATURE_METHOD = "HMAC-SHA1"
OAUTH_VERSION = "1.0"

ParamPairs = list[tuple[str, str]]


def percent_encode(value: Any) -> str:
    """RFC 3986 encoding: everything except ``A-Za-z0-9-._~`` is escaped."""
    return quote(str(value), safe="~")


def normalize_url(url: str) -> str:
    """Base string URI: lowercase scheme/host, no default port, no query."""
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    port = parts.port
    if port and not ((scheme == "http" and port == 80) or (scheme == "https" and port == 443)):
        host = f"{host}:{port}"
    return urlunsplit((scheme, host, parts.path or "/", "", ""))


def _as_pairs(params: Mapping[str, Any] | Iterable[tuple[str, Any]] | None) -> ParamPairs:
    if not params:
        return []
    items = params.items() if isinstance(params, Mapping) else params
    pairs: ParamPairs = []
    for key, value in items:
        if value is None:
            continue
        if isinstance(value, list | tuple):
            pairs.extend((str(key), str(v)) for v in value)
        elif isinstance(value, bool):
            pairs.append((str(key), "true" if value else "false"))
        else:
            pairs.append((str(key), str(value)))
    return pairs


def signature_base_string(method: str, url: str, params: Iterable[tuple[str, str]]) -> str:
    """Build the signature base string.

    Args:
        method: HTTP method
        url: Request URL; any query component is folded into the parameters
        params: Query, form and ``oauth_*`` parameters (without ``oauth_signature``)

    Returns:
        ``METHOD&enc(base_url)&enc(sorted_params)``

    """
    all_params = list(parse_qsl(urlsplit(url).query, keep_blank_values=True)) + list(params)
    encoded = sorted((percent_encode(k), percent_encode(v)) for k, v in all_params)
    normalized_params = "&".join(f"{k}={v}" for k, v in encoded)
    return "&".join(
        [method.upper(), percent_encode(normalize_url(url)), percent_encode(normalized_params)]
    )


def build_signature(base_string: str, consumer_secret: str, token_secret: str = "") -> str:
    """Base64 HMAC-SHA1 of the base string, keyed by both secrets."""
    key = f"{percent_encode(consumer_secret)}&{percent_encode(token_secret or '')}"
    digest = hmac.new(key.encode("utf-8"), base_string.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")


def _check_token_response(response: requests.Response, step: str) -> None:
    if response.status_code in (401, 403):
        raise AuthenticationFailure(
            f"Upstream rejected credentials in {step}", response.text, status_code=response.status_code
        )
    if response.status_code != 200:
        raise APIError(response.status_code, f"Unexpected response status {response.status_code} in {step}", response.text)


class OAuthSigner:
    """Signs requests and runs the authorization flow for one consumer."""

    def __init__(
        self,
        consumer_key: str,
        consumer_secret: str,
        scheduler: RequestScheduler | None = None,
        callback_url: str = DEFAULT_CALLBACK_URL,
        api_base_url: str = API_BASE_URL,
        tracker: RateLimitTracker | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the signer.

        Args:
            consumer_key: Application consumer key
            consumer_secret: Application consumer secret
            scheduler: Scheduler used for the token legs and identity lookup
            callback_url: URL the upstream redirects to after approval
            api_base_url: Base URL for the identity lookup
            tracker: Receives quota headers from identity lookups
            clock: Time source for timestamps and temporary token expiry

        """
        if not consumer_key or not consumer_secret:
            raise ConfigurationError("OAuth consumer key and secret must both be configured")

        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.scheduler = scheduler
        self.callback_url = callback_url
        self.api_base_url = api_base_url.rstrip("/")
        self.tracker = tracker
        self._clock = clock

        # Temporary secrets from step 1, keyed by request token
        self._pending: dict[str, RequestToken] = {}
        self._pending_lock = threading.Lock()

    def oauth_params(
        self,
        token: str | None = None,
        nonce: str | None = None,
        timestamp: int | None = None,
        extra: Mapping[str, str] | None = None,
    ) -> dict[str, str]:
        """Protocol parameters for one request, with a fresh nonce and timestamp."""
        params = {
            "oauth_consumer_key": self.consumer_key,
            "oauth_nonce": nonce or generate_secure_token(OAuthConstants.NONCE_BYTES),
            "oauth_signature_method": SIGNATURE_METHOD,
            "oauth_timestamp": str(timestamp if timestamp is not None else int(self._clock())),
            "oauth_version": OAUTH_VERSION,
        }
        if token:
            params["oauth_token"] = token
        if extra:
            params.update(extra)
        return params

    def sign(
        self,
        method: str,
        url: str,
        params: Mapping[str, Any] | None = None,
        token: str | None = None,
        token_secret: str = "",
        *,
        nonce: str | None = None,
        timestamp: int | None = None,
        extra_oauth: Mapping[str, str] | None = None,
    ) -> str:
        """Compute the ``Authorization`` header value for a request.

        Args:
            method: HTTP method
            url: Request URL
            params: Query or form parameters sent with the request
            token: Access or request token (absent for the request-token leg)
            token_secret: Matching token secret, empty for the request-token leg
            nonce: Fixed nonce, generated when omitted
            timestamp: Fixed timestamp, current time when omitted
            extra_oauth: Additional ``oauth_*`` parameters (callback, verifier)

        Returns:
            ``OAuth key="value", ...`` header value

        """
        protocol = self.oauth_params(token, nonce=nonce, timestamp=timestamp, extra=extra_oauth)
        base_string = signature_base_string(method, url, _as_pairs(params) + list(protocol.items()))
        protocol["oauth_signature"] = build_signature(base_string, self.consumer_secret, token_secret)

        header_params = ", ".join(
            f'{percent_encode(k)}="{percent_encode(v)}"' for k, v in sorted(protocol.items())
        )
        return f"OAuth {header_params}"

    def signed_request(
        self,
        method: str,
        url: str,
        credential: OAuthCredential,
        params: Mapping[str, Any] | None = None,
    ) -> RequestSpec:
        """Build a scheduler request signed with an access credential."""
        pairs = dict(_as_pairs(params))
        header = self.sign(method, url, pairs, credential.token, credential.token_secret)
        if method.upper() in ("POST", "PUT"):
            return RequestSpec(method=method, url=url, data=pairs, headers={"Authorization": header})
        return RequestSpec(method=method, url=url, params=pairs, headers={"Authorization": header})

    def _dispatch(self, spec: RequestSpec, step: str) -> requests.Response:
        if self.scheduler is None:
            raise ConfigurationError("OAuth signer has no request scheduler")
        try:
            return self.scheduler.submit(spec)
        except requests.RequestException as e:
            raise NetworkError(f"Network failure in {step}: {e}", spec.url) from e

    def _purge_expired(self) -> None:
        cutoff = self._clock() - OAuthConstants.REQUEST_TOKEN_TTL
        with self._pending_lock:
            expired = [token for token, pending in self._pending.items() if pending.obtained_at < cutoff]
            for token in expired:
                del self._pending[token]
        if expired:
            logger.debug(f"Dropped {len(expired)} expired request tokens")

    def begin_authorization(self) -> RequestToken:
        """Obtain a request token and the URL the user must visit.

        Raises:
            AuthenticationFailure: If the consumer credentials are rejected
            NetworkError: If the upstream is unreachable

        """
        self._purge_expired()
        header = self.sign(
            "POST",
            OAUTH_REQUEST_TOKEN_URL,
            token_secret="",
            extra_oauth={"oauth_callback": self.callback_url},
        )
        response = self._dispatch(
            RequestSpec(method="POST", url=OAUTH_REQUEST_TOKEN_URL, headers={"Authorization": header}),
            "request token",
        )
        _check_token_response(response, "request token")

        payload = dict(parse_qsl(response.text))
        token = payload.get("oauth_token")
        token_secret = payload.get("oauth_token_secret")
        if not token or not token_secret:
            raise APIError(response.status_code, "Request token response is missing credentials", response.text)

        request_token = RequestToken(
            token=token,
            token_secret=token_secret,
            authorize_url=f"{OAUTH_AUTHORIZE_URL}?{urlencode({'oauth_token': token})}",
            obtained_at=self._clock(),
        )
        with self._pending_lock:
            self._pending[token] = request_token

        logger.info(f"Request token obtained: {mask_token(token)}")
        return request_token

    def complete_authorization(self, request_token: str, verifier: str) -> AuthorizationResult:
        """Exchange an approved request token and verifier for an access token.

        Raises:
            AuthenticationFailure: If the request token is unknown, expired or rejected
            NetworkError: If the upstream is unreachable

        """
        self._purge_expired()
        with self._pending_lock:
            pending = next(
                (entry for token, entry in self._pending.items() if constant_time_compare(token, request_token)),
                None,
            )
        if pending is None:
            raise AuthenticationFailure("Request token not found or expired")

        header = self.sign(
            "POST",
            OAUTH_ACCESS_TOKEN_URL,
            token=pending.token,
            token_secret=pending.token_secret,
            extra_oauth={"oauth_verifier": verifier},
        )
        response = self._dispatch(
            RequestSpec(method="POST", url=OAUTH_ACCESS_TOKEN_URL, headers={"Authorization": header}),
            "access token",
        )
        _check_token_response(response, "access token")

        payload = dict(parse_qsl(response.text))
        access_token = payload.get("oauth_token")
        access_token_secret = payload.get("oauth_token_secret")
        if not access_token or not access_token_secret:
            raise APIError(response.status_code, "Access token response is missing credentials", response.text)

        with self._pending_lock:
            self._pending.pop(request_token, None)
        logger.info("Access token obtained")

        credential = OAuthCredential(token=access_token, token_secret=access_token_secret)
        identity = self.resolve_identity(credential)
        return AuthorizationResult(
            access_token=access_token,
            access_token_secret=access_token_secret,
            resolved_identity=identity,
        )

    def resolve_identity(self, credential: OAuthCredential) -> str:
        """Primary blog name of the credential's user, or ``"unknown"``."""
        spec = self.signed_request("GET", f"{self.api_base_url}/user/info", credential)
        try:
            response = self._dispatch(spec, "user info")
            if self.tracker:
                self.tracker.ingest(response.headers)
            _check_token_response(response, "user info")
            user = response.json().get("response", {}).get("user", {})
        except (APIError, NetworkError, ValueError) as e:
            logger.error(f"Could not resolve identity, using fallback: {e}")
            return UNKNOWN_IDENTITY

        blogs = user.get("blogs") or []
        identity = (blogs[0].get("name") if blogs else None) or user.get("name") or UNKNOWN_IDENTITY
        logger.info(f"Resolved identity: {identity}")
        return identity

    @property
    def pending_count(self) -> int:
        """Request tokens awaiting completion."""
        with self._pending_lock:
            return len(self._pending)
