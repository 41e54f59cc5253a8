"""Tests for OAuth 1.0a signing and the authorization flow."""

from urllib.parse import parse_qsl

import pytest
import requests

from tests.conftest import FakeClock, envelope, make_response
from tgw.auth.oauth import (
    OAuthSigner,
    build_signature,
    normalize_url,
    percent_encode,
    signature_base_string,
)
from tgw.exceptions import APIError, AuthenticationFailure, ConfigurationError, NetworkError
from tgw.models.oauth import OAuthCredential


def header_params(header: str) -> dict[str, str]:
    assert header.startswith("OAuth ")
    params = {}
    for part in header[len("OAuth ") :].split(", "):
        key, value = part.split("=", 1)
        params[key] = value.strip('"')
    return params


class TestSigningPrimitives:
    """Test cases for percent encoding, URL normalization and base strings."""

    @pytest.mark.parametrize(
        ("raw", "encoded"),
        [
            ("abcABC123-._~", "abcABC123-._~"),
            (" ", "%20"),
            ("+", "%2B"),
            ("/", "%2F"),
            ("*", "%2A"),
            ("!", "%21"),
            ("é", "%C3%A9"),
        ],
    )
    def test_percent_encode(self, raw, encoded):
        assert percent_encode(raw) == encoded

    def test_normalize_url(self):
        assert normalize_url("HTTP://Example.COM:80/r%20v/X?id=123") == "http://example.com/r%20v/X"
        assert normalize_url("https://example.com:443/a") == "https://example.com/a"
        assert normalize_url("https://example.com:8443/a") == "https://example.com:8443/a"

    def test_reference_base_string(self):
        params = [
            ("file", "vacation.jpg"),
            ("size", "original"),
            ("oauth_consumer_key", "dpf43f3p2l4k3l03"),
            ("oauth_token", "nnch734d00sl2jdk"),
            ("oauth_signature_method", "HMAC-SHA1"),
            ("oauth_timestamp", "1191242096"),
            ("oauth_nonce", "kllo9940pd9333jh"),
            ("oauth_version", "1.0"),
        ]
        assert signature_base_string("GET", "http://photos.example.net/photos", params) == (
            "GET&http%3A%2F%2Fphotos.example.net%2Fphotos&file%3Dvacation.jpg%26oauth_consumer_key%3Ddpf43f3p2l4k3l03"
            "%26oauth_nonce%3Dkllo9940pd9333jh%26oauth_signature_method%3DHMAC-SHA1%26oauth_timestamp%3D1191242096"
            "%26oauth_token%3Dnnch734d00sl2jdk%26oauth_version%3D1.0%26size%3Doriginal"
        )

    def test_query_string_folded_into_base_string(self):
        from_query = signature_base_string("GET", "https://a.test/x?b=2&a=1", [])
        from_params = signature_base_string("GET", "https://a.test/x", [("a", "1"), ("b", "2")])
        assert from_query == from_params

    def test_empty_token_secret_key(self):
        assert build_signature("base", "secret") == build_signature("base", "secret", "")


class TestOAuthSigner:
    """Test cases for request signing against published reference vectors."""

    def test_photos_reference_vector(self):
        signer = OAuthSigner("dpf43f3p2l4k3l03", "kd94hf93k423kf44")
        header = signer.sign(
            "GET",
            "http://photos.example.net/photos",
            {"file": "vacation.jpg", "size": "original"},
            token="nnch734d00sl2jdk",
            token_secret="pfkkdhi9sl3r4s00",
            nonce="kllo9940pd9333jh",
            timestamp=1191242096,
        )
        params = header_params(header)
        assert params["oauth_signature"] == percent_encode("tR3+Ty81lMeYAr/Fid0kMTYa/WM=")
        assert params["oauth_signature_method"] == "HMAC-SHA1"
        assert params["oauth_version"] == "1.0"
        assert "file" not in params

    def test_twitter_reference_vector(self):
        signer = OAuthSigner("xvz1evFS4wEEPTGEFPHBog", "kAcSOqF21Fu85e7zjz7ZN2U4ZRhfV3WpwPAoE3Z7kBw")
        header = signer.sign(
            "POST",
            "https://api.twitter.com/1.1/statuses/update.json",
            {"include_entities": "true", "status": "Hello Ladies + Gentlemen, a signed OAuth request!"},
            token="370773112-GmHxMAgYyLbNEtIKZeRNFsMKPR9EyMZeS9weJAEb",
            token_secret="LswwdoUaIvS8ltyTt5jkRh4J50vUPVVHtR2YPi5kE",
            nonce="kYjzVBB8Y0ZFabxSWbWovY3uYSQ2pTgmZeNu2VS4cg",
            timestamp=1318622958,
        )
        assert header_params(header)["oauth_signature"] == percent_encode("hCtSmYh+iHYCEqBWrE7C7hYmtUk=")

    def test_deterministic_for_fixed_inputs(self):
        signer = OAuthSigner("key", "secret")
        kwargs = {"token": "t", "token_secret": "ts", "nonce": "n", "timestamp": 1}
        assert signer.sign("GET", "https://a.test/x", {"q": 1}, **kwargs) == signer.sign(
            "GET", "https://a.test/x", {"q": 1}, **kwargs
        )

    def test_fresh_nonce_and_timestamp(self):
        clock = FakeClock(1234.9)
        signer = OAuthSigner("key", "secret", clock=clock)
        first = header_params(signer.sign("GET", "https://a.test/x"))
        second = header_params(signer.sign("GET", "https://a.test/x"))
        assert first["oauth_nonce"] != second["oauth_nonce"]
        assert len(first["oauth_nonce"]) == 32
        assert int(first["oauth_nonce"], 16) >= 0
        assert first["oauth_timestamp"] == "1234"
        assert "oauth_token" not in first

    def test_signed_request_get_uses_query(self):
        signer = OAuthSigner("key", "secret")
        spec = signer.signed_request("GET", "https://a.test/x", OAuthCredential(token="t", token_secret="s"), {"limit": 20, "skip": None})
        assert spec.params == {"limit": "20"}
        assert spec.data is None
        assert header_params(spec.headers["Authorization"])["oauth_token"] == "t"

    def test_signed_request_post_uses_body(self):
        signer = OAuthSigner("key", "secret")
        spec = signer.signed_request("POST", "https://a.test/x", OAuthCredential(token="t", token_secret="s"), {"a": "b"})
        assert spec.data == {"a": "b"}
        assert spec.params == {}

    @pytest.mark.parametrize(("key", "secret"), [("", "secret"), ("key", "")])
    def test_missing_consumer_credentials(self, key, secret):
        with pytest.raises(ConfigurationError):
            OAuthSigner(key, secret)


class TestAuthorizationFlow:
    """Test cases for the three-legged flow through the scheduler."""

    @pytest.fixture
    def flow_signer(self, scheduler, tracker, clock):
        return OAuthSigner(
            "consumer",
            "consumer-secret",
            scheduler=scheduler,
            tracker=tracker,
            callback_url="http://localhost:5173/auth/tumblr/callback",
            clock=clock,
        )

    def test_begin_authorization(self, flow_signer, session):
        session.queue(make_response(text="oauth_token=req-token&oauth_token_secret=req-secret&oauth_callback_confirmed=true"))

        request_token = flow_signer.begin_authorization()

        assert request_token.token == "req-token"
        assert request_token.token_secret == "req-secret"
        assert request_token.authorize_url == "https://www.tumblr.com/oauth/authorize?oauth_token=req-token"
        assert flow_signer.pending_count == 1

        call = session.calls[0]
        assert call["method"] == "POST"
        assert call["url"] == "https://www.tumblr.com/oauth/request_token"
        params = header_params(call["headers"]["Authorization"])
        assert params["oauth_callback"] == percent_encode("http://localhost:5173/auth/tumblr/callback")
        assert "oauth_token" not in params

    def test_complete_authorization_resolves_identity(self, flow_signer, session, tracker):
        session.queue(
            make_response(text="oauth_token=req-token&oauth_token_secret=req-secret"),
            make_response(text="oauth_token=access-token&oauth_token_secret=access-secret"),
            make_response(
                payload=envelope({"user": {"name": "someone", "blogs": [{"name": "primaryblog"}, {"name": "side"}]}}),
                headers={"X-RateLimit-Remaining": "4321"},
            ),
        )
        flow_signer.begin_authorization()

        result = flow_signer.complete_authorization("req-token", "verifier-123")

        assert result.access_token == "access-token"
        assert result.access_token_secret == "access-secret"
        assert result.resolved_identity == "primaryblog"
        assert result.to_credential().token == "access-token"
        assert flow_signer.pending_count == 0
        assert tracker.current_state().remaining == 4321

        access_params = header_params(session.calls[1]["headers"]["Authorization"])
        assert access_params["oauth_token"] == "req-token"
        assert access_params["oauth_verifier"] == "verifier-123"
        assert session.calls[2]["url"] == "https://api.tumblr.com/v2/user/info"
        assert header_params(session.calls[2]["headers"]["Authorization"])["oauth_token"] == "access-token"

    def test_identity_fallback(self, flow_signer, session):
        session.queue(
            make_response(text="oauth_token=rt&oauth_token_secret=rs"),
            make_response(text="oauth_token=at&oauth_token_secret=as"),
            make_response(status_code=500, text="upstream down"),
        )
        flow_signer.begin_authorization()
        assert flow_signer.complete_authorization("rt", "v").resolved_identity == "unknown"

    def test_unknown_request_token(self, flow_signer, session):
        with pytest.raises(AuthenticationFailure):
            flow_signer.complete_authorization("never-issued", "v")
        assert session.calls == []

    def test_request_token_must_match_exactly(self, flow_signer, session):
        session.queue(make_response(text="oauth_token=rt&oauth_token_secret=rs"))
        flow_signer.begin_authorization()

        with pytest.raises(AuthenticationFailure):
            flow_signer.complete_authorization("r", "v")
        assert flow_signer.pending_count == 1
        assert len(session.calls) == 1

    def test_expired_request_token(self, flow_signer, session, clock):
        session.queue(make_response(text="oauth_token=rt&oauth_token_secret=rs"))
        flow_signer.begin_authorization()

        clock.advance(3601)
        with pytest.raises(AuthenticationFailure):
            flow_signer.complete_authorization("rt", "v")
        assert flow_signer.pending_count == 0
        assert len(session.calls) == 1

    def test_rejected_consumer(self, flow_signer, session):
        session.queue(make_response(status_code=401, text="oauth_problem=consumer_key_rejected"))
        with pytest.raises(AuthenticationFailure) as exc_info:
            flow_signer.begin_authorization()
        assert exc_info.value.status_code == 401

    def test_malformed_token_response(self, flow_signer, session):
        session.queue(make_response(text="nothing useful"))
        with pytest.raises(APIError):
            flow_signer.begin_authorization()

    def test_network_failure(self, flow_signer, session):
        session.queue(requests.ConnectionError("unreachable"))
        with pytest.raises(NetworkError):
            flow_signer.begin_authorization()

    def test_rejected_verifier_keeps_pending_token(self, flow_signer, session):
        session.queue(
            make_response(text="oauth_token=rt&oauth_token_secret=rs"),
            make_response(status_code=401, text="oauth_problem=verifier_invalid"),
        )
        flow_signer.begin_authorization()
        with pytest.raises(AuthenticationFailure):
            flow_signer.complete_authorization("rt", "wrong")
        assert flow_signer.pending_count == 1

    def test_form_body_parsing(self, flow_signer, session):
        session.queue(make_response(text="oauth_token=a%2Bb&oauth_token_secret=c%3Dd"))
        request_token = flow_signer.begin_authorization()
        assert (request_token.token, request_token.token_secret) == tuple(
            value for _, value in parse_qsl("oauth_token=a%2Bb&oauth_token_secret=c%3Dd")
        )
