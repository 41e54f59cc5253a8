"""Tests for the tgw CLI."""

import json

import pytest
from typer.testing import CliRunner

from tests.conftest import ENCRYPTION_SECRET, envelope, make_response
from tests.test_pagination import FakeLikesUpstream
from tgw.auth.cipher import TokenCipher
from tgw.cache.credentials import CredentialStore
from tgw.cli.commands.likes import quota_wait
from tgw.cli.main import app
from tgw.exceptions import QuotaExceededError
from tgw.models.oauth import OAuthCredential

runner = CliRunner()


@pytest.fixture
def data_dir(monkeypatch, tmp_path, session):
    data_dir = tmp_path / "data"
    monkeypatch.setenv("TGW_API_KEY", "test-consumer-key")
    monkeypatch.setenv("TGW_CONSUMER_SECRET", "test-consumer-secret")
    monkeypatch.setenv("TGW_ENCRYPTION_SECRET", ENCRYPTION_SECRET)
    monkeypatch.setenv("TGW_DATA_DIR", str(data_dir))
    monkeypatch.setenv("TGW_REQUEST_DELAY_MS", "0")
    monkeypatch.setattr("tgw.api.scheduler.requests.Session", lambda: session)
    return data_dir


@pytest.fixture
def connected_user(data_dir):
    store = CredentialStore(data_dir, TokenCipher(ENCRYPTION_SECRET))
    store.save_credential("u1", OAuthCredential(token="tok", token_secret="sec"), identity="mine")
    store.close()
    return "u1"


class TestMain:
    """Test cases for the top-level app."""

    def test_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("connect", "disconnect", "blog", "likes", "stats", "serve"):
            assert command in result.output

    def test_missing_configuration(self, data_dir, monkeypatch):
        monkeypatch.setenv("TGW_API_KEY", "")
        result = runner.invoke(app, ["stats"])
        assert result.exit_code == 1
        assert "Configuration error" in result.output

    def test_short_encryption_secret(self, data_dir, monkeypatch):
        monkeypatch.setenv("TGW_ENCRYPTION_SECRET", "too-short")
        result = runner.invoke(app, ["stats"])
        assert result.exit_code == 1


class TestConnectCommands:
    """Test cases for connect and disconnect."""

    def test_connect(self, data_dir, session):
        session.queue(
            make_response(text="oauth_token=req&oauth_token_secret=req-secret"),
            make_response(text="oauth_token=acc&oauth_token_secret=acc-secret"),
            make_response(payload=envelope({"user": {"name": "x", "blogs": [{"name": "primary"}]}})),
        )

        result = runner.invoke(app, ["connect", "--user-id", "u1"], input="the-verifier\n")

        assert result.exit_code == 0, result.output
        assert "oauth_token=req" in result.output
        assert "primary" in result.output

        store = CredentialStore(data_dir, TokenCipher(ENCRYPTION_SECRET))
        try:
            assert store.load_credential("u1").token == "acc"
        finally:
            store.close()

    def test_connect_rejected(self, data_dir, session):
        session.queue(make_response(status_code=401, text="oauth_problem=consumer_key_rejected"))
        result = runner.invoke(app, ["connect", "--user-id", "u1"])
        assert result.exit_code == 1
        assert "Could not start authorization" in result.output

    def test_disconnect(self, connected_user):
        result = runner.invoke(app, ["disconnect", "--user-id", connected_user])
        assert result.exit_code == 0
        assert "Disconnected" in result.output

        result = runner.invoke(app, ["disconnect", "--user-id", connected_user])
        assert "No Tumblr account connected" in result.output


class TestBlogCommand:
    """Test cases for blog info."""

    def test_table(self, data_dir, session):
        session.queue(make_response(payload=envelope({"blog": {"name": "staff", "title": "Tumblr Staff", "posts": 12}})))
        result = runner.invoke(app, ["blog", "staff"])
        assert result.exit_code == 0
        assert "Tumblr Staff" in result.output

    def test_json_file(self, data_dir, session, tmp_path):
        session.queue(make_response(payload=envelope({"blog": {"name": "staff", "posts": 12}})))
        output = tmp_path / "blog.json"

        result = runner.invoke(app, ["blog", "staff", "--format", "json", "--output", str(output)])

        assert result.exit_code == 0
        assert json.loads(output.read_text()) == {"name": "staff", "posts": 12}

    def test_upstream_error(self, data_dir, session):
        session.queue(make_response(status_code=404, payload=envelope({}, status=404, msg="Not Found")))
        result = runner.invoke(app, ["blog", "missing"])
        assert result.exit_code == 1


class TestLikesCommand:
    """Test cases for the likes command."""

    def test_requires_connected_user(self, data_dir):
        result = runner.invoke(app, ["likes", "staff", "--user-id", "nobody"])
        assert result.exit_code == 1
        assert "No Tumblr account connected" in result.output

    def test_single_page(self, connected_user, session):
        session.handler = FakeLikesUpstream(30)
        result = runner.invoke(app, ["likes", "staff", "--user-id", connected_user, "--page", "2"])
        assert result.exit_code == 0, result.output
        assert "blog21" in result.output
        assert "blog1 " not in result.output

    def test_page_past_ceiling(self, connected_user, session):
        result = runner.invoke(app, ["likes", "staff", "--user-id", connected_user, "--page", "70"])
        assert result.exit_code == 1
        assert session.calls == []

    def test_walk_all_to_json(self, connected_user, session, tmp_path):
        session.handler = FakeLikesUpstream(45)
        output = tmp_path / "likes.json"

        result = runner.invoke(
            app, ["likes", "staff", "--user-id", connected_user, "--all", "--format", "json", "--output", str(output)]
        )

        assert result.exit_code == 0, result.output
        posts = json.loads(output.read_text())
        assert [post["id"] for post in posts] == list(range(1, 46))

    def test_walk_all_retries_on_quota(self, connected_user, session, tmp_path):
        upstream = FakeLikesUpstream(25)
        attempts = []

        def handler(method, url, **kwargs):
            attempts.append(kwargs["params"])
            if len(attempts) == 2:
                return make_response(status_code=429, payload=envelope({}, status=429), headers={"Retry-After": "0"})
            return upstream(method, url, **kwargs)

        session.handler = handler
        output = tmp_path / "likes.csv"

        result = runner.invoke(
            app, ["likes", "staff", "--user-id", connected_user, "--all", "--format", "csv", "--output", str(output)]
        )

        assert result.exit_code == 0, result.output
        assert attempts[1] == attempts[2]
        lines = output.read_text().strip().splitlines()
        assert lines[0].startswith("id,blog_name,type")
        assert len(lines) == 26


class TestStatsCommand:
    """Test cases for the stats command."""

    def test_local_counter_only(self, data_dir):
        result = runner.invoke(app, ["stats"])
        assert result.exit_code == 0
        assert "internal" in result.output

    def test_with_quota_check(self, connected_user, session):
        session.queue(
            make_response(
                payload=envelope({"user": {"name": "x"}}),
                headers={"X-RateLimit-Limit": "5000", "X-RateLimit-Remaining": "4900"},
            )
        )
        result = runner.invoke(app, ["stats", "--user-id", connected_user, "--format", "json"])
        assert result.exit_code == 0
        assert '"remaining": 4900' in result.output
        assert '"source": "upstream"' in result.output


class TestQuotaWait:
    """Test cases for the retry wait."""

    @pytest.mark.parametrize(("retry_after", "wait"), [(None, 60.0), (5, 5.0), (0, 0.0), (10_000, 300.0)])
    def test_quota_wait(self, retry_after, wait):
        assert quota_wait(QuotaExceededError(retry_after=retry_after)) == wait
