"""Tests for the on-disk credential store and daily call counter."""

from datetime import date

import pytest

from tests.conftest import ENCRYPTION_SECRET
from tgw.auth.cipher import TokenCipher
from tgw.cache.credentials import CredentialStore
from tgw.cache.usage import DailyCallCounter
from tgw.exceptions import CryptoIntegrityError
from tgw.models.oauth import OAuthCredential


@pytest.fixture
def store(tmp_path):
    store = CredentialStore(tmp_path, TokenCipher(ENCRYPTION_SECRET))
    yield store
    store.close()


class TestCredentialStore:
    """Test cases for CredentialStore."""

    def test_save_and_load(self, store):
        store.save_credential("42", OAuthCredential(token="tok", token_secret="sec"), identity="primaryblog")

        credential = store.load_credential("42")

        assert credential.token == "tok"
        assert credential.token_secret == "sec"
        assert store.get_record("42").identity == "primaryblog"

    def test_plaintext_never_stored(self, store):
        store.save_credential("42", OAuthCredential(token="plain-token", token_secret="plain-secret"))
        record = store.get_record("42")
        assert "plain-token" not in record.encrypted_token
        assert "plain-secret" not in record.encrypted_token_secret
        assert len(record.encrypted_token.split(":")) == 4

    def test_missing_user(self, store):
        assert store.load_credential("nobody") is None
        assert store.get_record("nobody") is None

    def test_tampered_record_deleted_and_raised(self, store):
        store.save_credential("42", OAuthCredential(token="tok", token_secret="sec"))
        data = store.load("user_42")
        salt, iv, tag, ciphertext = data["encrypted_token"].split(":")
        flipped = format(int(tag[:2], 16) ^ 1, "02x") + tag[2:]
        data["encrypted_token"] = ":".join([salt, iv, flipped, ciphertext])
        store.save("user_42", data)

        with pytest.raises(CryptoIntegrityError):
            store.load_credential("42")
        assert store.get_record("42") is None

    def test_wrong_secret_deleted_and_raised(self, tmp_path, store):
        store.save_credential("42", OAuthCredential(token="tok", token_secret="sec"))
        other = CredentialStore(tmp_path, TokenCipher("x" * 40))
        try:
            with pytest.raises(CryptoIntegrityError):
                other.load_credential("42")
            assert not other.exists("user_42")
        finally:
            other.close()

    def test_delete(self, store):
        store.save_credential("42", OAuthCredential(token="tok", token_secret="sec"))
        assert store.delete_credential("42")
        assert not store.delete_credential("42")
        assert store.load_credential("42") is None

    def test_persists_across_instances(self, tmp_path, store):
        store.save_credential("7", OAuthCredential(token="tok", token_secret="sec"))
        store.close()

        reopened = CredentialStore(tmp_path, TokenCipher(ENCRYPTION_SECRET))
        try:
            assert reopened.load_credential("7").token == "tok"
        finally:
            reopened.close()


class TestDailyCallCounter:
    """Test cases for DailyCallCounter."""

    def test_increment(self, counter):
        assert counter.get_count() == 0
        assert counter.increment() == 1
        assert counter.increment() == 2
        assert counter.get_count() == 2

    def test_days_are_separate(self, counter):
        counter.increment(date(2024, 1, 1))
        counter.increment(date(2024, 1, 1))
        counter.increment(date(2024, 1, 2))
        assert counter.get_count(date(2024, 1, 1)) == 2
        assert counter.get_count(date(2024, 1, 2)) == 1
        assert counter.exists("2024-01-01")

    def test_persists(self, tmp_path):
        counter = DailyCallCounter(tmp_path)
        counter.increment()
        counter.close()

        reopened = DailyCallCounter(tmp_path)
        try:
            assert reopened.get_count() == 1
        finally:
            reopened.close()
