"""Encrypted per-user OAuth credential storage."""

import logging
import time
from pathlib import Path

from tgw.auth.cipher import TokenCipher
from tgw.cache.base import SimpleCacheManager
from tgw.exceptions import CryptoIntegrityError
from tgw.models.cache import StoredCredential
from tgw.models.oauth import OAuthCredential

logger = logging.getLogger(__name__)


class CredentialStore(SimpleCacheManager):
    """Persists OAuth credential pairs encrypted with a :class:`TokenCipher`.

    Plaintext tokens never touch disk; the gateway receives them decrypted
    from :meth:`load_credential`.
    """

    def __init__(self, data_dir: Path, cipher: TokenCipher) -> None:
        """Initialize credential storage."""
        super().__init__(data_dir, cache_subdir="credentials")
        self.cipher = cipher

    @staticmethod
    def _key(user_id: str) -> str:
        return f"user_{user_id}"

    def save_credential(self, user_id: str, credential: OAuthCredential, identity: str | None = None) -> None:
        """Encrypt and store a user's credential pair."""
        encrypted_token, encrypted_secret = self.cipher.encrypt_token_pair(credential.token, credential.token_secret)
        record = StoredCredential(
            encrypted_token=encrypted_token,
            encrypted_token_secret=encrypted_secret,
            identity=identity,
            connected_at=time.time(),
        )
        self.save(self._key(user_id), record.model_dump())
        logger.info(f"Stored encrypted credential for user {user_id}")

    def get_record(self, user_id: str) -> StoredCredential | None:
        """Stored (still encrypted) record for a user."""
        data = self.load(self._key(user_id))
        if not data or not isinstance(data, dict):
            return None
        return StoredCredential.model_validate(data)

    def load_credential(self, user_id: str) -> OAuthCredential | None:
        """Decrypt a user's credential pair.

        Returns:
            The credential, or None when the user never connected

        Raises:
            CryptoIntegrityError: If the stored pair fails verification; the
                record is deleted so the user must authorize again

        """
        record = self.get_record(user_id)
        if record is None:
            return None

        try:
            token, token_secret = self.cipher.decrypt_token_pair(
                record.encrypted_token, record.encrypted_token_secret
            )
        except CryptoIntegrityError:
            logger.error(f"Stored credential for user {user_id} failed integrity check, removing it")
            self.delete_credential(user_id)
            raise

        return OAuthCredential(token=token, token_secret=token_secret, obtained_at=record.connected_at)

    def delete_credential(self, user_id: str) -> bool:
        """Forget a user's credential (disconnect)."""
        deleted = self.delete_item(self._key(user_id))
        if deleted:
            logger.info(f"Deleted credential for user {user_id}")
        return deleted
