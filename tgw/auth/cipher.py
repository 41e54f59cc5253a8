"""At-rest encryption for OAuth credentials.

Keys are derived with PBKDF2-HMAC-SHA512 from an operator secret and a fresh
salt per encryption; payloads are sealed with AES-256-GCM. Decryption verifies
the authentication tag before any plaintext is released.
"""

import hashlib
import hmac
import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from tgw.core.constants import CryptoConstants
from tgw.exceptions import ConfigurationError, CryptoIntegrityError, ValidationError
from tgw.models.crypto import EncryptedBlob

logger = logging.getLogger(__name__)


class TokenCipher:
    """Authenticated symmetric encryption keyed by an operator secret."""

    def __init__(self, secret: str | None) -> None:
        """Initialize the cipher.

        Args:
            secret: Operator-supplied secret, at least 32 characters

        Raises:
            ConfigurationError: If the secret is missing or too short

        """
        if not secret:
            raise ConfigurationError("Encryption secret is not set")
        if len(secret) < CryptoConstants.MIN_SECRET_LENGTH:
            raise ConfigurationError(
                f"Encryption secret must be at least {int(CryptoConstants.MIN_SECRET_LENGTH)} characters"
            )
        self._secret = secret.encode("utf-8")

    def _derive_key(self, salt: bytes) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA512(),
            length=int(CryptoConstants.KEY_LENGTH),
            salt=salt,
            iterations=int(CryptoConstants.PBKDF2_ITERATIONS),
        )
        return kdf.derive(self._secret)

    def encrypt(self, plaintext: str) -> EncryptedBlob:
        """Encrypt a string with a fresh salt and IV.

        Args:
            plaintext: Non-empty text to encrypt

        Returns:
            The sealed blob

        """
        if not plaintext:
            raise ValidationError("plaintext", plaintext, "Cannot encrypt an empty value")

        salt = os.urandom(CryptoConstants.SALT_LENGTH)
        iv = os.urandom(CryptoConstants.IV_LENGTH)
        key = self._derive_key(salt)

        # AESGCM appends the tag to the ciphertext
        sealed = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[: -CryptoConstants.TAG_LENGTH], sealed[-CryptoConstants.TAG_LENGTH :]

        return EncryptedBlob(salt=salt, iv=iv, auth_tag=tag, ciphertext=ciphertext)

    def decrypt(self, blob: EncryptedBlob | str) -> str:
        """Decrypt a blob, failing closed when the tag does not verify.

        Args:
            blob: Blob or its serialized ``salt:iv:tag:ciphertext`` form

        Returns:
            The original plaintext

        Raises:
            CryptoIntegrityError: If the blob is malformed or was tampered with

        """
        if isinstance(blob, str):
            blob = EncryptedBlob.parse(blob)

        key = self._derive_key(blob.salt)
        try:
            plaintext = AESGCM(key).decrypt(blob.iv, blob.ciphertext + blob.auth_tag, None)
        except InvalidTag as e:
            logger.error("Credential failed integrity check")
            raise CryptoIntegrityError("Encrypted data failed authentication") from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CryptoIntegrityError("Decrypted data is not valid UTF-8") from e

    def encrypt_token_pair(self, token: str, token_secret: str) -> tuple[str, str]:
        """Encrypt an OAuth token and its secret for storage."""
        return self.encrypt(token).serialize(), self.encrypt(token_secret).serialize()

    def decrypt_token_pair(self, encrypted_token: str, encrypted_token_secret: str) -> tuple[str, str]:
        """Decrypt a stored OAuth token pair."""
        return self.decrypt(encrypted_token), self.decrypt(encrypted_token_secret)


def constant_time_compare(a: str, b: str) -> bool:
    """Compare two strings without leaking where they differ."""
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def generate_secure_token(length: int = CryptoConstants.SECURE_TOKEN_BYTES) -> str:
    """Random hex token of ``length`` bytes."""
    return os.urandom(length).hex()


def hash_value(value: str) -> str:
    """SHA-256 hex digest for non-secret one-way hashing."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()
