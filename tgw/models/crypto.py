"""Encrypted credential blob model."""

import binascii

from pydantic import BaseModel, ConfigDict

from tgw.core.constants import CryptoConstants
from tgw.exceptions import CryptoIntegrityError


class EncryptedBlob(BaseModel):
    """AES-256-GCM output with the parameters needed to decrypt it.

    Serialized as ``salt:iv:tag:ciphertext``, each segment hex encoded.
    """

    model_config = ConfigDict(frozen=True)

    salt: bytes
    iv: bytes
    auth_tag: bytes
    ciphertext: bytes

    def serialize(self) -> str:
        """Encode as four colon-joined hex segments."""
        return ":".join(part.hex() for part in (self.salt, self.iv, self.auth_tag, self.ciphertext))

    def __str__(self) -> str:
        return self.serialize()

    @classmethod
    def parse(cls, data: str) -> "EncryptedBlob":
        """Decode a serialized blob.

        Raises:
            CryptoIntegrityError: If the blob is malformed

        """
        parts = data.split(":")
        if len(parts) != 4:
            raise CryptoIntegrityError("Invalid encrypted data format")

        try:
            salt, iv, tag, ciphertext = (bytes.fromhex(part) for part in parts)
        except (ValueError, binascii.Error) as e:
            raise CryptoIntegrityError("Encrypted data is not valid hex") from e

        if (
            len(salt) != CryptoConstants.SALT_LENGTH
            or len(iv) != CryptoConstants.IV_LENGTH
            or len(tag) != CryptoConstants.TAG_LENGTH
        ):
            raise CryptoIntegrityError("Encrypted data has unexpected segment lengths")

        return cls(salt=salt, iv=iv, auth_tag=tag, ciphertext=ciphertext)
