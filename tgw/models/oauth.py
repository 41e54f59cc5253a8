"""OAuth credential models."""

import time

from pydantic import BaseModel, Field


class OAuthCredential(BaseModel):
    """Permanent access credential held by a caller session."""

    token: str
    token_secret: str
    obtained_at: float = Field(default_factory=time.time)


class RequestToken(BaseModel):
    """Temporary credential from the first leg of the OAuth flow."""

    token: str
    token_secret: str
    authorize_url: str
    obtained_at: float = Field(default_factory=time.time)


class AuthorizationResult(BaseModel):
    """Outcome of exchanging an approved request token."""

    access_token: str
    access_token_secret: str
    resolved_identity: str

    def to_credential(self) -> OAuthCredential:
        """Build the credential a caller keeps for signed requests."""
        return OAuthCredential(token=self.access_token, token_secret=self.access_token_secret)
