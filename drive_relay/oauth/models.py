# drive_relay/oauth/models.py
from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone, timedelta
import secrets

# RFC 6749 does not fix a length; 16 bytes is the floor for handshake nonces
STATE_NONCE_BYTES = 16


def generate_state_nonce(num_bytes: int = STATE_NONCE_BYTES) -> str:
    """Generate a cryptographically random, URL-safe OAuth state nonce."""
    if num_bytes < STATE_NONCE_BYTES:
        raise ValueError(f"State nonce must carry at least {STATE_NONCE_BYTES} random bytes.")
    return secrets.token_urlsafe(num_bytes)


class Credential(BaseModel):
    """OAuth token set authorizing access to one user's Google Drive."""
    access_token: str
    refresh_token: Optional[str] = None
    token_type: str = "Bearer"
    expiry: Optional[datetime] = Field(
        default=None,
        description="Absolute expiry of the access token; None means unknown."
    )
    scopes: List[str] = Field(default_factory=list)

    @classmethod
    def from_token_response(
        cls,
        payload: Dict[str, Any],
        previous: Optional["Credential"] = None
    ) -> "Credential":
        """
        Build a credential from a token endpoint response.

        Refresh responses usually omit the refresh token, in which case the
        previous one is carried over.
        """
        expiry = None
        expires_in = payload.get("expires_in")
        if expires_in is not None:
            expiry = datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))

        refresh_token = payload.get("refresh_token")
        if not refresh_token and previous is not None:
            refresh_token = previous.refresh_token

        scope_str = payload.get("scope")
        if scope_str:
            scopes = [s for s in scope_str.replace(',', ' ').split() if s]
        elif previous is not None:
            scopes = list(previous.scopes)
        else:
            scopes = []

        return cls(
            access_token=payload["access_token"],
            refresh_token=refresh_token,
            token_type=payload.get("token_type") or "Bearer",
            expiry=expiry,
            scopes=scopes,
        )

    def is_expired(self, leeway_seconds: int = 30) -> bool:
        """True when the access token is expired or about to expire."""
        if self.expiry is None:
            return False
        expiry = self.expiry if self.expiry.tzinfo else self.expiry.replace(tzinfo=timezone.utc)
        return expiry <= datetime.now(timezone.utc) + timedelta(seconds=leeway_seconds)

    def revocation_token(self) -> str:
        """Revoking the refresh token also invalidates every access token derived from it."""
        return self.refresh_token or self.access_token


class CSRFState(BaseModel):
    """A single-use handshake nonce bound to the user who started it."""
    nonce: str
    owner: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
