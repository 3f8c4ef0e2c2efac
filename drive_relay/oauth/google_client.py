# drive_relay/oauth/google_client.py
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from .models import Credential
from ..errors import ExchangeFailedError, TokenRefreshError

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_REVOKE_URL = "https://oauth2.googleapis.com/revoke"


def _error_code_from_response(response: httpx.Response) -> Optional[str]:
    """Pull the RFC 6749 `error` field out of a token endpoint error body."""
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, str):
            return error
    return None


class GoogleOAuthClient:
    """Talks to Google's OAuth 2.0 endpoints on behalf of the relay's OAuth client."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        client_id: Optional[str],
        client_secret: Optional[str],
        redirect_url: str,
        scopes: List[str],
    ):
        self.http_client = http_client
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_url = redirect_url
        self.scopes = scopes

    def authorization_url(self, state: str) -> str:
        """
        Consent URL bound to `state`. Offline access with a forced consent
        prompt makes Google issue a refresh token every time.
        """
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_url,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "state": state,
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    async def _post_token_endpoint(self, data: Dict[str, Any]) -> httpx.Response:
        payload = {
            **data,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        return await self.http_client.post(
            GOOGLE_TOKEN_URL,
            data=payload,
            headers={"Accept": "application/json"}
        )

    async def exchange_code(self, code: str) -> Credential:
        """
        Exchange an authorization code for a credential.

        Raises:
            ExchangeFailedError: If Google rejects the code or cannot be reached
        """
        try:
            response = await self._post_token_endpoint({
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.redirect_url,
            })
        except httpx.RequestError as e:
            logger.error(f"Token exchange request failed: {e}")
            raise ExchangeFailedError(f"Token endpoint unreachable: {e}") from e

        if response.status_code != 200:
            error_code = _error_code_from_response(response)
            logger.error(f"Token exchange rejected: {response.status_code} - error={error_code}")
            raise ExchangeFailedError(
                f"Token exchange rejected with status {response.status_code}",
                error_code=error_code,
                status_code=response.status_code
            )

        payload = response.json()
        if not payload.get("access_token"):
            raise ExchangeFailedError("Token endpoint response carried no access_token.")
        logger.info(f"Token exchange succeeded (refresh_token {'SET' if payload.get('refresh_token') else 'NOT_SET'}).")
        return Credential.from_token_response(payload)

    async def refresh(self, credential: Credential) -> Credential:
        """
        Obtain a fresh access token using the stored refresh token.

        Raises:
            TokenRefreshError: If no refresh token is available or Google rejects the grant
        """
        if not credential.refresh_token:
            raise TokenRefreshError("Credential has no refresh token.", error_code="invalid_grant")
        try:
            response = await self._post_token_endpoint({
                "grant_type": "refresh_token",
                "refresh_token": credential.refresh_token,
            })
        except httpx.RequestError as e:
            logger.error(f"Token refresh request failed: {e}")
            raise TokenRefreshError(f"Token endpoint unreachable: {e}") from e

        if response.status_code != 200:
            error_code = _error_code_from_response(response)
            logger.error(f"Token refresh rejected: {response.status_code} - error={error_code}")
            raise TokenRefreshError(
                f"Token refresh rejected with status {response.status_code}",
                error_code=error_code,
                status_code=response.status_code
            )
        return Credential.from_token_response(response.json(), previous=credential)

    async def revoke(self, token: str) -> bool:
        """
        Ask Google to revoke a token. Returns True on success; failures are
        logged and reported as False rather than raised.
        """
        try:
            response = await self.http_client.post(
                GOOGLE_REVOKE_URL,
                data={"token": token},
                headers={"Content-Type": "application/x-www-form-urlencoded"}
            )
        except httpx.RequestError as e:
            logger.warning(f"Google revocation request failed: {e}")
            return False
        if response.status_code != 200:
            logger.warning(f"Google revocation failed with status {response.status_code}: {response.text}")
            return False
        return True
