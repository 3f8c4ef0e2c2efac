# drive_relay/oauth/__init__.py

"""Google OAuth handshake, credential storage and the CSRF state store."""

from .models import Credential, CSRFState, generate_state_nonce
from .storage_interfaces import AbstractCredentialStore, AbstractCSRFStateStore
from .google_client import GoogleOAuthClient
from .flow import AuthorizationFlow

__all__ = [
    "Credential",
    "CSRFState",
    "generate_state_nonce",
    "AbstractCredentialStore",
    "AbstractCSRFStateStore",
    "GoogleOAuthClient",
    "AuthorizationFlow",
]
