# drive_relay/errors.py
from typing import Optional


class RelayError(Exception):
    """Base class for failures raised by the relay core."""


class NotFoundError(RelayError):
    """An expected record is absent. Not an error from the operator's point of view."""


class CredentialNotFoundError(NotFoundError):
    """No Drive credential is stored for the user."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"No credential stored for user '{user_id}'.")


class StateNotFoundError(NotFoundError):
    """
    The OAuth state nonce could not be consumed.

    Covers expired, replayed and forged callbacks alike; callers must not
    try to tell them apart.
    """

    def __init__(self):
        super().__init__("OAuth state not found.")


class StorageError(RelayError):
    """A credential or state store operation failed."""


class ExchangeFailedError(RelayError):
    """The identity provider rejected the authorization code exchange."""

    def __init__(self, message: str, error_code: Optional[str] = None, status_code: Optional[int] = None):
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class TokenRefreshError(RelayError):
    """The identity provider rejected a refresh grant."""

    def __init__(self, message: str, error_code: Optional[str] = None, status_code: Optional[int] = None):
        self.error_code = error_code
        self.status_code = status_code
        super().__init__(message)


class DriveApiError(RelayError):
    """
    Structured failure returned by the Google Drive API.

    `reason` is the first `errors[].reason` of the Google error payload
    (e.g. 'authError', 'storageQuotaExceeded') when present.
    """

    def __init__(self, status_code: int, message: str, reason: Optional[str] = None):
        self.status_code = status_code
        self.reason = reason
        super().__init__(f"Google Drive API Error ({status_code}): {message}")


class ProvisionFailedError(RelayError):
    """Looking up or creating a folder on the upload path failed."""


class UploadFailedError(RelayError):
    """The file create/media call failed."""


class CriticalInconsistencyError(RelayError):
    """
    The local credential could not be deleted after a remote revoke attempt.
    Local state may now disagree with the intended state.
    """
