# drive_relay/oauth/codec.py
import logging
from pydantic import ValidationError

from .models import Credential
from ..errors import StorageError
from ..utils.security import FernetEncryptor

logger = logging.getLogger(__name__)


class CredentialCodec:
    """Serializes credentials to the text stored by every backend, encrypting when a key is configured."""

    def __init__(self, encryptor: FernetEncryptor):
        self.encryptor = encryptor

    def encode(self, credential: Credential) -> str:
        return self.encryptor.encrypt(credential.model_dump_json())

    def decode(self, user_id: str, stored: str) -> Credential:
        try:
            return Credential.model_validate_json(self.encryptor.decrypt(stored))
        except (ValueError, ValidationError) as e:
            logger.error(f"Error deserializing credential for user {user_id}: {e}")
            raise StorageError(f"Stored credential for user '{user_id}' is unreadable.") from e
