# drive_relay/utils/security.py
import base64
import hashlib
import hmac
import logging
from typing import Optional
from cryptography.fernet import Fernet, InvalidToken
from base64 import urlsafe_b64decode

logger = logging.getLogger(__name__)


def generate_fernet_key() -> str:
    """Generates a new Fernet key and returns it as a string."""
    key_bytes = Fernet.generate_key()
    return key_bytes.decode('utf-8')


def compute_line_signature(channel_secret: str, body: bytes) -> str:
    """Base64 HMAC-SHA256 of the raw webhook body, as sent in X-Line-Signature."""
    digest = hmac.new(channel_secret.encode('utf-8'), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode('utf-8')


def verify_line_signature(channel_secret: str, body: bytes, signature: Optional[str]) -> bool:
    """Constant-time check of a webhook delivery signature."""
    if not signature:
        return False
    expected = compute_line_signature(channel_secret, body)
    return hmac.compare_digest(expected, signature)


class FernetEncryptor:
    """Handles encryption and decryption using Fernet symmetric encryption."""

    def __init__(self, encryption_key: Optional[str]):
        """
        Initialize the encryptor with a Fernet-compatible key.

        Raises:
            ValueError: If the key is set but not a valid Fernet key
        """
        self.fernet_instance: Optional[Fernet] = None
        if not encryption_key:
            return

        key_bytes = encryption_key.encode('utf-8')
        try:
            decoded_key_bytes = urlsafe_b64decode(key_bytes)
        except Exception as e:
            raise ValueError(f"ENCRYPTION_KEY is not valid urlsafe base64: {e}") from e
        if len(decoded_key_bytes) != 32:
            raise ValueError(
                f"Invalid ENCRYPTION_KEY length after base64 decoding. "
                f"Expected 32 bytes, got {len(decoded_key_bytes)}."
            )
        self.fernet_instance = Fernet(key_bytes)
        logger.info("FernetEncryptor initialized successfully with a valid key.")

    @property
    def enabled(self) -> bool:
        return self.fernet_instance is not None

    def encrypt(self, data: str) -> str:
        """Encrypt a string. Returns the input unchanged when no key is configured."""
        if not self.fernet_instance:
            return data
        return self.fernet_instance.encrypt(data.encode('utf-8')).decode('utf-8')

    def decrypt(self, encrypted_data: str) -> str:
        """
        Decrypt a Fernet-encrypted string.

        Raises:
            ValueError: If the data was encrypted with another key or is corrupted
        """
        if not self.fernet_instance:
            return encrypted_data
        try:
            return self.fernet_instance.decrypt(encrypted_data.encode('utf-8')).decode('utf-8')
        except InvalidToken as e:
            logger.error(
                "Decryption failed: Invalid token. "
                "This may be due to an incorrect key or corrupted data."
            )
            raise ValueError("Stored value could not be decrypted.") from e
