# drive_relay/utils/__init__.py

"""Utility helpers for key generation, encryption and webhook signatures."""

from .security import (
    FernetEncryptor,
    generate_fernet_key,
    compute_line_signature,
    verify_line_signature,
)

__all__ = [
    "FernetEncryptor",
    "generate_fernet_key",
    "compute_line_signature",
    "verify_line_signature",
]
