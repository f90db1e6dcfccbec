"""
Encryption service for sensitive data storage.

Provides encryption/decryption for external calendar OAuth credentials
using Fernet symmetric encryption.
"""

import base64
import json
from typing import Any, Dict, Optional

from cryptography.fernet import Fernet, InvalidToken

from core.config import ENCRYPTION_KEY


class EncryptionService:
    """Service for encrypting and decrypting sensitive data."""

    def __init__(self, key: str = ENCRYPTION_KEY):
        """Initialize with encryption key from environment.

        Expects a base64-encoded Fernet key (44 characters, 32 bytes when decoded),
        e.g. the output of ``Fernet.generate_key()``.
        """
        if not key:
            raise ValueError("ENCRYPTION_KEY environment variable must be set")

        try:
            decoded_key = base64.urlsafe_b64decode(key)
            if len(decoded_key) != 32:
                raise ValueError(f"Fernet key must be 32 bytes when decoded, got {len(decoded_key)} bytes")
            self._fernet = Fernet(key.encode('utf-8'))
        except Exception as e:
            raise ValueError(f"Invalid Fernet key format. Expected base64-encoded 32-byte key: {e}")

    def encrypt_data(self, data: Dict[str, Any]) -> str:
        """Encrypt a dictionary of data.

        Args:
            data: Dictionary to encrypt

        Returns:
            Base64-encoded encrypted string

        Raises:
            ValueError: If data cannot be serialized or encrypted
        """
        try:
            json_str = json.dumps(data, ensure_ascii=False)
            return self._fernet.encrypt(json_str.encode('utf-8')).decode('utf-8')
        except (TypeError, ValueError) as e:
            raise ValueError(f"Failed to encrypt data: {e}")

    def decrypt_data(self, encrypted_data: str) -> Dict[str, Any]:
        """Decrypt an encrypted string back to a dictionary.

        Raises:
            ValueError: If data cannot be decrypted or deserialized
        """
        try:
            decrypted = self._fernet.decrypt(encrypted_data.encode('utf-8'))
            return json.loads(decrypted.decode('utf-8'))
        except (InvalidToken, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValueError(f"Failed to decrypt data: {e}")


_encryption_service: Optional[EncryptionService] = None


def get_encryption_service() -> EncryptionService:
    """Get the encryption service, initializing it on first use."""
    global _encryption_service
    if _encryption_service is None:
        _encryption_service = EncryptionService()
    return _encryption_service
