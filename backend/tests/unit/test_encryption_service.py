"""
Tests for encryption service functionality.
"""

import pytest

from services.encryption_service import EncryptionService, get_encryption_service

# Use a valid Fernet key for testing
VALID_FERNET_KEY = "YyD8O45QlfRZUXT9kzjW3xEf6iNqz5EtF_OB8WEOBqw="  # 32 bytes base64 encoded


class TestEncryptionService:
    """Test encryption/decryption functionality."""

    @pytest.fixture
    def encryption_service(self):
        """Create encryption service with valid test key."""
        return EncryptionService(VALID_FERNET_KEY)

    def test_credentials_round_trip(self, encryption_service):
        credentials = {
            "token": "access_token",
            "refresh_token": "refresh_token",
            "scopes": ["https://www.googleapis.com/auth/calendar.readonly"],
        }

        encrypted = encryption_service.encrypt_data(credentials)

        assert "refresh_token" not in encrypted
        assert encryption_service.decrypt_data(encrypted) == credentials

    def test_decrypt_with_other_key_fails(self, encryption_service):
        encrypted = encryption_service.encrypt_data({"token": "x"})
        other = EncryptionService("MDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDA=")

        with pytest.raises(ValueError, match="Failed to decrypt"):
            other.decrypt_data(encrypted)

    def test_empty_key(self):
        with pytest.raises(ValueError, match="ENCRYPTION_KEY"):
            EncryptionService("")

    def test_short_key(self):
        with pytest.raises(ValueError, match="Invalid Fernet key"):
            EncryptionService("c2hvcnQ=")


def test_global_service_uses_configured_key():
    service = get_encryption_service()
    assert service is get_encryption_service()
    assert service.decrypt_data(service.encrypt_data({"a": 1})) == {"a": 1}
