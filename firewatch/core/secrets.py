"""
Encryption of stored device credentials.

Device API passwords are stored with Fernet symmetric encryption, keyed
from the configured master key. Decryption failures fail closed: the
caller gets a CredentialError and must not contact the device.
"""

import base64
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from firewatch.config import settings


class CredentialError(Exception):
    """Raised when stored credentials cannot be decrypted."""
    pass


class SecretEncryptor:
    """Handles encryption and decryption of secret values."""

    def __init__(self, master_key: str):
        if not master_key or len(master_key) < 32:
            raise ValueError("Master key must be at least 32 characters long.")
        self.master_key = master_key.encode("utf-8")
        self.fernet = self._derive_key()

    def _derive_key(self) -> Fernet:
        """Derives a 32-byte encryption key from the master key using a fixed salt."""
        salt = b'firewatch-credential-salt'
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=32,
            salt=salt,
            iterations=100_000,
        )
        key = base64.urlsafe_b64encode(kdf.derive(self.master_key))
        return Fernet(key)

    def encrypt(self, plaintext: str) -> bytes:
        """Encrypts a plaintext string."""
        return self.fernet.encrypt(plaintext.encode("utf-8"))

    def decrypt(self, encrypted_value: bytes) -> str:
        """Decrypts an encrypted value, raising CredentialError on failure."""
        if isinstance(encrypted_value, str):
            encrypted_value = encrypted_value.encode("utf-8")
        try:
            return self.fernet.decrypt(encrypted_value).decode("utf-8")
        except (InvalidToken, TypeError, ValueError) as e:
            raise CredentialError("Stored credential could not be decrypted") from e


def get_encryptor(master_key: Optional[str] = None) -> SecretEncryptor:
    """Build an encryptor from ``master_key`` or FIREWATCH_MASTER_KEY."""
    key = master_key or settings.MASTER_KEY
    if not key:
        raise CredentialError(
            "No master key configured. Set FIREWATCH_MASTER_KEY (minimum 32 characters)."
        )
    try:
        return SecretEncryptor(key)
    except ValueError as e:
        raise CredentialError(str(e)) from e
