"""Fernet encryption helpers for storing sessions at rest.

Uses Fernet symmetric encryption (AES-128-CBC + HMAC-SHA256).
The secure session backend encrypts the serialized session before it is
written to disk and decrypts it only in memory.

Usage:
    from livesync.common.encryption import encrypt_text, decrypt_text

    ciphertext = encrypt_text(json.dumps(session), key=fernet_key)
    plaintext = decrypt_text(ciphertext, key=fernet_key)
"""

from __future__ import annotations

from cryptography.fernet import Fernet

from livesync.common.config import get_settings


def generate_key() -> str:
    """Generate a new Fernet key suitable for `session_encryption_key`."""
    return Fernet.generate_key().decode()


def _get_fernet(key: str | None = None) -> Fernet:
    """Create a Fernet instance from an explicit key or the configured one.

    Raises:
        ValueError: If no key is given and none is configured.
    """
    if key is None:
        key = get_settings().session_encryption_key
    if not key:
        raise ValueError("session_encryption_key is not configured")
    return Fernet(key.encode())


def encrypt_text(plaintext: str, key: str | None = None) -> str:
    """Encrypt a string for storage.

    Args:
        plaintext: The raw string (typically a JSON-serialized session).
        key: Optional Fernet key; defaults to settings.session_encryption_key.

    Returns:
        URL-safe base64 ciphertext.
    """
    f = _get_fernet(key)
    return f.encrypt(plaintext.encode()).decode()


def decrypt_text(ciphertext: str, key: str | None = None) -> str:
    """Decrypt a string produced by encrypt_text.

    Raises:
        cryptography.fernet.InvalidToken: If the ciphertext is invalid or
            was encrypted with a different key.
    """
    f = _get_fernet(key)
    return f.decrypt(ciphertext.encode()).decode()
