"""
Encryption for third-party access tokens stored on student documents.

Tokens are wrapped as compact JWE strings (direct key, AES-256-GCM) using the
32-byte key from settings (64 hex characters).
"""

from jose import jwe
from jose.exceptions import JWEError

from app.core.config import get_settings


class TokenCryptoError(Exception):
    """Raised when a token cannot be encrypted or decrypted."""


def _key() -> bytes:
    raw = get_settings().github_token_encryption_key
    try:
        key = bytes.fromhex(raw)
    except ValueError as e:
        raise TokenCryptoError("Encryption key must be hex encoded") from e
    if len(key) != 32:
        raise TokenCryptoError("Encryption key must be 32 bytes (64 hex characters)")
    return key


def encrypt_token(token: str) -> str:
    encrypted = jwe.encrypt(token.encode("utf-8"), _key(), algorithm="dir", encryption="A256GCM")
    # jose returns bytes
    return encrypted.decode("utf-8") if isinstance(encrypted, bytes) else encrypted


def decrypt_token(encrypted: str) -> str:
    try:
        plaintext = jwe.decrypt(encrypted, _key())
    except JWEError as e:
        raise TokenCryptoError("Failed to decrypt token") from e
    if plaintext is None:
        raise TokenCryptoError("Failed to decrypt token")
    return plaintext.decode("utf-8")
