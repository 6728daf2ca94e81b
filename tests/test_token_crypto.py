"""
Tests for encryption of stored GitHub access tokens.
"""

from types import SimpleNamespace

import pytest

from app.utils import token_crypto
from app.utils.token_crypto import TokenCryptoError, decrypt_token, encrypt_token


def use_key(monkeypatch, key: str):
    monkeypatch.setattr(token_crypto, "get_settings", lambda: SimpleNamespace(github_token_encryption_key=key))


class TestTokenCrypto:
    def test_round_trip_hides_plaintext(self, monkeypatch):
        use_key(monkeypatch, "ab" * 32)

        encrypted = encrypt_token("gho_secret123")

        assert "gho_secret123" not in encrypted
        assert encrypted.count(".") == 4
        assert decrypt_token(encrypted) == "gho_secret123"

    def test_wrong_key_fails(self, monkeypatch):
        use_key(monkeypatch, "ab" * 32)
        encrypted = encrypt_token("gho_secret123")

        use_key(monkeypatch, "cd" * 32)
        with pytest.raises(TokenCryptoError):
            decrypt_token(encrypted)

    @pytest.mark.parametrize("key", ["", "abcd", "zz" * 32])
    def test_invalid_key_rejected(self, monkeypatch, key):
        use_key(monkeypatch, key)
        with pytest.raises(TokenCryptoError):
            encrypt_token("gho_secret123")
