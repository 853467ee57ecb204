"""Credential vault: token encryption and password verification."""

from action_allegro.vault.crypto import (
    decrypt,
    decrypt_token,
    derive_key_iv,
    encrypt,
    encrypt_token,
    hash_password,
    new_salt,
    verify_password,
)

__all__ = [
    "decrypt",
    "decrypt_token",
    "derive_key_iv",
    "encrypt",
    "encrypt_token",
    "hash_password",
    "new_salt",
    "verify_password",
]
