"""Password-derived protection of the GitHub access token.

Two independent mechanisms:

* The token is encrypted with AES-128-CBC (PKCS#7 padding) under a key and IV
  stretched from the user's password with PBKDF2-HMAC-SHA256. The key is
  re-derived on every unlock and never persisted.
* The password itself is verified against ``SHA256(salt || password)`` so a
  wrong password can be rejected before attempting decryption.

The KDF salt is random per installation and is persisted next to the
ciphertext (``kdf_salt``); it is distinct from the password-hash salt.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
import os

from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from action_allegro.core.errors import CryptoError, DecryptError

logger = logging.getLogger(__name__)

SALT_BYTES = 16
KEY_BYTES = 16
IV_BYTES = 16
DEFAULT_ITERATIONS = 200_000
MIN_ITERATIONS = 100_000

_BLOCK_BITS = algorithms.AES.block_size


def new_salt() -> bytes:
    """Return a fresh random 16-byte salt."""

    return os.urandom(SALT_BYTES)


def derive_key_iv(
    password: str, salt: bytes, iterations: int = DEFAULT_ITERATIONS
) -> tuple[bytes, bytes]:
    """Stretch ``password`` into a 16-byte AES key and a 16-byte IV."""

    if iterations < MIN_ITERATIONS:
        raise CryptoError(f"PBKDF2 iteration count must be at least {MIN_ITERATIONS}")
    if len(salt) < SALT_BYTES:
        raise CryptoError(f"KDF salt must be at least {SALT_BYTES} bytes")

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_BYTES + IV_BYTES,
        salt=salt,
        iterations=iterations,
    )
    material = kdf.derive(password.encode("utf-8"))
    return material[:KEY_BYTES], material[KEY_BYTES:]


def encrypt(plaintext: bytes, key: bytes, iv: bytes) -> bytes:
    padder = padding.PKCS7(_BLOCK_BITS).padder()
    padded = padder.update(plaintext) + padder.finalize()

    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    return encryptor.update(padded) + encryptor.finalize()


def decrypt(ciphertext: bytes, key: bytes, iv: bytes) -> bytes:
    """Decrypt ``ciphertext``; raise :class:`DecryptError` if it cannot be recovered.

    A wrong key almost always surfaces as invalid padding. The rare case where
    garbage happens to unpad cleanly is caught by callers that validate the
    plaintext (see :func:`decrypt_token`).
    """

    if not ciphertext or len(ciphertext) % (_BLOCK_BITS // 8) != 0:
        raise DecryptError("Ciphertext length is not a multiple of the block size")

    try:
        decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()

        unpadder = padding.PKCS7(_BLOCK_BITS).unpadder()
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError as e:
        raise DecryptError("Failed to decrypt token") from e


def hash_password(password: str, salt: bytes) -> str:
    """Return the hex SHA-256 digest of ``salt || password``."""

    return hashlib.sha256(salt + password.encode("utf-8")).hexdigest()


def verify_password(attempt: str, salt: bytes, expected_digest: str) -> bool:
    return hmac.compare_digest(hash_password(attempt, salt), expected_digest.lower())


def encrypt_token(
    token: str, password: str, kdf_salt: bytes, iterations: int = DEFAULT_ITERATIONS
) -> str:
    """Encrypt ``token`` under ``password`` and return it base64-encoded."""

    key, iv = derive_key_iv(password, kdf_salt, iterations)
    return encrypt_token_with_key(token, key, iv)


def encrypt_token_with_key(token: str, key: bytes, iv: bytes) -> str:
    if not token:
        raise CryptoError("Refusing to encrypt an empty token")
    return base64.b64encode(encrypt(token.encode("utf-8"), key, iv)).decode("ascii")


def decrypt_token(
    encrypted: str, password: str, kdf_salt: bytes, iterations: int = DEFAULT_ITERATIONS
) -> str:
    key, iv = derive_key_iv(password, kdf_salt, iterations)
    return decrypt_token_with_key(encrypted, key, iv)


def decrypt_token_with_key(encrypted: str, key: bytes, iv: bytes) -> str:
    """Decrypt a base64 token blob.

    An empty result is reported as a failure: callers treat an empty token as
    "not unlocked", never as a valid credential.
    """

    try:
        raw = base64.b64decode(encrypted.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise DecryptError("Encrypted token is not valid base64") from e

    plaintext = decrypt(raw, key, iv)
    try:
        token = plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptError("Failed to decrypt token") from e

    if not token:
        raise DecryptError("Decrypted token is empty")
    return token
