"""Client-side file encryption (AES-256-GCM).

Files are encrypted before upload and decrypted after download; the server
only ever sees ciphertext and the base64 IV.

The key is the raw SHA-256 digest of the passphrase, with no salt and no
work factor, matching what deployed browser clients already produce. Files
encrypted this way stay decryptable only while derivation is unchanged, so
the scheme is tagged with ``KEY_DERIVATION_VERSION`` for a future migration
to a salted KDF.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import os
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

KEY_DERIVATION_VERSION = "sha256-raw-v1"
IV_BYTES = 12


class DecryptionError(Exception):
    """Ciphertext failed authentication (wrong passphrase or tampering)."""


@dataclass(frozen=True)
class EncryptedPayload:
    ciphertext: bytes
    iv_b64: str


def derive_key(passphrase: str) -> bytes:
    if not passphrase:
        raise ValueError("passphrase must not be empty")
    return hashlib.sha256(passphrase.encode("utf-8")).digest()


def encrypt_file_content(data: bytes, passphrase: str) -> EncryptedPayload:
    """Encrypt ``data`` under a fresh random 96-bit IV.

    The returned ciphertext carries the 16-byte GCM tag appended, the same
    layout WebCrypto produces.
    """
    iv = os.urandom(IV_BYTES)
    ciphertext = AESGCM(derive_key(passphrase)).encrypt(iv, data, None)
    return EncryptedPayload(ciphertext=ciphertext, iv_b64=base64.b64encode(iv).decode("ascii"))


def decrypt_file_content(ciphertext: bytes, passphrase: str, iv_b64: str) -> bytes:
    """Decrypt and authenticate ``ciphertext``.

    Raises:
        DecryptionError: Wrong passphrase, corrupted data or malformed IV.
    """
    try:
        iv = base64.b64decode(iv_b64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecryptionError("malformed IV") from exc
    if len(iv) != IV_BYTES:
        raise DecryptionError(f"IV must be {IV_BYTES} bytes, got {len(iv)}")
    try:
        return AESGCM(derive_key(passphrase)).decrypt(iv, ciphertext, None)
    except InvalidTag as exc:
        raise DecryptionError("authentication tag mismatch") from exc
