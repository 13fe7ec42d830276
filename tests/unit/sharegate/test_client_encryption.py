"""Tests for client-side AES-GCM file encryption."""

from __future__ import annotations

import base64
import hashlib

import pytest
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from sharegate.client.encryption import (
    IV_BYTES,
    DecryptionError,
    decrypt_file_content,
    derive_key,
    encrypt_file_content,
)


def test_key_is_raw_sha256_of_passphrase():
    assert derive_key('correct horse') == hashlib.sha256(b'correct horse').digest()
    assert len(derive_key('x')) == 32


def test_empty_passphrase_rejected():
    with pytest.raises(ValueError):
        derive_key('')


def test_ciphertext_carries_tag_and_fresh_iv():
    data = b'quarterly numbers'

    first = encrypt_file_content(data, 'pw')
    second = encrypt_file_content(data, 'pw')

    assert len(base64.b64decode(first.iv_b64)) == IV_BYTES
    assert first.iv_b64 != second.iv_b64
    assert len(first.ciphertext) == len(data) + 16
    assert decrypt_file_content(first.ciphertext, 'pw', first.iv_b64) == data


def test_interoperates_with_webcrypto_layout():
    # WebCrypto AES-GCM output is ciphertext || tag under the same key and IV.
    iv = bytes(range(IV_BYTES))
    ciphertext = AESGCM(hashlib.sha256(b'pw').digest()).encrypt(iv, b'hello', None)

    assert decrypt_file_content(ciphertext, 'pw', base64.b64encode(iv).decode()) == b'hello'


def test_wrong_passphrase_fails_authentication():
    payload = encrypt_file_content(b'secret', 'right')

    with pytest.raises(DecryptionError):
        decrypt_file_content(payload.ciphertext, 'wrong', payload.iv_b64)


def test_tampered_ciphertext_fails_authentication():
    payload = encrypt_file_content(b'secret', 'pw')
    tampered = bytes([payload.ciphertext[0] ^ 1]) + payload.ciphertext[1:]

    with pytest.raises(DecryptionError):
        decrypt_file_content(tampered, 'pw', payload.iv_b64)


@pytest.mark.parametrize('iv', ['not base64!', base64.b64encode(b'short').decode()])
def test_malformed_iv(iv):
    with pytest.raises(DecryptionError):
        decrypt_file_content(b'\x00' * 32, 'pw', iv)
