# Copyright (C) 2026 The Palace Authors
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Encrypt-then-MAC codec for session envelopes.

Encoded form::

    base64url(iv || ciphertext) "|" base64url(hmac_sha256(sign_key, iv || ciphertext))

AES in counter mode with a fresh random IV per value; the MAC uses a key that
is independent from the encryption key and is checked before any decryption.
"""

from __future__ import annotations

import hashlib
import os
from typing import Tuple, Union

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from itsdangerous import BadData
from itsdangerous.encoding import base64_decode, base64_encode
from itsdangerous.signer import HMACAlgorithm

from palace.errors import IntegrityError, MalformedTokenError

SEPARATOR = b"|"
IV_SIZE = 16  # AES block size

_HMAC = HMACAlgorithm(hashlib.sha256)


def _strict_b64decode(segment: bytes) -> bytes:
    """Decode URL-safe base64, rejecting any non-canonical spelling.

    Python's decoder skips stray characters and ignores unused trailing bits,
    so two different strings could decode to the same bytes. Re-encoding and
    comparing closes that gap.
    """
    try:
        raw = base64_decode(segment)
    except BadData as exc:
        raise IntegrityError("invalid base64") from exc
    if base64_encode(raw) != segment:
        raise IntegrityError("non-canonical base64")
    return raw


class TokenCodec:
    def __init__(self, encrypt_key: bytes, sign_key: bytes):
        self._algorithm = algorithms.AES(encrypt_key)
        self._sign_key = sign_key

    def _encrypt(self, plaintext: bytes) -> bytes:
        iv = os.urandom(IV_SIZE)
        encryptor = Cipher(self._algorithm, modes.CTR(iv)).encryptor()
        return iv + encryptor.update(plaintext) + encryptor.finalize()

    def _decrypt(self, data: bytes) -> bytes:
        if len(data) <= IV_SIZE:
            raise MalformedTokenError("ciphertext too short")
        iv, ciphertext = data[:IV_SIZE], data[IV_SIZE:]
        decryptor = Cipher(self._algorithm, modes.CTR(iv)).decryptor()
        return decryptor.update(ciphertext) + decryptor.finalize()

    def _split(self, encoded: Union[str, bytes]) -> Tuple[bytes, bytes]:
        if isinstance(encoded, str):
            try:
                encoded = encoded.encode("ascii")
            except UnicodeEncodeError as exc:
                raise IntegrityError("non-ascii token") from exc
        b64_data, sep, b64_sig = encoded.partition(SEPARATOR)
        if not sep:
            raise IntegrityError("missing signature separator")
        return _strict_b64decode(b64_data), _strict_b64decode(b64_sig)

    def seal(self, payload: bytes) -> str:
        data = self._encrypt(payload)
        signature = _HMAC.get_signature(self._sign_key, data)
        return (base64_encode(data) + SEPARATOR + base64_encode(signature)).decode("ascii")

    def open(self, encoded: Union[str, bytes]) -> bytes:
        data, signature = self._split(encoded)
        if not _HMAC.verify_signature(self._sign_key, data, signature):
            raise IntegrityError("invalid signature")
        return self._decrypt(data)
