# Copyright (C) 2026 The Palace Authors
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import hmac

from argon2.low_level import Type, hash_secret_raw

HASH_LEN = 32
TIME_COST = 3
MEMORY_COST = 64 * 1024  # KiB
PARALLELISM = 4


def salt_and_hash(password: str, salt: bytes) -> bytes:
    """Derive the comparable 32-byte hash of ``password``.

    The same password and salt always produce the same bytes, which is what
    lets the hash be stored in tokens and compared by the users store.
    """
    if not password:
        raise ValueError("Empty password")
    return hash_secret_raw(
        secret=password.encode("utf-8"),
        salt=salt,
        time_cost=TIME_COST,
        memory_cost=MEMORY_COST,
        parallelism=PARALLELISM,
        hash_len=HASH_LEN,
        type=Type.ID,
    )


def hashes_equal(a: bytes, b: bytes) -> bool:
    return hmac.compare_digest(a, b)
