# Copyright (C) 2026 The Palace Authors
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Authentication and session authorization.

This package provides:
- Deterministic password hashing (argon2id, process-wide salt)
- Encrypted and signed session envelopes (AES-CTR + HMAC-SHA256)
- Session cookies and a JSON bearer channel for the browser extension
- The ``protect`` gate and the /login, /logout routes
"""
