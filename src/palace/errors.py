# Copyright (C) 2026 The Palace Authors
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Error taxonomy.

``ConfigError`` is raised at start-up only and is meant to abort the process.
Every ``AuthError`` is handled per request and collapses into a generic
"not authenticated" outcome for the client; the concrete class is only logged.
"""

from __future__ import annotations


class ConfigError(Exception):
    """Missing or malformed start-up configuration."""


class AuthError(Exception):
    """Base class for every per-request authentication failure."""

    reason = "authentication failed"


class NoSessionError(AuthError):
    reason = "no session"


class IntegrityError(AuthError):
    reason = "signature mismatch"


class MalformedTokenError(AuthError):
    reason = "malformed token"


class ExpiredError(AuthError):
    reason = "token expired"


class CredentialMismatchError(AuthError):
    reason = "credentials do not match"


class TransportError(AuthError):
    reason = "could not read request body"
