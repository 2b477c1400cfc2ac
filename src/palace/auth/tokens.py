# Copyright (C) 2026 The Palace Authors
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol

from palace.config import TOKEN_LIFETIME
from palace.errors import ExpiredError


class CredentialValidator(Protocol):
    """What the token manager needs from a user store.

    ``validate_password`` raises ``CredentialMismatchError`` when the pair is
    not acceptable. It only ever receives the salted hash, never a password.
    """

    def validate_password(self, username: str, password_hash: bytes) -> None: ...


@dataclass(frozen=True)
class AuthToken:
    username: str
    password_hash: bytes
    issued_at: datetime


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenManager:
    """Issues, validates and refreshes ``AuthToken`` values.

    Tokens are self-contained: nothing is stored server-side. A token stays
    valid while the user store still accepts its hash and it is younger than
    ``lifetime``, so rotating a password revokes every token issued with it.
    """

    def __init__(
        self,
        users: CredentialValidator,
        *,
        lifetime: timedelta = TOKEN_LIFETIME,
        now: Callable[[], datetime] = utcnow,
    ):
        self.users = users
        self.lifetime = lifetime
        self.now = now

    def issue(self, username: str, password_hash: bytes) -> AuthToken:
        self.users.validate_password(username, password_hash)
        return AuthToken(username=username, password_hash=password_hash, issued_at=self.now())

    def validate(self, token: AuthToken) -> None:
        self.users.validate_password(token.username, token.password_hash)
        if self.now() - token.issued_at >= self.lifetime:
            raise ExpiredError(f"token for {token.username!r} issued at {token.issued_at.isoformat()}")

    def refresh(self, token: AuthToken) -> AuthToken:
        """Return a new token with a fresh issue time; ``token`` itself stays valid."""
        self.validate(token)
        return self.issue(token.username, token.password_hash)
