# Copyright (C) 2026 The Palace Authors
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Users file credential store.

Layout of ``users.yml``::

    version: 1
    users:
      spencer:
        active: true
        password_hash: <URL-safe base64 of salt_and_hash(password)>
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple

import yaml
from itsdangerous import BadData
from itsdangerous.encoding import base64_decode

from palace.auth.passwords import hashes_equal
from palace.errors import ConfigError, CredentialMismatchError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserRecord:
    username: str
    active: bool
    password_hash: bytes


def load_users_file(path: Path) -> Dict[str, UserRecord]:
    if not path.exists():
        return {}
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Cannot parse users file {path}") from exc
    users = (raw.get("users") or {}) if isinstance(raw, dict) else {}
    out: Dict[str, UserRecord] = {}
    for uname, udata in users.items():
        if not isinstance(udata, dict):
            continue
        username = str(uname).strip()
        if not username:
            continue
        try:
            ph = base64_decode(str(udata.get("password_hash") or "").strip())
        except BadData:
            logger.warning("Skipping user %r: password_hash is not base64", username)
            continue
        if not ph:
            continue
        out[username] = UserRecord(
            username=username,
            active=bool(udata.get("active", True)),
            password_hash=ph,
        )
    return out


class UsersFile:
    """Credential validator backed by ``users.yml``, reloaded when the file changes."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._cache: Tuple[float, Dict[str, UserRecord]] = (0.0, {})
        # Fail at start-up on an unreadable file rather than on the first login.
        self.users()

    def users(self) -> Dict[str, UserRecord]:
        try:
            mtime = self.path.stat().st_mtime
        except FileNotFoundError:
            return {}

        cached_mtime, cached_users = self._cache
        if mtime == cached_mtime and cached_users:
            return cached_users

        users = load_users_file(self.path)
        self._cache = (mtime, users)
        return users

    def get_user(self, username: str) -> Optional[UserRecord]:
        u = (username or "").strip()
        if not u:
            return None
        return self.users().get(u)

    def validate_password(self, username: str, password_hash: bytes) -> None:
        u = self.get_user(username)
        if not u or not u.active:
            raise CredentialMismatchError("no such active account")
        if not hashes_equal(u.password_hash, password_hash):
            raise CredentialMismatchError("password hash does not match")
