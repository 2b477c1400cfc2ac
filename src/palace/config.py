# Copyright (C) 2026 The Palace Authors
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Start-up configuration.

Everything is read from the environment exactly once, validated, and frozen
into a ``Settings`` value that is handed to each component explicitly.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import FrozenSet, Mapping, Optional

from itsdangerous import BadData
from itsdangerous.encoding import base64_decode

from palace.errors import ConfigError

logger = logging.getLogger(__name__)

# Anchor the default users.yml path to the project root (works with editable installs).
BASE_DIR = Path(__file__).resolve().parents[2]

TOKEN_LIFETIME = timedelta(days=30)
AES_KEY_SIZES = (16, 24, 32)
MIN_SALT_BYTES = 8

DEFAULT_COOKIE_NAME = "palace_auth"
DEFAULT_COOKIE_MAX_AGE = int(timedelta(days=60).total_seconds())


def _truthy(value: Optional[str], default: bool) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in {"1", "true", "yes", "y"}


def _decode_key(environ: Mapping[str, str], name: str) -> bytes:
    raw = (environ.get(name) or "").strip()
    if not raw:
        raise ConfigError(f"Missing {name} in environment")
    try:
        return base64_decode(raw)
    except BadData as exc:
        raise ConfigError(f"{name} is not valid URL-safe base64") from exc


def normalize_prefix(prefix: Optional[str]) -> str:
    """Return ``""`` or a prefix of the form ``/a/b`` (leading slash, no trailing one)."""
    p = (prefix or "").strip().strip("/")
    return f"/{p}" if p else ""


def salt_from_env(environ: Optional[Mapping[str, str]] = None) -> bytes:
    env = os.environ if environ is None else environ
    salt = (env.get("PALACE_SALT") or "").encode("utf-8")
    if not salt:
        raise ConfigError("Missing PALACE_SALT in environment")
    if len(salt) < MIN_SALT_BYTES:
        raise ConfigError(f"PALACE_SALT must be at least {MIN_SALT_BYTES} bytes")
    return salt


@dataclass(frozen=True)
class Settings:
    salt: bytes
    encrypt_key: bytes
    sign_key: bytes
    api_keys: FrozenSet[str] = field(default_factory=frozenset)
    path_prefix: str = ""
    cookie_name: str = DEFAULT_COOKIE_NAME
    cookie_max_age: int = DEFAULT_COOKIE_MAX_AGE
    cookie_secure: bool = True
    users_path: Path = BASE_DIR / "data" / "users.yml"

    def __post_init__(self) -> None:
        if len(self.salt) < MIN_SALT_BYTES:
            raise ConfigError(f"Salt must be at least {MIN_SALT_BYTES} bytes")
        if len(self.encrypt_key) not in AES_KEY_SIZES:
            raise ConfigError(
                f"Encryption key must be 16, 24 or 32 bytes, got {len(self.encrypt_key)}"
            )
        if not self.sign_key:
            raise ConfigError("Signing key must not be empty")
        if not self.cookie_name:
            raise ConfigError("Cookie name must not be empty")
        if self.cookie_max_age <= TOKEN_LIFETIME.total_seconds():
            logger.warning(
                "Cookie max age (%ss) does not exceed the token lifetime; sessions cannot slide",
                self.cookie_max_age,
            )
        object.__setattr__(self, "path_prefix", normalize_prefix(self.path_prefix))

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        api_keys = frozenset(
            k.strip() for k in (env.get("PALACE_API_KEYS") or "").split(",") if k.strip()
        )
        max_age_raw = (env.get("PALACE_COOKIE_MAX_AGE") or "").strip()
        try:
            max_age = int(max_age_raw) if max_age_raw else DEFAULT_COOKIE_MAX_AGE
        except ValueError as exc:
            raise ConfigError("PALACE_COOKIE_MAX_AGE must be an integer number of seconds") from exc

        users_path = Path(
            env.get("PALACE_USERS_PATH") or str(BASE_DIR / "data" / "users.yml")
        ).resolve()

        return cls(
            salt=salt_from_env(env),
            encrypt_key=_decode_key(env, "PALACE_ENCRYPT_KEY"),
            sign_key=_decode_key(env, "PALACE_SIGN_KEY"),
            api_keys=api_keys,
            path_prefix=env.get("PALACE_PATH_PREFIX", ""),
            cookie_name=(env.get("PALACE_COOKIE_NAME") or DEFAULT_COOKIE_NAME).strip(),
            cookie_max_age=max_age,
            cookie_secure=_truthy(env.get("PALACE_COOKIE_SECURE"), True),
            users_path=users_path,
        )

    def prefixed(self, path: str) -> str:
        """Join ``path`` under the configured prefix.

        Every redirect location, form action and the cookie path go through
        here, so a deployment behind ``/palace`` never leaks an unprefixed URL.
        """
        return f"{self.path_prefix}/{(path or '').lstrip('/')}"

    @property
    def cookie_path(self) -> str:
        return self.prefixed("/")
