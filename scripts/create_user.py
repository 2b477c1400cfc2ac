#!/usr/bin/env python3
"""Hash a password with PALACE_SALT and store it in users.yml."""
from __future__ import annotations

import os
from getpass import getpass
from pathlib import Path

import yaml
from itsdangerous.encoding import base64_encode

from palace.auth.passwords import salt_and_hash
from palace.config import BASE_DIR, salt_from_env

USERS_PATH = Path(os.getenv("PALACE_USERS_PATH", str(BASE_DIR / "data" / "users.yml"))).resolve()


def main() -> None:
    salt = salt_from_env()

    USERS_PATH.parent.mkdir(parents=True, exist_ok=True)
    if USERS_PATH.exists():
        raw = yaml.safe_load(USERS_PATH.read_text(encoding="utf-8")) or {}
    else:
        raw = {"version": 1, "users": {}}

    if "users" not in raw or not isinstance(raw["users"], dict):
        raw["users"] = {}

    username = input("Username: ").strip()
    if not username:
        raise SystemExit("Username is required")
    active_in = input("Active? [Y/n]: ").strip().lower()
    active = (active_in != "n")

    pw1 = getpass("Password: ")
    pw2 = getpass("Repeat password: ")
    if pw1 != pw2:
        raise SystemExit("Passwords do not match")

    password_hash = base64_encode(salt_and_hash(pw1, salt)).decode("ascii")
    raw["users"][username] = {
        "active": active,
        "password_hash": password_hash,
    }

    USERS_PATH.write_text(yaml.safe_dump(raw, sort_keys=False, allow_unicode=True), encoding="utf-8")
    print(f"password_hash={password_hash}")
    print(f"OK -> {USERS_PATH}")


if __name__ == "__main__":
    main()
