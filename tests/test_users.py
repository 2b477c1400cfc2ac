import os

import pytest
import yaml
from itsdangerous.encoding import base64_encode

from palace.auth.users import UsersFile, load_users_file
from palace.errors import ConfigError, CredentialMismatchError


def _write(path, users):
    path.write_text(yaml.safe_dump({"version": 1, "users": users}), encoding="utf-8")


def _b64(raw: bytes) -> str:
    return base64_encode(raw).decode("ascii")


@pytest.fixture()
def users_path(tmp_path):
    p = tmp_path / "users.yml"
    _write(
        p,
        {
            "spencer": {"password_hash": _b64(b"\x01" * 32)},
            "retired": {"password_hash": _b64(b"\x02" * 32), "active": False},
            "broken": {"password_hash": "***"},
            "empty": {"password_hash": ""},
            "odd": "not a mapping",
        },
    )
    return p


def test_load_users_file_skips_bad_entries(users_path):
    users = load_users_file(users_path)
    assert sorted(users) == ["retired", "spencer"]
    assert users["spencer"].active is True
    assert users["retired"].active is False


def test_missing_file_has_no_users(tmp_path):
    store = UsersFile(tmp_path / "nope.yml")
    with pytest.raises(CredentialMismatchError):
        store.validate_password("spencer", b"\x01" * 32)


def test_validate_password(users_path):
    store = UsersFile(users_path)
    store.validate_password("spencer", b"\x01" * 32)
    store.validate_password(" spencer ", b"\x01" * 32)
    for username, password_hash in [
        ("spencer", b"\x00" * 32),
        ("retired", b"\x02" * 32),
        ("nobody", b"\x01" * 32),
        ("", b"\x01" * 32),
    ]:
        with pytest.raises(CredentialMismatchError):
            store.validate_password(username, password_hash)


def test_file_changes_are_picked_up(users_path):
    store = UsersFile(users_path)
    store.validate_password("spencer", b"\x01" * 32)

    _write(users_path, {"spencer": {"password_hash": _b64(b"\x03" * 32)}})
    st = users_path.stat()
    os.utime(users_path, (st.st_atime, st.st_mtime + 10))

    with pytest.raises(CredentialMismatchError):
        store.validate_password("spencer", b"\x01" * 32)
    store.validate_password("spencer", b"\x03" * 32)


def test_unparseable_file_fails_at_startup(tmp_path):
    p = tmp_path / "users.yml"
    p.write_text("users: [unclosed", encoding="utf-8")
    with pytest.raises(ConfigError):
        UsersFile(p)
