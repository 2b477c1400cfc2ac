import pytest

from palace.auth.passwords import HASH_LEN, hashes_equal, salt_and_hash

from conftest import ADMIN_PASSWORD, SALT


def test_salt_and_hash_is_deterministic(admin_hash):
    again = salt_and_hash(ADMIN_PASSWORD, SALT)
    assert len(again) == HASH_LEN == 32
    assert hashes_equal(again, admin_hash)


def test_salt_and_hash_depends_on_salt_and_password(admin_hash):
    assert salt_and_hash(ADMIN_PASSWORD, b"another-salt-value") != admin_hash
    assert salt_and_hash("incorrect", SALT) != admin_hash


def test_salt_and_hash_rejects_empty_password():
    with pytest.raises(ValueError):
        salt_and_hash("", SALT)
