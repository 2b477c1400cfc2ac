from datetime import timedelta

import pytest

from palace.auth.passwords import salt_and_hash
from palace.auth.tokens import AuthToken
from palace.errors import CredentialMismatchError, ExpiredError

from conftest import ADMIN, SALT


def test_issue_then_validate(tokens, admin_hash, clock):
    token = tokens.issue(ADMIN, admin_hash)
    assert token == AuthToken(username=ADMIN, password_hash=admin_hash, issued_at=clock())
    tokens.validate(token)


def test_issue_rejects_wrong_password(tokens):
    with pytest.raises(CredentialMismatchError):
        tokens.issue(ADMIN, salt_and_hash("wrong", SALT))


def test_issue_rejects_unknown_user(tokens, admin_hash):
    with pytest.raises(CredentialMismatchError):
        tokens.issue("mallory", admin_hash)


def test_token_older_than_thirty_days_is_expired(tokens, admin_hash, clock):
    token = tokens.issue(ADMIN, admin_hash)
    clock.advance(days=30, seconds=1)
    with pytest.raises(ExpiredError):
        tokens.validate(token)


def test_token_expires_exactly_at_thirty_days(tokens, admin_hash, clock):
    token = tokens.issue(ADMIN, admin_hash)
    clock.advance(days=30)
    with pytest.raises(ExpiredError):
        tokens.validate(token)


def test_token_twenty_nine_days_old_is_valid(tokens, admin_hash, clock):
    token = tokens.issue(ADMIN, admin_hash)
    clock.advance(days=29)
    tokens.validate(token)


def test_password_change_invalidates_outstanding_tokens(tokens, users, admin_hash):
    token = tokens.issue(ADMIN, admin_hash)
    users.hashes[ADMIN] = salt_and_hash("rotated", SALT)
    with pytest.raises(CredentialMismatchError):
        tokens.validate(token)


def test_refresh_issues_later_token_and_keeps_old_one_valid(tokens, admin_hash, clock):
    old = tokens.issue(ADMIN, admin_hash)
    clock.advance(days=10)
    new = tokens.refresh(old)
    assert new.issued_at == old.issued_at + timedelta(days=10)
    assert new.username == old.username
    tokens.validate(old)
    tokens.validate(new)

    # The old token still expires on its own schedule.
    clock.advance(days=21)
    with pytest.raises(ExpiredError):
        tokens.validate(old)
    tokens.validate(new)


def test_refresh_of_expired_token_fails(tokens, admin_hash, clock):
    token = tokens.issue(ADMIN, admin_hash)
    clock.advance(days=31)
    with pytest.raises(ExpiredError):
        tokens.refresh(token)
