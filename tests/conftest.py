import sys
from pathlib import Path as _Path
sys.path.insert(0, str(_Path(__file__).resolve().parents[1] / "src"))

from datetime import datetime, timedelta, timezone
from typing import Dict

import pytest
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from palace.app import create_app
from palace.auth.codec import TokenCodec
from palace.auth.passwords import salt_and_hash
from palace.auth.session import SessionCarrier, SessionEnvelope
from palace.auth.tokens import TokenManager
from palace.config import Settings
from palace.errors import CredentialMismatchError

SALT = b"unit-test-salt-0001"
ENCRYPT_KEY = bytes(range(32))
SIGN_KEY = b"unit-test-signing-key"
API_KEY = "svc-key-123"

ADMIN = "admin"
ADMIN_PASSWORD = "correct"


class FakeUsers:
    """In-memory credential validator; ``hashes`` can be edited to rotate a password."""

    def __init__(self, hashes: Dict[str, bytes]):
        self.hashes = dict(hashes)

    def validate_password(self, username, password_hash):
        if self.hashes.get(username) != password_hash:
            raise CredentialMismatchError("password incorrect")


class Clock:
    def __init__(self, start: datetime):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


@pytest.fixture(scope="session")
def admin_hash() -> bytes:
    return salt_and_hash(ADMIN_PASSWORD, SALT)


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        salt=SALT,
        encrypt_key=ENCRYPT_KEY,
        sign_key=SIGN_KEY,
        api_keys=frozenset({API_KEY}),
        cookie_secure=False,
    )


@pytest.fixture()
def users(admin_hash) -> FakeUsers:
    return FakeUsers({ADMIN: admin_hash})


@pytest.fixture()
def clock() -> Clock:
    return Clock(datetime(2026, 1, 1, tzinfo=timezone.utc))


@pytest.fixture()
def tokens(users, clock) -> TokenManager:
    return TokenManager(users, now=clock)


@pytest.fixture()
def carrier(settings) -> SessionCarrier:
    return SessionCarrier(settings, TokenCodec(settings.encrypt_key, settings.sign_key))


async def echo(request):
    body = await request.body()
    identity = request.state.identity
    return JSONResponse(
        {"subject": identity.subject, "source": identity.source, "body": body.decode("utf-8")}
    )


@pytest.fixture()
def app(settings, tokens):
    application = create_app(settings, tokens=tokens)
    application.add_route("/echo", application.state.authorizer.protect(echo), methods=["GET", "POST"])
    return application


@pytest.fixture()
def client(app) -> TestClient:
    return TestClient(app, follow_redirects=False)


@pytest.fixture()
def session_cookie(carrier, tokens, admin_hash):
    """Encoded session envelope for a freshly issued admin token."""
    return carrier.encode(SessionEnvelope(token=tokens.issue(ADMIN, admin_hash)))
