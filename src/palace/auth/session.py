# Copyright (C) 2026 The Palace Authors
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from itsdangerous import BadData
from itsdangerous.encoding import base64_decode, base64_encode
from starlette.requests import Request
from starlette.responses import Response

from palace.auth.codec import TokenCodec
from palace.auth.tokens import AuthToken
from palace.config import Settings
from palace.errors import AuthError, MalformedTokenError, NoSessionError

logger = logging.getLogger(__name__)

ENVELOPE_VERSION = 1


@dataclass(frozen=True)
class SessionEnvelope:
    """Everything bound to one client: token, pending flashes, post-login target."""

    token: Optional[AuthToken] = None
    flashes: Tuple[str, ...] = ()
    redirect_target: Optional[str] = None

    def with_token(self, token: Optional[AuthToken]) -> "SessionEnvelope":
        return replace(self, token=token)

    def with_flash(self, message: str) -> "SessionEnvelope":
        return replace(self, flashes=self.flashes + (message,))

    def pop_flashes(self) -> Tuple[List[str], "SessionEnvelope"]:
        return list(self.flashes), replace(self, flashes=())

    def to_bytes(self) -> bytes:
        token: Optional[Dict[str, Any]] = None
        if self.token is not None:
            token = {
                "u": self.token.username,
                "p": base64_encode(self.token.password_hash).decode("ascii"),
                "t": self.token.issued_at.timestamp(),
            }
        data = {
            "v": ENVELOPE_VERSION,
            "token": token,
            "flash": list(self.flashes),
            "next": self.redirect_target,
        }
        return json.dumps(data, separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_bytes(cls, raw: bytes) -> "SessionEnvelope":
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise MalformedTokenError("envelope is not JSON") from exc
        if not isinstance(data, dict) or data.get("v") != ENVELOPE_VERSION:
            raise MalformedTokenError("unknown envelope version")

        flashes = data.get("flash") or []
        if not isinstance(flashes, list) or not all(isinstance(m, str) for m in flashes):
            raise MalformedTokenError("flash must be a list of strings")

        target = data.get("next")
        if target is not None and not isinstance(target, str):
            raise MalformedTokenError("redirect target must be a string")

        return cls(token=_token_from_dict(data.get("token")), flashes=tuple(flashes), redirect_target=target)


def _token_from_dict(raw: Any) -> Optional[AuthToken]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise MalformedTokenError("token must be an object")
    username, b64_hash, issued = raw.get("u"), raw.get("p"), raw.get("t")
    if not isinstance(username, str) or not isinstance(b64_hash, str):
        raise MalformedTokenError("token fields have wrong types")
    if isinstance(issued, bool) or not isinstance(issued, (int, float)):
        raise MalformedTokenError("token issue time must be a number")
    try:
        password_hash = base64_decode(b64_hash)
        issued_at = datetime.fromtimestamp(issued, tz=timezone.utc)
    except (BadData, OverflowError, OSError, ValueError) as exc:
        raise MalformedTokenError("token fields cannot be decoded") from exc
    return AuthToken(username=username, password_hash=password_hash, issued_at=issued_at)


class SessionCarrier:
    """Binds a ``SessionEnvelope`` to the client through one cookie.

    The cookie is deliberately not HttpOnly: the browser extension reads it and
    sends it back through the bearer channel.
    """

    def __init__(self, settings: Settings, codec: TokenCodec):
        self.settings = settings
        self.codec = codec

    def encode(self, envelope: SessionEnvelope) -> str:
        return self.codec.seal(envelope.to_bytes())

    def decode(self, value: Optional[str]) -> SessionEnvelope:
        if not value:
            raise NoSessionError("no session value")
        return SessionEnvelope.from_bytes(self.codec.open(value))

    def read(self, request: Request) -> SessionEnvelope:
        return self.decode(request.cookies.get(self.settings.cookie_name))

    def load(self, request: Request) -> SessionEnvelope:
        """Like ``read`` but any failure yields an empty envelope."""
        try:
            return self.read(request)
        except AuthError as exc:
            logger.debug("Ignoring session cookie on %s: %s (%s)", request.url.path, exc.reason, exc)
            return SessionEnvelope()

    def save(self, response: Response, envelope: SessionEnvelope) -> None:
        response.set_cookie(
            self.settings.cookie_name,
            self.encode(envelope),
            max_age=self.settings.cookie_max_age,
            path=self.settings.cookie_path,
            secure=self.settings.cookie_secure,
            httponly=False,
            samesite="lax",
        )

    def clear(self, response: Response) -> None:
        response.delete_cookie(
            self.settings.cookie_name,
            path=self.settings.cookie_path,
            secure=self.settings.cookie_secure,
            httponly=False,
            samesite="lax",
        )
