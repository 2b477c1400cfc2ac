# Copyright (C) 2026 The Palace Authors
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Bearer channel for clients without cookies (browser extension, scripts).

The request body is ``{"token": "..."}`` where the token is either one of the
configured API keys or a session envelope as found in the session cookie.
Because the protected handler needs the same body afterwards, the body is
buffered once and replayed to the handler.
"""

from __future__ import annotations

import hmac
import json
import logging
from dataclasses import dataclass
from typing import Optional

from starlette.requests import ClientDisconnect, Request

from palace.auth.session import SessionCarrier
from palace.auth.tokens import AuthToken, TokenManager
from palace.config import Settings
from palace.errors import MalformedTokenError, NoSessionError, TransportError

logger = logging.getLogger(__name__)

API_KEY_SUBJECT = "api-key"


@dataclass(frozen=True)
class Identity:
    """Outcome of a successful authorization."""

    subject: str
    source: str  # "session", "bearer" or "api-key"
    token: Optional[AuthToken] = None


async def read_body(request: Request) -> bytes:
    try:
        return await request.body()
    except ClientDisconnect as exc:
        raise TransportError("client disconnected while sending the body") from exc


def replay(request: Request, body: bytes) -> Request:
    """Return a request over the same scope whose body is ``body`` again."""
    sent = False

    async def receive():
        nonlocal sent
        if sent:
            # Nothing more to read; wait on the real channel for a disconnect.
            return await request.receive()
        sent = True
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(request.scope, receive)


class BearerChannel:
    def __init__(self, settings: Settings, carrier: SessionCarrier, tokens: TokenManager):
        self.api_keys = tuple(settings.api_keys)
        self.carrier = carrier
        self.tokens = tokens

    def _is_api_key(self, candidate: bytes) -> bool:
        hit = False
        for key in self.api_keys:
            hit |= hmac.compare_digest(candidate, key.encode("utf-8"))
        return hit

    def validate(self, body: bytes) -> Identity:
        if not body:
            raise NoSessionError("empty request body")
        try:
            payload = json.loads(body)
        except (ValueError, RecursionError) as exc:
            raise MalformedTokenError("body is not JSON") from exc
        candidate = payload.get("token") if isinstance(payload, dict) else None
        if not isinstance(candidate, str) or not candidate:
            raise MalformedTokenError("body has no token string")
        try:
            raw = candidate.encode("utf-8")
        except UnicodeEncodeError as exc:
            # JSON allows lone surrogates ("\ud800") that have no UTF-8 form.
            raise MalformedTokenError("token is not valid unicode") from exc

        if self._is_api_key(raw):
            return Identity(subject=API_KEY_SUBJECT, source="api-key")

        envelope = self.carrier.decode(candidate)
        if envelope.token is None:
            raise NoSessionError("bearer envelope carries no token")
        self.tokens.validate(envelope.token)
        return Identity(subject=envelope.token.username, source="bearer", token=envelope.token)
