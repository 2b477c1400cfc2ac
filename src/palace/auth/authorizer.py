# Copyright (C) 2026 The Palace Authors
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import functools
import logging
from typing import Awaitable, Callable, Optional, Tuple

from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from palace.auth.bearer import BearerChannel, Identity, read_body, replay
from palace.auth.session import SessionCarrier, SessionEnvelope
from palace.auth.tokens import TokenManager
from palace.config import Settings
from palace.errors import AuthError, NoSessionError

logger = logging.getLogger(__name__)

Handler = Callable[[Request], Awaitable[Response]]

LOGIN_REQUIRED_MESSAGE = "Please log in to continue."
REFRESH_METHODS = frozenset({"GET", "HEAD"})


def request_target(request: Request) -> str:
    """Path and query of ``request`` as the application sees it (unprefixed)."""
    target = request.url.path
    if request.url.query:
        target += "?" + request.url.query
    return target


class Authorizer:
    """Gate for protected handlers.

    The session cookie is tried first, then the JSON bearer body. Both paths
    share ``TokenManager.validate`` so expiry and credential checks are the same.
    """

    def __init__(
        self,
        settings: Settings,
        carrier: SessionCarrier,
        bearer: BearerChannel,
        tokens: TokenManager,
    ):
        self.settings = settings
        self.carrier = carrier
        self.bearer = bearer
        self.tokens = tokens

    def _from_session(self, request: Request) -> Identity:
        envelope = self.carrier.read(request)
        if envelope.token is None:
            raise NoSessionError("session carries no token")
        self.tokens.validate(envelope.token)
        return Identity(subject=envelope.token.username, source="session", token=envelope.token)

    async def authorize(self, request: Request) -> Tuple[Identity, Request]:
        """Return the caller's identity and the request to hand downstream.

        When the bearer channel has to look at the body, the returned request
        replays the buffered bytes so the handler can still read them. On
        failure the bearer error is raised, chained to the session error.
        """
        try:
            return self._from_session(request), request
        except AuthError as session_error:
            try:
                body = await read_body(request)
                return self.bearer.validate(body), replay(request, body)
            except AuthError as bearer_error:
                raise bearer_error from session_error

    def deny(
        self,
        message: str = LOGIN_REQUIRED_MESSAGE,
        redirect_target: Optional[str] = None,
    ) -> Response:
        """Redirect to the login page with ``message`` flashed.

        The session is replaced by a fresh, unauthenticated one that remembers
        where to go after the next successful login.
        """
        envelope = SessionEnvelope(redirect_target=redirect_target).with_flash(message)
        response = RedirectResponse(url=self.settings.prefixed("/login"), status_code=303)
        self.carrier.save(response, envelope)
        return response

    def _refresh(self, request: Request, identity: Identity, response: Response) -> None:
        if identity.source != "session" or identity.token is None:
            return
        if request.method not in REFRESH_METHODS:
            return
        try:
            token = self.tokens.refresh(identity.token)
        except AuthError as exc:
            logger.warning("Could not refresh session for %r: %s (%s)", identity.subject, exc.reason, exc)
            return
        envelope = self.carrier.load(request).with_token(token)
        self.carrier.save(response, envelope)

    def protect(self, handler: Handler) -> Handler:
        """Wrap ``handler`` so it only runs for authenticated requests."""

        @functools.wraps(handler)
        async def endpoint(request: Request) -> Response:
            try:
                identity, downstream = await self.authorize(request)
            except AuthError as exc:
                session_error = exc.__cause__
                logger.info(
                    "Unauthorized %s %s: bearer: %s (%s); session: %s",
                    request.method,
                    request.url.path,
                    exc.reason,
                    exc,
                    getattr(session_error, "reason", session_error),
                )
                return self.deny(redirect_target=request_target(request))

            downstream.state.identity = identity
            response = await handler(downstream)
            self._refresh(request, identity, response)
            return response

        return endpoint

    only_authenticated = protect
