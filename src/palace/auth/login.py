# Copyright (C) 2026 The Palace Authors
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates

from palace.auth.authorizer import Authorizer
from palace.auth.passwords import salt_and_hash
from palace.auth.session import SessionCarrier, SessionEnvelope
from palace.auth.tokens import TokenManager
from palace.config import Settings
from palace.errors import AuthError

logger = logging.getLogger(__name__)

LOGIN_FAILED_MESSAGE = "Invalid username or password."


def safe_redirect_target(target: Optional[str]) -> Optional[str]:
    """Keep only same-site paths such as ``/search?q=x``."""
    t = (target or "").strip()
    if not t.startswith("/") or t.startswith("//") or t.startswith("/\\"):
        return None
    return t


class LoginFlow:
    """GET/POST /login and POST /logout."""

    def __init__(
        self,
        settings: Settings,
        carrier: SessionCarrier,
        tokens: TokenManager,
        authorizer: Authorizer,
        templates: Jinja2Templates,
    ):
        self.settings = settings
        self.carrier = carrier
        self.tokens = tokens
        self.authorizer = authorizer
        self.templates = templates

        self.router = APIRouter()
        self.router.add_api_route("/login", self.login_get, methods=["GET"], response_class=HTMLResponse)
        self.router.add_api_route("/login", self.login_post, methods=["POST"])
        self.router.add_api_route("/logout", self.logout_post, methods=["POST"])

    def login_get(self, request: Request) -> Response:
        messages, envelope = self.carrier.load(request).pop_flashes()
        resp = self.templates.TemplateResponse(
            request,
            "login.html",
            {
                "messages": messages,
                "action": self.settings.prefixed("/login"),
            },
        )
        self.carrier.save(resp, envelope)
        return resp

    def login_post(
        self,
        request: Request,
        username: str = Form(""),
        password: str = Form(""),
    ) -> Response:
        pending = self.carrier.load(request).redirect_target
        username = username.strip()
        try:
            token = self.tokens.issue(username, salt_and_hash(password, self.settings.salt))
        except ValueError:
            logger.info("Login rejected for %r: empty password", username)
            return self.authorizer.deny(LOGIN_FAILED_MESSAGE, redirect_target=pending)
        except AuthError as exc:
            logger.info("Login rejected for %r: %s (%s)", username, exc.reason, exc)
            return self.authorizer.deny(LOGIN_FAILED_MESSAGE, redirect_target=pending)

        logger.info("Login succeeded for %r", username)
        target = safe_redirect_target(pending) or "/"
        resp = RedirectResponse(url=self.settings.prefixed(target), status_code=303)
        self.carrier.save(resp, SessionEnvelope(token=token))
        return resp

    def logout_post(self, request: Request) -> Response:
        resp = RedirectResponse(url=self.settings.prefixed("/login"), status_code=303)
        self.carrier.clear(resp)
        return resp
