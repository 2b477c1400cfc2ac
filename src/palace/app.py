# Copyright (C) 2026 The Palace Authors
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates

from palace.auth.authorizer import Authorizer
from palace.auth.bearer import BearerChannel
from palace.auth.codec import TokenCodec
from palace.auth.login import LoginFlow
from palace.auth.session import SessionCarrier
from palace.auth.tokens import CredentialValidator, TokenManager
from palace.auth.users import UsersFile
from palace.config import Settings
from palace.logging_config import setup_logging

BASE_DIR = Path(__file__).resolve().parent


async def not_implemented(request: Request) -> Response:
    """Storage and search live outside this service."""
    return PlainTextResponse("Not Implemented", status_code=501)


def create_app(
    settings: Optional[Settings] = None,
    users: Optional[CredentialValidator] = None,
    tokens: Optional[TokenManager] = None,
) -> FastAPI:
    """Build the application; raises ``ConfigError`` on bad configuration.

    Without explicit ``settings`` the process is configured from the
    environment, logging included (``uvicorn palace.app:create_app --factory``).
    """
    if settings is None:
        setup_logging(os.getenv("PALACE_LOG_LEVEL", "INFO"))
        settings = Settings.from_env()
    if tokens is None:
        tokens = TokenManager(users or UsersFile(settings.users_path))

    codec = TokenCodec(settings.encrypt_key, settings.sign_key)
    carrier = SessionCarrier(settings, codec)
    bearer = BearerChannel(settings, carrier, tokens)
    authorizer = Authorizer(settings, carrier, bearer, tokens)
    templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))
    login = LoginFlow(settings, carrier, tokens, authorizer, templates)

    app = FastAPI()
    app.state.settings = settings
    app.state.authorizer = authorizer
    app.include_router(login.router)

    @app.get("/")
    def root():
        return RedirectResponse(url=settings.prefixed("/search"), status_code=302)

    protect = authorizer.protect
    app.add_route("/search", protect(not_implemented), methods=["GET"])
    app.add_route("/pages", protect(not_implemented), methods=["POST"])
    app.add_route("/pages/{id}", protect(not_implemented), methods=["GET", "DELETE"])

    return app
