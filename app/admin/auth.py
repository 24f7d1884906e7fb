"""Admin authentication backend for sqladmin."""

from __future__ import annotations

import secrets
from datetime import timedelta

from sqladmin.authentication import AuthenticationBackend
from starlette.requests import Request

from app.infra.auth import decode_token, encode_token, verify_password
from app.infra.config import settings

ADMIN_SESSION_LIFETIME = timedelta(hours=12)


def check_admin_credentials(username: str, password: str) -> bool:
    """Match against the configured admin account; always False when none is configured."""
    if not settings.admin_username or not settings.admin_password_hash:
        return False
    if not secrets.compare_digest(username, settings.admin_username):
        return False
    return verify_password(password, settings.admin_password_hash)


class AdminAuth(AuthenticationBackend):
    """Authenticate the configured admin by password, stored as JWT in session."""

    async def login(self, request: Request) -> bool:
        form = await request.form()
        username = str(form.get("username", "")).strip()
        password = str(form.get("password", ""))
        if not username or not password:
            return False

        if not check_admin_credentials(username, password):
            return False

        token, _ = encode_token(
            {"sub": f"admin:{username}", "scope": "admin"}, ADMIN_SESSION_LIFETIME
        )
        request.session["token"] = token
        return True

    async def logout(self, request: Request) -> bool:
        request.session.clear()
        return True

    async def authenticate(self, request: Request) -> bool:
        token = request.session.get("token")
        if not token:
            return False
        payload = decode_token(token)
        if payload is None or payload.get("scope") != "admin":
            return False
        return payload.get("sub") == f"admin:{settings.admin_username}"
