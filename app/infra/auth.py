"""Authentication utilities: session JWT cookie, password hashing, FastAPI dependencies."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Annotated

import bcrypt
from fastapi import Depends, Request, Response
from jose import JWTError, jwt
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.infra.config import settings
from app.infra.db import get_db
from app.infra.errors import ApiError
from app.models.db_models import User

OAUTH_STATE_COOKIE = "spotify_oauth_state"
OAUTH_STATE_MAX_AGE = 10 * 60


# --- Password hashing (admin dashboard) ---


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a bcrypt hash."""
    try:
        return bcrypt.checkpw(plain_password.encode(), hashed_password.encode())
    except ValueError:
        # Malformed hash in configuration
        return False


# --- Token schemas ---


class SessionData(BaseModel):
    user_id: int
    spotify_id: str
    exp: datetime


# --- JWT utilities ---


def encode_token(claims: dict, lifetime: timedelta) -> tuple[str, datetime]:
    expires_at = datetime.now(timezone.utc) + lifetime
    payload = {**claims, "exp": expires_at}
    token = jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)
    return token, expires_at


def decode_token(token: str) -> dict | None:
    """Decode and verify a JWT. Returns None when invalid or expired."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def create_session_token(user: User) -> tuple[str, datetime]:
    """Create the signed session token for a user."""
    return encode_token(
        {"sub": str(user.id), "spotify_id": user.spotify_id},
        timedelta(days=settings.session_expire_days),
    )


def decode_session_token(token: str) -> SessionData | None:
    payload = decode_token(token)
    if payload is None:
        return None
    sub = payload.get("sub", "")
    if not sub or not str(sub).isdigit():
        return None
    return SessionData(
        user_id=int(sub),
        spotify_id=payload.get("spotify_id", ""),
        exp=datetime.fromtimestamp(payload.get("exp", 0), tz=timezone.utc),
    )


# --- Cookies ---


def _cookie_options() -> dict:
    return {
        "httponly": True,
        "samesite": "lax",
        "secure": settings.is_production,
        "path": "/",
    }


def set_session_cookie(response: Response, user: User) -> None:
    token, _ = create_session_token(user)
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.session_expire_days * 24 * 60 * 60,
        **_cookie_options(),
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(settings.session_cookie_name, **_cookie_options())


def set_oauth_state_cookie(response: Response, state: str) -> None:
    response.set_cookie(
        OAUTH_STATE_COOKIE, state, max_age=OAUTH_STATE_MAX_AGE, **_cookie_options()
    )


def clear_oauth_state_cookie(response: Response) -> None:
    response.delete_cookie(OAUTH_STATE_COOKIE, **_cookie_options())


# --- FastAPI Dependencies ---


async def get_optional_session(request: Request) -> SessionData | None:
    """Dependency: the signed-in session, or None for anonymous requests."""
    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        return None
    return decode_session_token(token)


async def require_session(
    session: Annotated[SessionData | None, Depends(get_optional_session)],
) -> SessionData:
    """Dependency: a valid session, else 401."""
    if session is None:
        raise ApiError(401, "unauthorized")
    return session


async def get_current_user(
    session: Annotated[SessionData, Depends(require_session)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Dependency: the User row behind the session; a deleted user counts as signed out."""
    result = await db.execute(select(User).where(User.id == session.user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise ApiError(401, "unauthorized")
    return user
