"""Auth API: Spotify OAuth login, session introspection, logout."""

from __future__ import annotations

import logging
import secrets
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain import users
from app.infra.auth import (
    OAUTH_STATE_COOKIE,
    SessionData,
    clear_oauth_state_cookie,
    clear_session_cookie,
    get_optional_session,
    set_oauth_state_cookie,
    set_session_cookie,
)
from app.infra.config import settings
from app.infra.db import get_db
from app.infra.errors import ApiError
from app.models.db_models import User
from app.modules.spotify.client import SpotifyClient, SpotifyError, get_spotify

logger = logging.getLogger("jukebox.auth")

router = APIRouter(prefix="/auth", tags=["auth"])


def _login_failed(code: str) -> JSONResponse:
    """Error body for a callback that got past the state check; the state is spent."""
    response = JSONResponse(status_code=500, content={"error": code})
    clear_oauth_state_cookie(response)
    return response


@router.get("/spotify")
async def start_spotify_login(
    spotify: Annotated[SpotifyClient, Depends(get_spotify)],
) -> RedirectResponse:
    """Redirect to Spotify's consent page with a fresh anti-CSRF state."""
    state = secrets.token_hex(16)
    response = RedirectResponse(spotify.authorize_url(state), status_code=302)
    set_oauth_state_cookie(response, state)
    return response


@router.get("/spotify/callback")
async def spotify_callback(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    spotify: Annotated[SpotifyClient, Depends(get_spotify)],
    code: str | None = None,
    state: str | None = None,
) -> Response:
    """Finish the OAuth dance: exchange the code, upsert the user, start a session."""
    stored_state = request.cookies.get(OAUTH_STATE_COOKIE)
    if not code or not state or not stored_state or not secrets.compare_digest(
        state, stored_state
    ):
        raise ApiError(400, "invalid_state")

    try:
        grant = await spotify.exchange_code(code)
        profile = await spotify.get_profile(grant.access_token)
    except SpotifyError:
        logger.exception("Spotify login failed")
        return _login_failed("spotify_auth_failed")

    spotify_id = profile.get("id")
    if not spotify_id:
        logger.error("Spotify profile response has no user id")
        return _login_failed("spotify_auth_failed")

    user = await users.upsert_spotify_user(
        db, spotify_id, profile.get("display_name"), grant.refresh_token
    )
    if user is None:
        return _login_failed("missing_refresh_token")

    origins = settings.allowed_origins
    response = RedirectResponse(origins[0] if origins else "/", status_code=302)
    clear_oauth_state_cookie(response)
    set_session_cookie(response, user)
    return response


@router.get("/me")
async def get_me(
    session: Annotated[SessionData | None, Depends(get_optional_session)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> JSONResponse:
    """Return the signed-in user, or 401 with ``{"user": null}``."""
    user = None
    if session is not None:
        result = await db.execute(select(User).where(User.id == session.user_id))
        user = result.scalar_one_or_none()
    if user is None:
        return JSONResponse(status_code=401, content={"user": None})
    return JSONResponse(content={"user": users.serialize_user(user)})


@router.post("/logout")
async def logout() -> JSONResponse:
    response = JSONResponse(content={"status": "ok"})
    clear_session_cookie(response)
    return response
