"""Spotify proxy API: album search, single album, batch lookup (rate limited)."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain import albums
from app.infra.auth import SessionData, get_optional_session
from app.infra.db import get_db
from app.infra.errors import ApiError
from app.infra.rate_limit import enforce_spotify_rate_limit
from app.modules.spotify.client import SpotifyClient, SpotifyError, get_spotify
from app.modules.spotify.tokens import (
    AccessContext,
    TokenBroker,
    get_token_broker,
    resolve_access_context,
)

logger = logging.getLogger("jukebox.albums")

router = APIRouter(
    prefix="/spotify",
    tags=["spotify"],
    dependencies=[Depends(enforce_spotify_rate_limit)],
)


async def _access_context(
    db: AsyncSession,
    broker: TokenBroker,
    session: SessionData | None,
    error_code: str,
) -> AccessContext:
    try:
        return await resolve_access_context(db, broker, session)
    except SpotifyError:
        logger.exception("Could not obtain a Spotify access token")
        raise ApiError(500, error_code)


@router.get("/search")
async def search(
    db: Annotated[AsyncSession, Depends(get_db)],
    session: Annotated[SessionData | None, Depends(get_optional_session)],
    spotify: Annotated[SpotifyClient, Depends(get_spotify)],
    broker: Annotated[TokenBroker, Depends(get_token_broker)],
    query: str | None = None,
    limit: str | None = None,
) -> dict:
    """Search albums by free text; results are cached per access context."""
    if not query or not query.strip():
        raise ApiError(400, "query_required")

    ctx = await _access_context(db, broker, session, "spotify_search_failed")
    try:
        results = await albums.search_albums(spotify, ctx, query, albums.clamp_limit(limit))
    except SpotifyError:
        logger.exception("Spotify search failed for %r", query)
        raise ApiError(500, "spotify_search_failed")
    return {"albums": results}


@router.get("/albums")
async def get_albums(
    db: Annotated[AsyncSession, Depends(get_db)],
    session: Annotated[SessionData | None, Depends(get_optional_session)],
    spotify: Annotated[SpotifyClient, Depends(get_spotify)],
    broker: Annotated[TokenBroker, Depends(get_token_broker)],
    ids: str | None = None,
) -> dict:
    """Batch lookup: ``?ids=a,b,c`` (at most 20 distinct ids)."""
    album_ids = list(dict.fromkeys(i.strip() for i in (ids or "").split(",") if i.strip()))
    if not album_ids:
        raise ApiError(400, "ids_required")
    if len(album_ids) > albums.MAX_BATCH_IDS:
        raise ApiError(400, "too_many_ids")
    if not all(albums.is_valid_album_id(i) for i in album_ids):
        raise ApiError(400, "invalid_album_id")

    ctx = await _access_context(db, broker, session, "spotify_album_failed")
    try:
        cards = await albums.get_album_cards(spotify, ctx, album_ids)
    except SpotifyError:
        logger.exception("Spotify batch album lookup failed")
        raise ApiError(500, "spotify_album_failed")
    return {"albums": cards}


@router.get("/albums/{album_id}")
async def get_album(
    album_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    session: Annotated[SessionData | None, Depends(get_optional_session)],
    spotify: Annotated[SpotifyClient, Depends(get_spotify)],
    broker: Annotated[TokenBroker, Depends(get_token_broker)],
) -> dict:
    if not albums.is_valid_album_id(album_id):
        raise ApiError(400, "invalid_album_id")

    ctx = await _access_context(db, broker, session, "spotify_album_failed")
    try:
        album = await albums.get_album(spotify, ctx, album_id)
    except SpotifyError as e:
        if e.status_code == 404:
            raise ApiError(404, "album_not_found")
        logger.exception("Spotify album lookup failed for %s", album_id)
        raise ApiError(500, "spotify_album_failed")
    return {"album": album}
