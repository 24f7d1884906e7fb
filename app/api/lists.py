"""Lists API: create, read, update, add items, reorder."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, StringConstraints
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain import albums, lists
from app.infra.auth import SessionData, get_current_user, require_session
from app.infra.db import get_db
from app.infra.errors import ApiError
from app.models.db_models import AlbumList, User
from app.modules.spotify.client import SpotifyClient, SpotifyError, get_spotify
from app.modules.spotify.tokens import TokenBroker, get_token_broker, resolve_access_context

logger = logging.getLogger("jukebox.lists")

router = APIRouter(tags=["lists"])

Title = Annotated[str, StringConstraints(strip_whitespace=True, max_length=100)]
Description = Annotated[str, StringConstraints(strip_whitespace=True, max_length=500)]


# --- Request schemas ---


class CreateListRequest(BaseModel):
    title: Title
    description: Description | None = None
    is_ranked: bool = False


class UpdateListRequest(BaseModel):
    title: Title | None = None
    description: Description | None = None
    is_ranked: bool | None = None


class AddItemRequest(BaseModel):
    spotify_album_id: str


class ReorderRequest(BaseModel):
    order: list[str]


def _clean_title(title: str | None) -> str:
    title = (title or "").strip()
    if not title:
        raise ApiError(400, "title_required")
    return title


def _clean_description(description: str | None) -> str | None:
    if description is None:
        return None
    return description.strip() or None


async def _owned_list_or_404(db: AsyncSession, list_id: int, user: User) -> AlbumList:
    album_list = await lists.get_owned_list(db, list_id, user)
    if album_list is None:
        raise ApiError(404, "list_not_found")
    return album_list


# --- Endpoints ---


@router.get("/me/lists")
async def list_my_lists(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    return {"lists": await lists.list_user_lists(db, user)}


@router.post("/me/lists", status_code=201)
async def create_list(
    req: CreateListRequest,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> JSONResponse:
    album_list = await lists.create_list(
        db,
        user,
        title=_clean_title(req.title),
        description=_clean_description(req.description),
        is_ranked=req.is_ranked,
    )
    return JSONResponse(
        status_code=201, content={"list": lists.serialize_list(album_list, [])}
    )


@router.get("/lists/{list_id}")
async def get_list(
    list_id: int,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    album_list = await _owned_list_or_404(db, list_id, user)
    items = await lists.get_items(db, album_list.id)
    return {"list": lists.serialize_list(album_list, items)}


@router.patch("/lists/{list_id}")
async def update_list(
    list_id: int,
    req: UpdateListRequest,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """Partial update: only fields present in the body change."""
    album_list = await _owned_list_or_404(db, list_id, user)

    changes = req.model_dump(exclude_unset=True)
    if "title" in changes:
        changes["title"] = _clean_title(changes["title"])
    if "description" in changes:
        changes["description"] = _clean_description(changes["description"])
    if "is_ranked" in changes and changes["is_ranked"] is None:
        del changes["is_ranked"]

    await lists.update_list(db, album_list, changes)
    items = await lists.get_items(db, album_list.id)
    return {"list": lists.serialize_list(album_list, items)}


@router.post("/lists/{list_id}/items", status_code=201)
async def add_list_item(
    list_id: int,
    req: AddItemRequest,
    session: Annotated[SessionData, Depends(require_session)],
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    spotify: Annotated[SpotifyClient, Depends(get_spotify)],
    broker: Annotated[TokenBroker, Depends(get_token_broker)],
) -> JSONResponse:
    """Add an album after checking that Spotify knows it."""
    album_list = await _owned_list_or_404(db, list_id, user)

    album_id = req.spotify_album_id.strip()
    if not albums.is_valid_album_id(album_id):
        raise ApiError(400, "invalid_album_id")

    try:
        ctx = await resolve_access_context(db, broker, session)
    except SpotifyError:
        logger.exception("Could not obtain a Spotify access token")
        raise ApiError(503, "spotify_unavailable")

    try:
        await albums.get_album(spotify, ctx, album_id)
    except SpotifyError as e:
        if e.status_code in (400, 404):
            raise ApiError(400, "invalid_album_id")
        logger.exception("Could not verify album %s", album_id)
        raise ApiError(503, "spotify_unavailable")

    try:
        item = await lists.add_item(db, album_list, album_id)
    except ValueError as e:
        raise ApiError(409, str(e))
    return JSONResponse(status_code=201, content={"item": lists.serialize_item(item)})


@router.post("/lists/{list_id}/reorder")
async def reorder_list(
    list_id: int,
    req: ReorderRequest,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """Replace the whole order; ``order`` must list every album exactly once."""
    album_list = await _owned_list_or_404(db, list_id, user)
    try:
        items = await lists.reorder_items(db, album_list, req.order)
    except ValueError as e:
        raise ApiError(400, str(e))
    return {"list": lists.serialize_list(album_list, items)}
