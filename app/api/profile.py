"""Profile API: read/update the caller's profile, upload an avatar."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel, Field, StringConstraints
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain import users
from app.domain.albums import is_valid_album_id
from app.infra.auth import get_current_user
from app.infra.config import settings
from app.infra.db import get_db
from app.infra.errors import ApiError
from app.models.db_models import User

router = APIRouter(prefix="/me", tags=["profile"])

Genre = Annotated[str, StringConstraints(strip_whitespace=True, max_length=40)]
DisplayName = Annotated[str, StringConstraints(strip_whitespace=True, max_length=50)]
Bio = Annotated[str, StringConstraints(strip_whitespace=True, max_length=300)]


# --- Request schemas ---


class UpdateProfileRequest(BaseModel):
    display_name: DisplayName | None = None
    bio: Bio | None = None
    favorite_genres: list[Genre] | None = Field(default=None, max_length=10)
    favorite_album_ids: list[str] | None = Field(default=None, max_length=3)


# --- Endpoints ---


@router.get("/profile")
async def get_profile(user: Annotated[User, Depends(get_current_user)]) -> dict:
    return {"profile": users.serialize_profile(user)}


@router.patch("/profile")
async def update_profile(
    req: UpdateProfileRequest,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    changes = req.model_dump(exclude_unset=True)
    if not all(is_valid_album_id(i) for i in changes.get("favorite_album_ids") or []):
        raise ApiError(400, "invalid_album_id")

    await users.update_profile(db, user, changes)
    return {"profile": users.serialize_profile(user)}


@router.post("/avatar")
async def upload_avatar(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    avatar: Annotated[UploadFile | None, File()] = None,
) -> dict:
    """Store a PNG/JPEG/WebP/GIF image (at most ``avatar_max_bytes``) as the avatar."""
    if avatar is None or not avatar.filename:
        raise ApiError(400, "avatar_required")
    if avatar.content_type not in users.AVATAR_EXTENSIONS:
        raise ApiError(400, "avatar_invalid_type")

    content = await avatar.read(settings.avatar_max_bytes + 1)
    if len(content) > settings.avatar_max_bytes:
        raise ApiError(400, "avatar_too_large")
    if not content:
        raise ApiError(400, "avatar_required")

    avatar_url = await users.store_avatar(user, content, avatar.content_type)
    await users.set_avatar(db, user, avatar_url)
    return {"profile": users.serialize_profile(user)}
