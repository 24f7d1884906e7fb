"""User accounts: OAuth upsert, profile read/update, avatar storage."""

from __future__ import annotations

import asyncio
import logging
import secrets
from pathlib import Path

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.infra.config import settings
from app.models.db_models import User

logger = logging.getLogger("jukebox.users")

AVATAR_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
}


async def get_user_by_spotify_id(db: AsyncSession, spotify_id: str) -> User | None:
    result = await db.execute(select(User).where(User.spotify_id == spotify_id))
    return result.scalar_one_or_none()


async def upsert_spotify_user(
    db: AsyncSession,
    spotify_id: str,
    display_name: str | None,
    refresh_token: str | None,
) -> User | None:
    """Create or update the user behind a Spotify login.

    Spotify may omit the refresh token on repeat logins; the stored one is kept
    then. Returns None when no refresh token is available at all.
    """
    user = await get_user_by_spotify_id(db, spotify_id)
    token = refresh_token or (user.refresh_token if user else None)
    if not token:
        return None

    if user is None:
        user = User(
            spotify_id=spotify_id,
            display_name=display_name,
            refresh_token=token,
            favorite_genres=[],
            favorite_album_ids=[],
        )
        db.add(user)
        logger.info("New user signed in: %s", spotify_id)
    else:
        user.display_name = display_name
        user.refresh_token = token
    await db.flush()
    return user


def serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "spotify_id": user.spotify_id,
        "display_name": user.display_name,
        "avatar_url": user.avatar_url,
    }


def serialize_profile(user: User) -> dict:
    return {
        "display_name": user.display_name,
        "avatar_url": user.avatar_url,
        "bio": user.bio,
        "favorite_genres": list(user.favorite_genres or []),
        "favorite_album_ids": list(user.favorite_album_ids or []),
    }


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


async def update_profile(db: AsyncSession, user: User, changes: dict) -> User:
    """Apply a partial profile update. ``changes`` holds only the fields sent."""
    if "display_name" in changes:
        user.display_name = _blank_to_none(changes["display_name"])
    if "bio" in changes:
        user.bio = _blank_to_none(changes["bio"])
    if "favorite_genres" in changes:
        genres = [g.strip() for g in changes["favorite_genres"] or [] if g and g.strip()]
        user.favorite_genres = genres
    if "favorite_album_ids" in changes:
        user.favorite_album_ids = list(dict.fromkeys(changes["favorite_album_ids"] or []))
    await db.flush()
    return user


def avatar_dir() -> Path:
    return Path(settings.upload_dir) / "avatars"


def _avatar_url_prefix() -> str:
    return f"{settings.public_base_url.rstrip('/')}/uploads/avatars/"


def stored_avatar_path(avatar_url: str | None) -> Path | None:
    """Local file behind an avatar URL we issued; None for Spotify or foreign URLs."""
    prefix = _avatar_url_prefix()
    if not avatar_url or not avatar_url.startswith(prefix):
        return None
    filename = avatar_url[len(prefix):]
    if not filename or "/" in filename or filename.startswith("."):
        return None
    return avatar_dir() / filename


async def store_avatar(user: User, content: bytes, content_type: str) -> str:
    """Write the avatar file and return its public URL."""
    extension = AVATAR_EXTENSIONS[content_type]
    filename = f"{user.id}-{secrets.token_hex(8)}.{extension}"
    directory = avatar_dir()
    directory.mkdir(parents=True, exist_ok=True)
    await asyncio.to_thread((directory / filename).write_bytes, content)
    return _avatar_url_prefix() + filename


async def set_avatar(db: AsyncSession, user: User, avatar_url: str) -> User:
    """Point the user at a new avatar and remove the file it replaces."""
    previous = stored_avatar_path(user.avatar_url)
    user.avatar_url = avatar_url
    await db.flush()
    if previous is not None and previous != stored_avatar_path(avatar_url):
        await asyncio.to_thread(previous.unlink, missing_ok=True)
        logger.info("Removed replaced avatar %s", previous.name)
    return user
