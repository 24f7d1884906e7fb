"""Album lookups through the TTL caches: search, single album, batch."""

from __future__ import annotations

import re

from app.infra.cache import album_cache, make_key, normalize_query, search_cache
from app.modules.spotify.client import SpotifyClient
from app.modules.spotify.tokens import AccessContext

ALBUM_ID_RE = re.compile(r"^[A-Za-z0-9]{22}$")

DEFAULT_SEARCH_LIMIT = 10
MAX_SEARCH_LIMIT = 20
MAX_BATCH_IDS = 20


def is_valid_album_id(value: str | None) -> bool:
    return bool(value) and ALBUM_ID_RE.match(value) is not None


def clamp_limit(raw: str | None) -> int:
    try:
        limit = int(raw) if raw is not None else DEFAULT_SEARCH_LIMIT
    except ValueError:
        limit = DEFAULT_SEARCH_LIMIT
    return min(max(limit, 1), MAX_SEARCH_LIMIT)


def _artist_names(data: dict) -> list[str]:
    return [artist.get("name") for artist in data.get("artists") or []]


def _card_image(images: list[dict]) -> str | None:
    if len(images) > 1:
        return images[1].get("url")
    if images:
        return images[0].get("url")
    return None


def shape_album_card(data: dict) -> dict:
    """Compact album shape used by search results, from a raw Spotify album."""
    return {
        "id": data.get("id"),
        "name": data.get("name"),
        "artists": _artist_names(data),
        "image": _card_image(data.get("images") or []),
        "release_date": data.get("release_date"),
        "total_tracks": data.get("total_tracks"),
    }


def album_card(album: dict) -> dict:
    """The same compact shape, cut from an already shaped album."""
    return {
        "id": album["id"],
        "name": album["name"],
        "artists": album["artists"],
        "image": _card_image(album["images"]),
        "release_date": album["release_date"],
        "total_tracks": album["total_tracks"],
    }


def shape_album(data: dict) -> dict:
    tracks = (data.get("tracks") or {}).get("items") or []
    return {
        "id": data.get("id"),
        "name": data.get("name"),
        "artists": _artist_names(data),
        "images": data.get("images") or [],
        "release_date": data.get("release_date"),
        "total_tracks": data.get("total_tracks"),
        "label": data.get("label"),
        "genres": data.get("genres") or [],
        "tracks": [
            {
                "id": track.get("id"),
                "name": track.get("name"),
                "track_number": track.get("track_number"),
                "duration_ms": track.get("duration_ms"),
                "preview_url": track.get("preview_url"),
            }
            for track in tracks
        ],
    }


async def search_albums(
    spotify: SpotifyClient, ctx: AccessContext, query: str, limit: int
) -> list[dict]:
    key = make_key(ctx.namespace, "search", limit, normalize_query(query))
    cached = search_cache.get(key)
    if cached is not None:
        return cached

    data = await spotify.search_albums(ctx.token, query.strip(), limit)
    albums = [
        shape_album_card(item)
        for item in (data.get("albums") or {}).get("items") or []
        if item
    ]
    search_cache.set(key, albums)
    return albums


async def get_album(spotify: SpotifyClient, ctx: AccessContext, album_id: str) -> dict:
    key = make_key(ctx.namespace, "album", album_id)
    cached = album_cache.get(key)
    if cached is not None:
        return cached

    album = shape_album(await spotify.get_album(ctx.token, album_id))
    album_cache.set(key, album)
    return album


async def get_album_cards(
    spotify: SpotifyClient, ctx: AccessContext, album_ids: list[str]
) -> list[dict]:
    """Cards for several albums, in request order; unknown ids are skipped.

    Cached albums are served locally and the remainder is fetched in one call.
    """
    found: dict[str, dict] = {}
    missing: list[str] = []
    for album_id in album_ids:
        cached = album_cache.get(make_key(ctx.namespace, "album", album_id))
        if cached is not None:
            found[album_id] = cached
        else:
            missing.append(album_id)

    if missing:
        data = await spotify.get_albums(ctx.token, missing)
        for raw in data.get("albums") or []:
            if not raw:
                continue
            album = shape_album(raw)
            album_cache.set(make_key(ctx.namespace, "album", album["id"]), album)
            found[album["id"]] = album

    return [album_card(found[i]) for i in album_ids if i in found]
