"""Album lists: create, read, update, add items, reorder.

Items are ordered by ``position`` descending; a list of n items that has been
reordered holds positions n..1.
"""

from __future__ import annotations

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.db_models import AlbumList, ListItem, User


def serialize_item(item: ListItem) -> dict:
    return {
        "spotify_album_id": item.spotify_album_id,
        "position": item.position,
        "created_at": item.created_at.isoformat(),
    }


def serialize_list(album_list: AlbumList, items: list[ListItem]) -> dict:
    return {
        "id": album_list.id,
        "title": album_list.title,
        "description": album_list.description,
        "is_ranked": album_list.is_ranked,
        "created_at": album_list.created_at.isoformat(),
        "items": [serialize_item(item) for item in items],
    }


async def get_items(db: AsyncSession, list_id: int) -> list[ListItem]:
    result = await db.execute(
        select(ListItem)
        .where(ListItem.list_id == list_id)
        .order_by(ListItem.position.desc(), ListItem.created_at, ListItem.id)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def get_owned_list(db: AsyncSession, list_id: int, user: User) -> AlbumList | None:
    """Return the list only if ``user`` owns it."""
    result = await db.execute(
        select(AlbumList).where(AlbumList.id == list_id, AlbumList.user_id == user.id)
    )
    return result.scalar_one_or_none()


async def list_user_lists(db: AsyncSession, user: User) -> list[dict]:
    result = await db.execute(
        select(AlbumList)
        .where(AlbumList.user_id == user.id)
        .order_by(AlbumList.created_at.desc(), AlbumList.id.desc())
    )
    lists = list(result.scalars().all())
    if not lists:
        return []

    items_result = await db.execute(
        select(ListItem)
        .where(ListItem.list_id.in_([al.id for al in lists]))
        .order_by(ListItem.position.desc(), ListItem.created_at, ListItem.id)
    )
    by_list: dict[int, list[ListItem]] = {al.id: [] for al in lists}
    for item in items_result.scalars().all():
        by_list[item.list_id].append(item)
    return [serialize_list(al, by_list[al.id]) for al in lists]


async def create_list(
    db: AsyncSession,
    user: User,
    title: str,
    description: str | None = None,
    is_ranked: bool = False,
) -> AlbumList:
    album_list = AlbumList(
        user_id=user.id,
        title=title,
        description=description,
        is_ranked=is_ranked,
    )
    db.add(album_list)
    await db.flush()
    return album_list


async def update_list(db: AsyncSession, album_list: AlbumList, changes: dict) -> AlbumList:
    """Apply a partial update; ``changes`` holds only the fields sent."""
    if "title" in changes:
        album_list.title = changes["title"]
    if "description" in changes:
        album_list.description = changes["description"]
    if "is_ranked" in changes:
        album_list.is_ranked = bool(changes["is_ranked"])
    await db.flush()
    return album_list


async def add_item(db: AsyncSession, album_list: AlbumList, album_id: str) -> ListItem:
    """Add an album at the top of the list. Raises ValueError("item_exists")."""
    existing = await db.execute(
        select(ListItem.id).where(
            ListItem.list_id == album_list.id,
            ListItem.spotify_album_id == album_id,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise ValueError("item_exists")

    top = await db.execute(
        select(func.coalesce(func.max(ListItem.position), 0)).where(
            ListItem.list_id == album_list.id
        )
    )
    item = ListItem(
        list_id=album_list.id,
        spotify_album_id=album_id,
        position=top.scalar_one() + 1,
    )
    db.add(item)
    await db.flush()
    return item


async def reorder_items(
    db: AsyncSession, album_list: AlbumList, order: list[str]
) -> list[ListItem]:
    """Rewrite positions so ``order[0]`` ranks first.

    ``order`` must be a permutation of the list's album ids. Raises
    ValueError("order_duplicate") or ValueError("order_mismatch") otherwise.
    All positions change in one UPDATE with a CASE keyed by album id.
    """
    if len(set(order)) != len(order):
        raise ValueError("order_duplicate")

    current = await db.execute(
        select(ListItem.spotify_album_id).where(ListItem.list_id == album_list.id)
    )
    existing = set(current.scalars().all())
    if len(order) != len(existing) or any(album_id not in existing for album_id in order):
        raise ValueError("order_mismatch")

    if order:
        count = len(order)
        positions = {album_id: count - index for index, album_id in enumerate(order)}
        await db.execute(
            update(ListItem)
            .where(
                ListItem.list_id == album_list.id,
                ListItem.spotify_album_id.in_(order),
            )
            .values(position=case(positions, value=ListItem.spotify_album_id))
            .execution_options(synchronize_session=False)
        )
    return await get_items(db, album_list.id)
