"""Album reviews: list by album or author, create."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.db_models import Review, User


def serialize_review(review: Review, user: User) -> dict:
    return {
        "id": review.id,
        "spotify_album_id": review.spotify_album_id,
        "rating": review.rating,
        "body": review.body,
        "created_at": review.created_at.isoformat(),
        "user_id": user.id,
        "display_name": user.display_name,
        "avatar_url": user.avatar_url,
    }


async def create_review(
    db: AsyncSession, user: User, album_id: str, rating: int, body: str | None
) -> Review:
    body = body.strip() if body else None
    review = Review(
        user_id=user.id,
        spotify_album_id=album_id,
        rating=rating,
        body=body or None,
    )
    db.add(review)
    await db.flush()
    return review


async def list_album_reviews(db: AsyncSession, album_id: str) -> list[dict]:
    result = await db.execute(
        select(Review, User)
        .join(User, User.id == Review.user_id)
        .where(Review.spotify_album_id == album_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
    )
    return [serialize_review(review, user) for review, user in result.all()]


async def list_user_reviews(db: AsyncSession, user: User) -> list[dict]:
    result = await db.execute(
        select(Review)
        .where(Review.user_id == user.id)
        .order_by(Review.created_at.desc(), Review.id.desc())
    )
    return [serialize_review(review, user) for review in result.scalars().all()]
