"""Reviews API: per-album reviews and the caller's own reviews."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain import reviews
from app.domain.albums import is_valid_album_id
from app.infra.auth import get_current_user
from app.infra.db import get_db
from app.infra.errors import ApiError
from app.models.db_models import User

router = APIRouter(tags=["reviews"])

MAX_REVIEW_LENGTH = 2000


# --- Request schemas ---


class CreateReviewRequest(BaseModel):
    rating: int = Field(ge=1, le=10)
    body: str | None = Field(default=None, max_length=MAX_REVIEW_LENGTH)


# --- Endpoints ---


@router.get("/albums/{album_id}/reviews")
async def list_album_reviews(
    album_id: str,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    if not is_valid_album_id(album_id):
        raise ApiError(400, "invalid_album_id")
    return {"reviews": await reviews.list_album_reviews(db, album_id)}


@router.post("/albums/{album_id}/reviews", status_code=201)
async def create_review(
    album_id: str,
    req: CreateReviewRequest,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> JSONResponse:
    """Rate an album 1-10 with an optional text body."""
    if not is_valid_album_id(album_id):
        raise ApiError(400, "invalid_album_id")
    review = await reviews.create_review(db, user, album_id, req.rating, req.body)
    return JSONResponse(
        status_code=201, content={"review": reviews.serialize_review(review, user)}
    )


@router.get("/me/reviews")
async def list_my_reviews(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    return {"reviews": await reviews.list_user_reviews(db, user)}
