"""Token broker: user tokens via refresh_token, shared app token via client_credentials.

The app token is cached process-wide and renewed ``refresh_margin`` seconds
before it expires. User tokens are never cached: every resolution refreshes,
and a rotated refresh token is written back to the ``users`` row.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.infra.auth import SessionData
from app.infra.config import settings
from app.models.db_models import User
from app.modules.spotify.client import SpotifyClient, get_spotify

logger = logging.getLogger("jukebox.tokens")

APP_NAMESPACE = "app"


class MissingRefreshToken(Exception):
    """The user has no stored refresh token (or no longer exists)."""

    def __init__(self, user_id: int) -> None:
        super().__init__(f"missing_refresh_token for user {user_id}")
        self.user_id = user_id


@dataclass(frozen=True)
class AccessContext:
    token: str
    namespace: str


class TokenBroker:
    def __init__(
        self,
        spotify: SpotifyClient,
        refresh_margin: int = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.spotify = spotify
        self.refresh_margin = refresh_margin
        self._clock = clock
        self._app_token: str | None = None
        self._app_token_expires_at: float = 0.0

    async def get_app_token(self) -> str:
        now = self._clock()
        if self._app_token and now < self._app_token_expires_at - self.refresh_margin:
            return self._app_token

        grant = await self.spotify.request_app_token()
        self._app_token = grant.access_token
        self._app_token_expires_at = now + grant.expires_in
        logger.debug("Obtained app token, expires in %ss", grant.expires_in)
        return self._app_token

    async def get_user_token(self, db: AsyncSession, user_id: int) -> str:
        result = await db.execute(select(User.refresh_token).where(User.id == user_id))
        refresh_token = result.scalar_one_or_none()
        if not refresh_token:
            raise MissingRefreshToken(user_id)

        grant = await self.spotify.refresh_access_token(refresh_token)
        if grant.refresh_token:
            await db.execute(
                update(User)
                .where(User.id == user_id)
                .values(refresh_token=grant.refresh_token)
            )
            # The old token may already be revoked; keep the new one even if the request fails later.
            await db.commit()
            logger.info("Stored rotated refresh token for user %s", user_id)
        return grant.access_token


async def resolve_access_context(
    db: AsyncSession, broker: TokenBroker, session: SessionData | None
) -> AccessContext:
    """Pick the user's token when signed in, else the shared app token.

    A user without a refresh token silently falls back to the app token.
    Any other failure propagates.
    """
    if session is not None:
        try:
            token = await broker.get_user_token(db, session.user_id)
            return AccessContext(token=token, namespace=f"user:{session.user_id}")
        except MissingRefreshToken:
            logger.info(
                "User %s has no refresh token, using app token", session.user_id
            )

    token = await broker.get_app_token()
    return AccessContext(token=token, namespace=APP_NAMESPACE)


_broker: TokenBroker | None = None


def get_token_broker() -> TokenBroker:
    """FastAPI dependency returning the process-wide broker."""
    global _broker
    if _broker is None:
        _broker = TokenBroker(get_spotify(), refresh_margin=settings.app_token_refresh_margin)
    return _broker
