"""Tests for the token broker and access-context resolution."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from app.infra.auth import SessionData
from app.models.db_models import User
from app.modules.spotify.client import SpotifyError, TokenGrant
from app.modules.spotify.tokens import (
    APP_NAMESPACE,
    AccessContext,
    MissingRefreshToken,
    TokenBroker,
    resolve_access_context,
)


class FakeClock:
    def __init__(self, now: float = 10_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _session_for(user_id: int) -> SessionData:
    return SessionData(
        user_id=user_id, spotify_id="spotify_user", exp=datetime.now(timezone.utc)
    )


async def _add_user(db, refresh_token: str = "old-refresh") -> User:
    user = User(spotify_id="spotify_user", refresh_token=refresh_token)
    db.add(user)
    await db.commit()
    return user


@pytest.mark.asyncio
async def test_unknown_user_raises_missing_refresh_token(db_session, broker, fake_spotify):
    with pytest.raises(MissingRefreshToken):
        await broker.get_user_token(db_session, 999)
    assert fake_spotify.count("refresh") == 0


@pytest.mark.asyncio
async def test_empty_refresh_token_raises_missing_refresh_token(db_session, broker):
    user = await _add_user(db_session, refresh_token="")
    with pytest.raises(MissingRefreshToken):
        await broker.get_user_token(db_session, user.id)


@pytest.mark.asyncio
async def test_rotated_refresh_token_is_persisted(db_session, broker, fake_spotify):
    user = await _add_user(db_session)
    fake_spotify.refresh_grant = TokenGrant("fresh-access", 3600, "new-refresh")

    token = await broker.get_user_token(db_session, user.id)

    assert token == "fresh-access"
    assert fake_spotify.calls == [("refresh", "old-refresh")]
    stored = await db_session.execute(
        select(User.refresh_token).where(User.id == user.id)
    )
    assert stored.scalar_one() == "new-refresh"


@pytest.mark.asyncio
async def test_refresh_without_rotation_keeps_stored_token(db_session, broker, fake_spotify):
    user = await _add_user(db_session)
    fake_spotify.refresh_grant = TokenGrant("fresh-access", 3600, None)

    await broker.get_user_token(db_session, user.id)

    stored = await db_session.execute(
        select(User.refresh_token).where(User.id == user.id)
    )
    assert stored.scalar_one() == "old-refresh"


@pytest.mark.asyncio
async def test_rotation_issues_single_update(db_session, fake_spotify):
    user = await _add_user(db_session)
    fake_spotify.refresh_grant = TokenGrant("fresh-access", 3600, "new-refresh")
    statements: list[str] = []

    original_execute = db_session.execute

    async def recording_execute(statement, *args, **kwargs):
        statements.append(str(statement))
        return await original_execute(statement, *args, **kwargs)

    db_session.execute = recording_execute
    try:
        await TokenBroker(fake_spotify).get_user_token(db_session, user.id)
    finally:
        db_session.execute = original_execute

    updates = [s for s in statements if s.startswith("UPDATE users")]
    assert len(updates) == 1


@pytest.mark.asyncio
async def test_refresh_failure_propagates(db_session, broker, fake_spotify):
    user = await _add_user(db_session)
    fake_spotify.token_error = SpotifyError("Spotify token refresh failed: 400", 400)
    with pytest.raises(SpotifyError):
        await broker.get_user_token(db_session, user.id)


class TestAppToken:
    @pytest.mark.asyncio
    async def test_app_token_is_cached(self, fake_spotify):
        broker = TokenBroker(fake_spotify, refresh_margin=60, clock=FakeClock())
        first = await broker.get_app_token()
        second = await broker.get_app_token()
        assert first == second == "app-token-1"
        assert fake_spotify.count("app_token") == 1

    @pytest.mark.asyncio
    async def test_app_token_renewed_inside_refresh_margin(self, fake_spotify):
        clock = FakeClock()
        broker = TokenBroker(fake_spotify, refresh_margin=60, clock=clock)
        await broker.get_app_token()

        clock.now += 3600 - 61
        assert await broker.get_app_token() == "app-token-1"

        clock.now += 2
        assert await broker.get_app_token() == "app-token-2"
        assert fake_spotify.count("app_token") == 2


class TestResolveAccessContext:
    @pytest.mark.asyncio
    async def test_anonymous_uses_app_token(self, db_session, broker):
        ctx = await resolve_access_context(db_session, broker, None)
        assert ctx == AccessContext(token="app-token-1", namespace=APP_NAMESPACE)

    @pytest.mark.asyncio
    async def test_signed_in_user_gets_user_namespace(self, db_session, broker):
        user = await _add_user(db_session)
        ctx = await resolve_access_context(db_session, broker, _session_for(user.id))
        assert ctx == AccessContext(token="user-access", namespace=f"user:{user.id}")

    @pytest.mark.asyncio
    async def test_missing_refresh_token_falls_back_to_app(self, db_session, broker, fake_spotify):
        ctx = await resolve_access_context(db_session, broker, _session_for(12345))
        assert ctx.namespace == "app"
        assert ctx.token == "app-token-1"
        assert fake_spotify.count("refresh") == 0

    @pytest.mark.asyncio
    async def test_refresh_failure_is_not_swallowed(self, db_session, broker, fake_spotify):
        user = await _add_user(db_session)
        fake_spotify.token_error = SpotifyError("boom", 500)
        with pytest.raises(SpotifyError):
            await resolve_access_context(db_session, broker, _session_for(user.id))
