"""Shared test fixtures."""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.infra.auth import create_session_token
from app.infra.cache import album_cache, search_cache
from app.infra.config import settings
from app.infra.db import build_engine, get_db
from app.infra.rate_limit import spotify_rate_limiter
from app.main import app
from app.models.db_models import Base, User
from app.modules.spotify.client import SpotifyError, TokenGrant, get_spotify
from app.modules.spotify.tokens import TokenBroker, get_token_broker

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

ALBUM_A = "4aawyAB9vmqN3uQ7FjRGTy"
ALBUM_B = "1ATL5GLyefJaxhQzSPVrLX"
ALBUM_C = "6s84u2TUpR3wdUv4NgKA2j"
ALBUM_D = "2noRn2Aes5aoNVsU6iWThc"


class FakeSpotify:
    """In-memory stand-in for SpotifyClient; records every call."""

    def __init__(self) -> None:
        self.albums: dict[str, dict] = {}
        self.search_items: list[dict] = []
        self.calls: list[tuple] = []
        self.profile = {"id": "spotify_user", "display_name": "Spotify User"}
        self.code_grant = TokenGrant("code-access", 3600, "refresh-from-code")
        self.refresh_grant = TokenGrant("user-access", 3600, None)
        self.api_error: SpotifyError | None = None
        self.token_error: SpotifyError | None = None
        self._app_tokens = 0

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    def add_album(self, album_id: str, name: str = "Album", artist: str = "Artist") -> dict:
        raw = {
            "id": album_id,
            "name": name,
            "artists": [{"id": "artist1", "name": artist}],
            "images": [
                {"url": f"https://img.example/{album_id}/640", "width": 640},
                {"url": f"https://img.example/{album_id}/300", "width": 300},
            ],
            "release_date": "1997-05-21",
            "total_tracks": 2,
            "label": "Parlophone",
            "genres": [],
            "tracks": {
                "items": [
                    {"id": "t1", "name": "Track One", "track_number": 1,
                     "duration_ms": 200000, "preview_url": None},
                    {"id": "t2", "name": "Track Two", "track_number": 2,
                     "duration_ms": 180000, "preview_url": None},
                ]
            },
        }
        self.albums[album_id] = raw
        return raw

    def authorize_url(self, state: str) -> str:
        return f"https://accounts.spotify.test/authorize?state={state}"

    async def exchange_code(self, code: str) -> TokenGrant:
        self.calls.append(("exchange_code", code))
        if self.token_error:
            raise self.token_error
        return self.code_grant

    async def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        self.calls.append(("refresh", refresh_token))
        if self.token_error:
            raise self.token_error
        return self.refresh_grant

    async def request_app_token(self) -> TokenGrant:
        self.calls.append(("app_token",))
        if self.token_error:
            raise self.token_error
        self._app_tokens += 1
        return TokenGrant(f"app-token-{self._app_tokens}", 3600)

    async def get_profile(self, access_token: str) -> dict:
        self.calls.append(("profile", access_token))
        return self.profile

    async def search_albums(self, access_token: str, query: str, limit: int) -> dict:
        self.calls.append(("search", access_token, query, limit))
        if self.api_error:
            raise self.api_error
        return {"albums": {"items": self.search_items[:limit]}}

    async def get_album(self, access_token: str, album_id: str) -> dict:
        self.calls.append(("album", access_token, album_id))
        if self.api_error:
            raise self.api_error
        if album_id not in self.albums:
            raise SpotifyError("Spotify API request failed: 404", status_code=404)
        return self.albums[album_id]

    async def get_albums(self, access_token: str, album_ids: list[str]) -> dict:
        self.calls.append(("albums", access_token, tuple(album_ids)))
        if self.api_error:
            raise self.api_error
        return {"albums": [self.albums.get(i) for i in album_ids]}


@pytest.fixture(autouse=True)
def _reset_process_state():
    search_cache.clear()
    album_cache.clear()
    spotify_rate_limiter.reset()
    yield
    search_cache.clear()
    album_cache.clear()
    spotify_rate_limiter.reset()


@pytest_asyncio.fixture
async def db_engine():
    engine = build_engine(TEST_DB_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
def fake_spotify():
    return FakeSpotify()


@pytest.fixture
def broker(fake_spotify):
    return TokenBroker(fake_spotify)


@pytest_asyncio.fixture
async def client(db_engine, fake_spotify, broker):
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def _override_get_db():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_spotify] = lambda: fake_spotify
    app.dependency_overrides[get_token_broker] = lambda: broker
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def make_user(db_engine):
    """Factory: insert a user directly and return it."""
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def _make(
        spotify_id: str = "spotify_user",
        display_name: str | None = "Test User",
        refresh_token: str = "stored-refresh",
    ) -> User:
        async with factory() as db:
            user = User(
                spotify_id=spotify_id,
                display_name=display_name,
                refresh_token=refresh_token,
                favorite_genres=[],
                favorite_album_ids=[],
            )
            db.add(user)
            await db.commit()
            return user

    return _make


@pytest.fixture
def login(client):
    """Set the session cookie for ``user`` on the test client."""

    def _login(user: User) -> None:
        token, _ = create_session_token(user)
        client.cookies.set(settings.session_cookie_name, token)

    return _login


@pytest_asyncio.fixture
async def user(make_user, login):
    """A signed-in user."""
    u = await make_user()
    login(u)
    return u
