"""jukebox-api: FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from importlib.metadata import version, PackageNotFoundError
from pathlib import Path
from typing import Annotated

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.ext.asyncio import AsyncSession

from app.admin import setup_admin
from app.api import albums, auth, lists, profile, reviews
from app.infra.config import settings
from app.infra.db import engine, get_db, init_db, ping
from app.infra.errors import register_error_handlers

logger = logging.getLogger("jukebox")

try:
    __version__ = version("jukebox-api")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

DESCRIPTION = "Jukebox: album reviews and lists backed by the Spotify Web API"


@asynccontextmanager
async def lifespan(app: FastAPI):  # type: ignore[no-untyped-def]
    # Schema managed by Alembic; run `alembic upgrade head` before starting.
    # A local SQLite database in development is created on the fly.
    if settings.app_env.lower() == "development" and engine.dialect.name == "sqlite":
        await init_db()
    Path(settings.upload_dir, "avatars").mkdir(parents=True, exist_ok=True)
    if not settings.spotify_client_id or not settings.spotify_client_secret:
        logger.warning(
            "SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET are not set; "
            "login and album lookups will fail."
        )
    yield


app = FastAPI(
    title="jukebox-api",
    description=DESCRIPTION,
    version=__version__,
    lifespan=lifespan,
)


def custom_openapi() -> dict:  # type: ignore[no-untyped-def]
    """Add the session cookie security scheme to the OpenAPI schema."""
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title="jukebox-api",
        version=__version__,
        description=DESCRIPTION,
        routes=app.routes,
    )

    components = openapi_schema.setdefault("components", {})
    components.setdefault("securitySchemes", {})["sessionCookie"] = {
        "type": "apiKey",
        "in": "cookie",
        "name": settings.session_cookie_name,
        "description": "Signed session token set by /auth/spotify/callback",
    }

    # Session-only endpoints read the cookie by hand, so FastAPI can't detect them.
    for path, path_item in openapi_schema.get("paths", {}).items():
        if path.startswith(("/me", "/lists")):
            for method, operation in path_item.items():
                if isinstance(operation, dict) and "security" not in operation:
                    operation["security"] = [{"sessionCookie": []}]

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"],
)

register_error_handlers(app)

app.include_router(auth.router)
app.include_router(profile.router)
app.include_router(albums.router)
app.include_router(reviews.router)
app.include_router(lists.router)

app.mount(
    "/uploads",
    StaticFiles(directory=settings.upload_dir, check_dir=False),
    name="uploads",
)

setup_admin(app)


@app.get("/")
async def root() -> dict:
    return {"name": "jukebox-api", "status": "ok", "version": __version__}


@app.get("/health")
async def health(db: Annotated[AsyncSession, Depends(get_db)]) -> JSONResponse:
    try:
        await ping(db)
    except Exception:
        logger.exception("Database health check failed")
        return JSONResponse(
            status_code=500, content={"status": "error", "error": "database_unavailable"}
        )
    return JSONResponse(content={"status": "ok"})


def run() -> None:
    """Serve the app with uvicorn on the configured host and port."""
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.app_debug and not settings.is_production,
    )
