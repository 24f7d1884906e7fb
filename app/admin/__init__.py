"""Admin dashboard: setup and configuration for sqladmin."""

from __future__ import annotations

from fastapi import FastAPI
from sqladmin import Admin

from app.admin.auth import AdminAuth
from app.admin.views import AlbumListAdmin, ListItemAdmin, ReviewAdmin, UserAdmin
from app.infra.config import settings
from app.infra.db import engine


def setup_admin(app: FastAPI) -> Admin:
    """Configure and mount the sqladmin dashboard on the FastAPI app."""
    authentication_backend = AdminAuth(secret_key=settings.jwt_secret_key)

    admin = Admin(
        app=app,
        engine=engine,
        authentication_backend=authentication_backend,
        base_url="/admin",
        title="Jukebox Admin",
    )

    admin.add_view(UserAdmin)
    admin.add_view(ReviewAdmin)
    admin.add_view(AlbumListAdmin)
    admin.add_view(ListItemAdmin)

    return admin
