"""Admin model view configurations."""

from app.admin.views.user import UserAdmin
from app.admin.views.catalog import AlbumListAdmin, ListItemAdmin, ReviewAdmin

__all__ = [
    "UserAdmin",
    "ReviewAdmin",
    "AlbumListAdmin",
    "ListItemAdmin",
]
