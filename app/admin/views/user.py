"""Admin view for the User model."""

from sqladmin import ModelView

from app.models.db_models import User


class UserAdmin(ModelView, model=User):
    name = "User"
    name_plural = "Users"
    icon = "fa-solid fa-users"

    column_list = [User.id, User.spotify_id, User.display_name, User.created_at]
    column_searchable_list = [User.spotify_id, User.display_name]
    column_sortable_list = [User.id, User.display_name, User.created_at]
    column_default_sort = ("created_at", True)

    # refresh_token never leaves the database through the dashboard
    column_details_exclude_list = [User.refresh_token]
    form_columns = ["display_name", "bio", "avatar_url"]

    can_create = False
    can_export = True
    export_types = ["csv", "json"]
    column_export_exclude_list = [User.refresh_token]
