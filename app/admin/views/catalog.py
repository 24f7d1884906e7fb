"""Admin views for reviews, lists and list items."""

from sqladmin import ModelView

from app.models.db_models import AlbumList, ListItem, Review


class ReviewAdmin(ModelView, model=Review):
    name = "Review"
    name_plural = "Reviews"
    icon = "fa-solid fa-star"

    column_list = [
        Review.id,
        Review.spotify_album_id,
        Review.rating,
        Review.user,
        Review.created_at,
    ]
    column_searchable_list = [Review.spotify_album_id]
    column_sortable_list = [Review.rating, Review.created_at]
    column_default_sort = ("created_at", True)

    form_columns = ["rating", "body"]

    can_create = False
    can_export = True
    export_types = ["csv"]


class AlbumListAdmin(ModelView, model=AlbumList):
    name = "List"
    name_plural = "Lists"
    icon = "fa-solid fa-list-ol"

    column_list = [
        AlbumList.id,
        AlbumList.title,
        AlbumList.is_ranked,
        AlbumList.user,
        AlbumList.created_at,
    ]
    column_searchable_list = [AlbumList.title]
    column_sortable_list = [AlbumList.title, AlbumList.created_at]
    column_details_list = [
        AlbumList.id,
        AlbumList.title,
        AlbumList.description,
        AlbumList.is_ranked,
        AlbumList.user,
        AlbumList.items,
        AlbumList.created_at,
    ]

    form_columns = ["title", "description", "is_ranked"]

    can_create = False


class ListItemAdmin(ModelView, model=ListItem):
    name = "List Item"
    name_plural = "List Items"
    icon = "fa-solid fa-compact-disc"

    column_list = [
        ListItem.id,
        ListItem.album_list,
        ListItem.spotify_album_id,
        ListItem.position,
        ListItem.created_at,
    ]
    column_searchable_list = [ListItem.spotify_album_id]
    column_sortable_list = [ListItem.position, ListItem.created_at]

    form_columns = ["position"]

    can_create = False
