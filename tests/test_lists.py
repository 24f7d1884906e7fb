"""Tests for album lists, items and reordering."""

import pytest
from httpx import AsyncClient

from app.modules.spotify.client import SpotifyError
from tests.conftest import ALBUM_A, ALBUM_B, ALBUM_C, ALBUM_D


async def _create_list(client: AsyncClient, **fields) -> dict:
    payload = {"title": "Best of the 90s", **fields}
    resp = await client.post("/me/lists", json=payload)
    assert resp.status_code == 201
    return resp.json()["list"]


async def _list_with_items(client: AsyncClient, fake_spotify, album_ids) -> int:
    album_list = await _create_list(client, is_ranked=True)
    for album_id in album_ids:
        fake_spotify.add_album(album_id)
        resp = await client.post(
            f"/lists/{album_list['id']}/items", json={"spotify_album_id": album_id}
        )
        assert resp.status_code == 201
    return album_list["id"]


@pytest.mark.asyncio
async def test_create_list(client: AsyncClient, user):
    album_list = await _create_list(client, description="  ", is_ranked=True)
    assert album_list["title"] == "Best of the 90s"
    assert album_list["description"] is None
    assert album_list["is_ranked"] is True
    assert album_list["items"] == []


@pytest.mark.asyncio
async def test_create_list_requires_auth(client: AsyncClient):
    resp = await client.post("/me/lists", json={"title": "x"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_create_list_validation(client: AsyncClient, user):
    resp = await client.post("/me/lists", json={"title": "   "})
    assert resp.json() == {"error": "title_required"}

    resp = await client.post("/me/lists", json={"title": "t" * 101})
    assert resp.json() == {"error": "title_too_long"}

    resp = await client.post("/me/lists", json={"title": "ok", "description": "d" * 501})
    assert resp.status_code == 400
    assert resp.json() == {"error": "description_too_long"}


@pytest.mark.asyncio
async def test_length_limits_apply_after_trimming(client: AsyncClient, user):
    album_list = await _create_list(
        client, title="  " + "a" * 100 + " ", description="\n" + "d" * 500 + "  "
    )
    assert album_list["title"] == "a" * 100
    assert album_list["description"] == "d" * 500

    resp = await client.patch(f"/lists/{album_list['id']}", json={"title": " " + "b" * 100})
    assert resp.status_code == 200
    assert resp.json()["list"]["title"] == "b" * 100

    resp = await client.post("/me/lists", json={"title": " " + "c" * 101 + " "})
    assert resp.json() == {"error": "title_too_long"}


@pytest.mark.asyncio
async def test_my_lists(client: AsyncClient, user, fake_spotify):
    await _create_list(client, title="First")
    list_id = await _list_with_items(client, fake_spotify, [ALBUM_A])

    resp = await client.get("/me/lists")
    assert resp.status_code == 200
    lists = resp.json()["lists"]
    assert [al["title"] for al in lists] == ["Best of the 90s", "First"]
    assert lists[0]["id"] == list_id
    assert [i["spotify_album_id"] for i in lists[0]["items"]] == [ALBUM_A]


@pytest.mark.asyncio
async def test_get_list_owner_only(client: AsyncClient, make_user, login):
    owner = await make_user(spotify_id="owner")
    other = await make_user(spotify_id="other")

    login(owner)
    album_list = await _create_list(client)
    resp = await client.get(f"/lists/{album_list['id']}")
    assert resp.status_code == 200
    assert resp.json()["list"]["title"] == "Best of the 90s"

    login(other)
    resp = await client.get(f"/lists/{album_list['id']}")
    assert resp.status_code == 404
    assert resp.json() == {"error": "list_not_found"}

    resp = await client.get("/lists/99999")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_update_list_partial(client: AsyncClient, user):
    album_list = await _create_list(client, description="old")
    resp = await client.patch(f"/lists/{album_list['id']}", json={"is_ranked": True})
    assert resp.status_code == 200
    updated = resp.json()["list"]
    assert updated["is_ranked"] is True
    assert updated["title"] == "Best of the 90s"
    assert updated["description"] == "old"

    resp = await client.patch(
        f"/lists/{album_list['id']}", json={"title": " Renamed ", "description": None}
    )
    updated = resp.json()["list"]
    assert updated["title"] == "Renamed"
    assert updated["description"] is None

    resp = await client.patch(f"/lists/{album_list['id']}", json={"title": ""})
    assert resp.json() == {"error": "title_required"}


@pytest.mark.asyncio
async def test_add_items_newest_first(client: AsyncClient, user, fake_spotify):
    list_id = await _list_with_items(client, fake_spotify, [ALBUM_A, ALBUM_B])
    resp = await client.get(f"/lists/{list_id}")
    items = resp.json()["list"]["items"]
    assert [i["spotify_album_id"] for i in items] == [ALBUM_B, ALBUM_A]
    assert [i["position"] for i in items] == [2, 1]


@pytest.mark.asyncio
async def test_add_item_validation(client: AsyncClient, user, fake_spotify):
    album_list = await _create_list(client)
    url = f"/lists/{album_list['id']}/items"

    resp = await client.post(url, json={"spotify_album_id": "nope"})
    assert resp.json() == {"error": "invalid_album_id"}

    # Well-formed id that Spotify doesn't know
    resp = await client.post(url, json={"spotify_album_id": ALBUM_C})
    assert resp.status_code == 400
    assert resp.json() == {"error": "invalid_album_id"}

    fake_spotify.add_album(ALBUM_A)
    assert (await client.post(url, json={"spotify_album_id": ALBUM_A})).status_code == 201
    resp = await client.post(url, json={"spotify_album_id": ALBUM_A})
    assert resp.status_code == 409
    assert resp.json() == {"error": "item_exists"}


@pytest.mark.asyncio
async def test_add_item_spotify_unavailable(client: AsyncClient, user, fake_spotify):
    album_list = await _create_list(client)
    fake_spotify.api_error = SpotifyError("Spotify API request failed: 503", 503)
    resp = await client.post(
        f"/lists/{album_list['id']}/items", json={"spotify_album_id": ALBUM_A}
    )
    assert resp.status_code == 503
    assert resp.json() == {"error": "spotify_unavailable"}


@pytest.mark.asyncio
async def test_add_item_token_refresh_rejected(client: AsyncClient, user, fake_spotify):
    # A revoked refresh token comes back as 400 invalid_grant from the accounts service
    album_list = await _create_list(client)
    fake_spotify.add_album(ALBUM_A)
    fake_spotify.token_error = SpotifyError("Spotify token request failed: 400 invalid_grant", 400)
    resp = await client.post(
        f"/lists/{album_list['id']}/items", json={"spotify_album_id": ALBUM_A}
    )
    assert resp.status_code == 503
    assert resp.json() == {"error": "spotify_unavailable"}

    resp = await client.get(f"/lists/{album_list['id']}")
    assert resp.json()["list"]["items"] == []


@pytest.mark.asyncio
async def test_reorder_full_permutation(client: AsyncClient, user, fake_spotify):
    list_id = await _list_with_items(client, fake_spotify, [ALBUM_A, ALBUM_B, ALBUM_C, ALBUM_D])
    order = [ALBUM_C, ALBUM_A, ALBUM_D, ALBUM_B]

    resp = await client.post(f"/lists/{list_id}/reorder", json={"order": order})
    assert resp.status_code == 200
    items = resp.json()["list"]["items"]
    assert [i["spotify_album_id"] for i in items] == order
    assert [i["position"] for i in items] == [4, 3, 2, 1]

    resp = await client.get(f"/lists/{list_id}")
    items = resp.json()["list"]["items"]
    assert [i["spotify_album_id"] for i in items] == order
    assert [i["position"] for i in items] == [4, 3, 2, 1]


@pytest.mark.asyncio
async def test_reorder_missing_id(client: AsyncClient, user, fake_spotify):
    list_id = await _list_with_items(client, fake_spotify, [ALBUM_A, ALBUM_B, ALBUM_C])
    resp = await client.post(f"/lists/{list_id}/reorder", json={"order": [ALBUM_A, ALBUM_B]})
    assert resp.status_code == 400
    assert resp.json() == {"error": "order_mismatch"}


@pytest.mark.asyncio
async def test_reorder_unknown_id(client: AsyncClient, user, fake_spotify):
    list_id = await _list_with_items(client, fake_spotify, [ALBUM_A, ALBUM_B])
    resp = await client.post(f"/lists/{list_id}/reorder", json={"order": [ALBUM_A, ALBUM_D]})
    assert resp.json() == {"error": "order_mismatch"}


@pytest.mark.asyncio
async def test_reorder_duplicate_id(client: AsyncClient, user, fake_spotify):
    list_id = await _list_with_items(client, fake_spotify, [ALBUM_A, ALBUM_B])
    resp = await client.post(
        f"/lists/{list_id}/reorder", json={"order": [ALBUM_A, ALBUM_B, ALBUM_A]}
    )
    assert resp.status_code == 400
    assert resp.json() == {"error": "order_duplicate"}


@pytest.mark.asyncio
async def test_rejected_reorder_leaves_positions_untouched(client: AsyncClient, user, fake_spotify):
    list_id = await _list_with_items(client, fake_spotify, [ALBUM_A, ALBUM_B])
    await client.post(f"/lists/{list_id}/reorder", json={"order": [ALBUM_A]})
    resp = await client.get(f"/lists/{list_id}")
    assert [i["spotify_album_id"] for i in resp.json()["list"]["items"]] == [ALBUM_B, ALBUM_A]


@pytest.mark.asyncio
async def test_reorder_other_users_list(client: AsyncClient, make_user, login, fake_spotify):
    owner = await make_user(spotify_id="owner")
    login(owner)
    list_id = await _list_with_items(client, fake_spotify, [ALBUM_A])

    login(await make_user(spotify_id="intruder"))
    resp = await client.post(f"/lists/{list_id}/reorder", json={"order": [ALBUM_A]})
    assert resp.status_code == 404
