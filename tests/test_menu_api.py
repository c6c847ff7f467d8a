from pathlib import Path

import pytest

from restaurant_api.exceptions import InvalidMenuItem, MenuItemNotFound

pytestmark = pytest.mark.anyio


async def test_list_returns_seeded_menu(client):
    r = await client.get("/api/menu")
    assert r.status_code == 200
    items = r.json()
    assert [i["id"] for i in items] == [1, 2, 3, 4, 5, 6]
    assert items[0] == {
        "id": 1,
        "name": "牛肉麵",
        "price": 150.0,
        "category": "主食",
        "image": "",
        "description": "",
        "tags": [],
    }


async def test_filter_by_category(client):
    r = await client.get("/api/menu", params={"category": "飲料"})
    assert [i["name"] for i in r.json()] == ["珍珠奶茶", "紅茶"]


async def test_get_unknown_item_is_404(client):
    r = await client.get("/api/menu/999")
    assert r.status_code == 404
    assert "999" in r.json()["detail"]


async def test_create_from_json_assigns_next_id(client):
    r = await client.post(
        "/api/menu",
        json={"name": "乾麵", "price": "70", "category": "主食", "tags": ["spicy", "new"]},
    )
    assert r.status_code == 201
    item = r.json()
    assert item["id"] == 7
    assert item["price"] == 70.0
    assert item["tags"] == ["spicy", "new"]

    r = await client.get("/api/menu/7")
    assert r.json()["name"] == "乾麵"


@pytest.mark.parametrize(
    "payload",
    [
        {"price": 50},
        {"name": "", "price": 50},
        {"name": "湯", "price": "abc"},
        {"name": "湯"},
        {"name": "湯", "price": -1},
    ],
)
async def test_create_requires_name_and_price(client, payload):
    r = await client.post("/api/menu", json=payload)
    assert r.status_code == 400
    assert r.json()["detail"] == "name and price are required"


async def test_create_rejects_non_object_body(client):
    r = await client.post("/api/menu", json=[1, 2])
    assert r.status_code == 400


async def test_create_with_image_upload(client, settings):
    r = await client.post(
        "/api/menu",
        data={"name": "牛肉湯麵", "price": "160", "category": "主食", "tags": "beef, soup"},
        files={"image": ("beef noodle.png", b"\x89PNG\r\n\x1a\nfake", "image/png")},
    )
    assert r.status_code == 201
    item = r.json()
    assert item["price"] == 160.0
    assert item["tags"] == ["beef", "soup"]
    assert item["image"].startswith("http://test/uploads/menu/")
    assert item["image"].endswith("-beef_noodle.png")

    filename = item["image"].rsplit("/", 1)[1]
    stored = Path(settings.upload_directory) / "menu" / filename
    assert stored.read_bytes() == b"\x89PNG\r\n\x1a\nfake"


async def test_create_rejects_non_image_upload(client):
    r = await client.post(
        "/api/menu",
        data={"name": "菜單", "price": "10"},
        files={"image": ("menu.txt", b"hello", "text/plain")},
    )
    assert r.status_code == 400
    assert "Unsupported file type" in r.json()["detail"]


async def test_create_rejects_oversized_upload(client, monkeypatch, settings):
    monkeypatch.setattr(settings, "max_upload_bytes", 4)
    r = await client.post(
        "/api/menu",
        data={"name": "大圖", "price": "10"},
        files={"image": ("big.jpg", b"0123456789", "image/jpeg")},
    )
    assert r.status_code == 400
    assert list((Path(settings.upload_directory) / "menu").glob("*big.jpg")) == []


async def test_update_changes_only_supplied_fields(client):
    r = await client.put("/api/menu/2", json={"price": 85})
    assert r.status_code == 200
    item = r.json()
    assert item["price"] == 85.0
    assert item["name"] == "陽春麵"
    assert item["category"] == "主食"


async def test_update_ignores_invalid_price(client):
    r = await client.put("/api/menu/3", json={"name": "鹽酥雞", "price": "free"})
    assert r.status_code == 200
    assert r.json()["name"] == "鹽酥雞"
    assert r.json()["price"] == 60.0


async def test_update_with_form_and_image(client):
    r = await client.put(
        "/api/menu/5",
        data={"category": "手搖"},
        files={"image": ("tea.jpg", b"jpegdata", "image/jpeg")},
    )
    assert r.status_code == 200
    item = r.json()
    assert item["category"] == "手搖"
    assert item["image"].endswith("-tea.jpg")


async def test_update_unknown_item_is_404(client):
    r = await client.put("/api/menu/42", json={"price": 1})
    assert r.status_code == 404


async def test_delete_returns_removed_item(client):
    r = await client.delete("/api/menu/4")
    assert r.status_code == 200
    assert r.json()["name"] == "滷蛋"

    assert (await client.get("/api/menu/4")).status_code == 404
    assert (await client.delete("/api/menu/4")).status_code == 404


async def test_new_id_follows_highest_remaining_id(client):
    await client.delete("/api/menu/6")
    r = await client.post("/api/menu", json={"name": "綠茶", "price": 30})
    assert r.json()["id"] == 6


async def test_first_item_in_empty_catalog_gets_id_one(client):
    for item_id in range(1, 7):
        await client.delete(f"/api/menu/{item_id}")
    assert (await client.get("/api/menu")).json() == []

    r = await client.post("/api/menu", json={"name": "水餃", "price": 60})
    assert r.json()["id"] == 1


def _stored_images(settings):
    return list((Path(settings.upload_directory) / "menu").glob("*"))


async def test_invalid_update_does_not_store_image(client, settings):
    r = await client.put(
        "/api/menu/1",
        data={"name": ""},
        files={"image": ("noodle.jpg", b"jpegdata", "image/jpeg")},
    )
    assert r.status_code == 400
    assert _stored_images(settings) == []


async def test_image_removed_when_create_fails(client, store, settings, monkeypatch):
    async def refuse(data):
        raise InvalidMenuItem("catalog is locked")

    monkeypatch.setattr(store, "create_menu_item", refuse)
    r = await client.post(
        "/api/menu",
        data={"name": "餛飩麵", "price": "90"},
        files={"image": ("wonton.jpg", b"jpegdata", "image/jpeg")},
    )
    assert r.status_code == 400
    assert _stored_images(settings) == []


async def test_image_removed_when_update_fails(client, store, settings, monkeypatch):
    async def vanished(item_id, changes):
        raise MenuItemNotFound(item_id)

    monkeypatch.setattr(store, "update_menu_item", vanished)
    r = await client.put(
        "/api/menu/2",
        data={"price": "85"},
        files={"image": ("plain.jpg", b"jpegdata", "image/jpeg")},
    )
    assert r.status_code == 404
    assert _stored_images(settings) == []
