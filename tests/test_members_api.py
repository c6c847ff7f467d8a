import pytest

pytestmark = pytest.mark.anyio


async def test_enroll_and_lookup(client):
    r = await client.post("/api/members", json={"phone": "0912-345-678", "name": "Amy"})
    assert r.status_code == 201
    member = r.json()
    assert member["phone"] == "0912345678"
    assert member["points"] == 0
    assert member["name"] == "Amy"

    r = await client.get("/api/members/0912 345 678")
    assert r.status_code == 200
    assert r.json()["name"] == "Amy"


async def test_enroll_twice_conflicts(client):
    await client.post("/api/members", json={"phone": "0912345678"})
    r = await client.post("/api/members", json={"phone": "0912-345678"})
    assert r.status_code == 409


async def test_enroll_rejects_malformed_phone(client):
    r = await client.post("/api/members", json={"phone": "call me"})
    assert r.status_code == 422


async def test_unknown_member_is_404(client):
    assert (await client.get("/api/members/0999999999")).status_code == 404
    assert (await client.get("/api/members/not-a-phone")).status_code == 404


async def test_list_members(client):
    await client.post("/api/members", json={"phone": "0911111111"})
    await client.post("/api/members", json={"phone": "0922222222"})
    r = await client.get("/api/members")
    assert sorted(m["phone"] for m in r.json()) == ["0911111111", "0922222222"]


async def test_adjust_points_clamps_at_zero(client):
    await client.post("/api/members", json={"phone": "0912345678"})

    r = await client.post("/api/members/0912345678/points", json={"delta": 40, "reason": "welcome"})
    assert r.status_code == 200
    assert r.json()["points"] == 40
    assert r.json()["updated_at"] is not None

    r = await client.post("/api/members/0912345678/points", json={"delta": -100})
    assert r.json()["points"] == 0


async def test_adjust_points_for_unknown_member(client):
    r = await client.post("/api/members/0900000000/points", json={"delta": 5})
    assert r.status_code == 404


async def test_member_order_history(client):
    await client.post("/api/members", json={"phone": "0912345678"})
    for item_id in (1, 2):
        await client.post(
            "/api/orders",
            json={"items": [{"id": item_id, "qty": 1}], "member_phone": "0912345678"},
        )
    await client.post("/api/orders", json={"items": [{"id": 3, "qty": 1}]})

    r = await client.get("/api/members/0912345678/orders")
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 2
    assert [o["lines"][0]["menu_item_id"] for o in body["orders"]] == [2, 1]
