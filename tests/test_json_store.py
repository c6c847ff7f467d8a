import json

import pytest
from filelock import FileLock, Timeout

from restaurant_api.exceptions import MemberNotFound
from restaurant_api.models import OrderStatus, OrderType
from restaurant_api.repositories import JsonFileStore
from restaurant_api.schemas import MemberCreate, MenuItemCreate, MenuItemUpdate, OrderCreate
from restaurant_api.services.orders import OrderService

pytestmark = pytest.mark.anyio


async def _open(path, lock_timeout=5):
    store = JsonFileStore(path, lock_timeout=lock_timeout)
    await store.init()
    return store


async def test_seeds_and_writes_file(tmp_path):
    path = tmp_path / "data" / "store.json"
    await _open(path)

    saved = json.loads(path.read_text(encoding="utf-8"))
    assert [m["name"] for m in saved["menu"]][:2] == ["牛肉麵", "陽春麵"]
    assert saved["counters"] == {"ticket_number": 0, "order_id": 0}
    assert not (tmp_path / "data" / "store.json.tmp").exists()


async def test_state_survives_reopen(tmp_path):
    path = tmp_path / "store.json"
    store = await _open(path)

    await store.create_menu_item(MenuItemCreate(name="餛飩湯", price=50))
    await store.update_menu_item(1, MenuItemUpdate(price=160))
    await store.create_member(MemberCreate(phone="0912345678"))
    await store.adjust_points("0912345678", 100)

    service = OrderService(store)
    order = await service.place_order(
        OrderCreate(
            items=[{"id": 1, "qty": 1}],
            order_type=OrderType.TAKEOUT,
            member_phone="0912345678",
            use_points=60,
        )
    )
    await store.update_order_status(order.id, OrderStatus.READY)

    reopened = await _open(path)
    assert (await reopened.get_menu_item(7)).name == "餛飩湯"
    assert (await reopened.get_menu_item(1)).price == 160.0
    # 160 - 60 = 100 paid, 1 point earned
    assert (await reopened.get_member("0912345678")).points == 41

    loaded = await reopened.get_order(order.id)
    assert loaded.status == OrderStatus.READY
    assert loaded.ticket_number == 1
    assert loaded.lines[0].name == "牛肉麵"

    second = await OrderService(reopened).place_order(
        OrderCreate(items=[{"id": 2}], order_type=OrderType.TAKEOUT)
    )
    assert second.id == 2
    assert second.ticket_number == 2


async def test_seed_skipped_when_catalog_exists(tmp_path):
    path = tmp_path / "store.json"
    store = await _open(path)
    await store.delete_menu_item(1)

    reopened = await _open(path)
    assert [item.id for item in await reopened.list_menu()] == [2, 3, 4, 5, 6]


async def test_health_check(tmp_path):
    store = await _open(tmp_path / "store.json")
    assert await store.health_check() is True
    assert store.backend_name == "json"


async def test_failed_write_keeps_previous_state(tmp_path):
    path = tmp_path / "store.json"
    store = await _open(path, lock_timeout=0.2)
    await store.create_member(MemberCreate(phone="0912345678"))
    await store.adjust_points("0912345678", 50)
    service = OrderService(store)

    with FileLock(str(store.lock_path)):
        with pytest.raises(Timeout):
            await service.place_order(
                OrderCreate(
                    items=[{"id": 1}],
                    order_type=OrderType.TAKEOUT,
                    member_phone="0912345678",
                    use_points=20,
                )
            )
        with pytest.raises(Timeout):
            await service.place_order(
                OrderCreate(items=[{"id": 2}], order_type=OrderType.TAKEOUT, member_phone="0900111222")
            )
        with pytest.raises(Timeout):
            await store.create_menu_item(MenuItemCreate(name="餛飩湯", price=50))
        with pytest.raises(Timeout):
            await store.adjust_points("0912345678", 10)

    assert await store.list_orders() == (0, [])
    assert (await store.get_member("0912345678")).points == 50
    with pytest.raises(MemberNotFound):
        await store.get_member("0900111222")
    assert len(await store.list_menu()) == 6
    assert not (tmp_path / "store.json.tmp").exists()

    order = await service.place_order(OrderCreate(items=[{"id": 2}], order_type=OrderType.TAKEOUT))
    assert order.id == 1
    assert order.ticket_number == 1

    reopened = await _open(path)
    total, orders = await reopened.list_orders()
    assert total == 1
    assert orders[0].ticket_number == 1
