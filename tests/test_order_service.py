from types import SimpleNamespace

import pytest

from restaurant_api.schemas import OrderCreate
from restaurant_api.services import orders as orders_module
from restaurant_api.services.orders import OrderService

pytestmark = pytest.mark.anyio


async def test_export_is_queued_when_enabled(store, monkeypatch):
    queued = []
    monkeypatch.setattr(orders_module, "export_order_to_excel", SimpleNamespace(delay=queued.append))

    service = OrderService(store, export_orders=True)
    order = await service.place_order(OrderCreate(items=[{"id": 1}]))

    assert [row["order_id"] for row in queued] == [order.id]
    assert queued[0]["total"] == 150.0


async def test_broker_outage_does_not_fail_order(store, monkeypatch):
    def broken(row):
        raise ConnectionError("redis is down")

    monkeypatch.setattr(orders_module, "export_order_to_excel", SimpleNamespace(delay=broken))

    service = OrderService(store, export_orders=True)
    order = await service.place_order(OrderCreate(items=[{"id": 2}]))

    assert order.id == 1
    assert (await store.get_order(1)).total == 80.0


async def test_export_skipped_by_default(store, monkeypatch):
    queued = []
    monkeypatch.setattr(orders_module, "export_order_to_excel", SimpleNamespace(delay=queued.append))

    await OrderService(store).place_order(OrderCreate(items=[{"id": 3}]))
    assert queued == []


async def test_custom_point_rates(store):
    service = OrderService(store, point_value=5, points_per_amount=50)
    order = await service.place_order(
        OrderCreate(items=[{"id": 1, "qty": 1}], member_phone="0912345678", use_points=10)
    )
    # new member: nothing to redeem, 150 / 50 = 3 earned
    assert order.points_used == 0
    assert order.points_earned == 3

    again = await service.place_order(
        OrderCreate(items=[{"id": 4, "qty": 1}], member_phone="0912345678", use_points=10)
    )
    # 3 points available, floor(20 / 5) = 4 redeemable -> 3 used, 15 off
    assert again.points_used == 3
    assert again.discount == 15.0
    assert again.total == 5.0
    assert again.points_earned == 0
