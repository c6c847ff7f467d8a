import json
from datetime import datetime, timezone

from restaurant_api.models import OrderStatus, OrderType
from restaurant_api.schemas import OrderLineRead, OrderRead
from restaurant_api.services.ledger import LedgerExporter, order_to_row


def _order(order_id=1):
    return OrderRead(
        id=order_id,
        ticket_number=5,
        order_type=OrderType.TAKEOUT,
        member_phone="0912345678",
        lines=[
            OrderLineRead(menu_item_id=1, name="牛肉麵", unit_price=150, quantity=2, line_total=300),
        ],
        subtotal=300,
        points_used=10,
        discount=10,
        total=290,
        points_earned=2,
        status=OrderStatus.PENDING_PAYMENT,
        created_at=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
    )


def test_order_to_row_is_json_serializable():
    row = order_to_row(_order())
    assert json.loads(json.dumps(row, ensure_ascii=False)) == row
    assert row["order_type"] == "takeout"
    assert row["order_status"] == "PENDING_PAYMENT"
    assert json.loads(row["items"]) == [{"id": 1, "name": "牛肉麵", "qty": 2, "price": 150.0}]


def test_export_appends_rows(tmp_path):
    ledger = LedgerExporter(tmp_path / "data", lock_timeout=5)

    first = ledger.export_order(order_to_row(_order(1)))
    second = ledger.export_order(order_to_row(_order(2)))

    assert first["success"] and second["success"]
    assert first["exported_at"] is not None
    rows = ledger.get_all_orders()
    assert [r["order_id"] for r in rows] == [1, 2]
    assert rows[0]["total"] == 290
    assert rows[0]["member_phone"] == "0912345678"


def test_export_is_idempotent_per_order(tmp_path):
    ledger = LedgerExporter(tmp_path, lock_timeout=5)
    ledger.export_order(order_to_row(_order(7)))
    again = ledger.export_order(order_to_row(_order(7)))

    assert again["success"] is True
    assert "already exported" in again["message"]
    assert len(ledger.get_all_orders()) == 1


def test_clear(tmp_path):
    ledger = LedgerExporter(tmp_path, lock_timeout=5)
    assert ledger.get_all_orders() == []
    assert ledger.clear_all() is False

    ledger.export_order(order_to_row(_order()))
    assert ledger.clear_all() is True
    assert ledger.get_all_orders() == []
