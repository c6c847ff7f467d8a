"""
Order Placement Service

Turns an OrderCreate request into a stored order:
    1. merge repeated menu ids and look every id up in the catalog
    2. reprice each line from the catalog (client prices are never read)
    3. hand the draft to the store, which settles loyalty points, allocates
       a takeout ticket and inserts the order in one atomic step
    4. optionally queue the order to the spreadsheet ledger
"""

import logging
from typing import Optional

from restaurant_api.exceptions import InvalidOrder
from restaurant_api.repositories.base import BaseStore
from restaurant_api.schemas import OrderCreate, OrderDraft, OrderLineRead, OrderRead
from restaurant_api.services.ledger import order_to_row
from restaurant_api.services.pricing import (
    Settlement,
    compute_subtotal,
    line_total,
    settle,
    settle_guest,
)
from restaurant_api.tasks import export_order_to_excel

logger = logging.getLogger(__name__)

MAX_LINE_QUANTITY = 99


class OrderService:
    """
    Places orders against a store.

    Attributes:
        store: Storage backend
        point_value: Currency value of one redeemed point
        points_per_amount: Spend needed to earn one point
        export_orders: Queue placed orders to the ledger task
    """

    def __init__(
        self,
        store: BaseStore,
        point_value: float = 1.0,
        points_per_amount: float = 100.0,
        export_orders: bool = False,
    ):
        self.store = store
        self.point_value = point_value
        self.points_per_amount = points_per_amount
        self.export_orders = export_orders

    async def build_draft(self, request: OrderCreate) -> OrderDraft:
        """Reprice the requested items from the catalog."""
        quantities: dict[int, int] = {}
        for item in request.items:
            quantities[item.menu_item_id] = quantities.get(item.menu_item_id, 0) + item.quantity

        catalog = await self.store.get_menu_items(list(quantities))
        missing = [item_id for item_id in quantities if item_id not in catalog]
        if missing:
            raise InvalidOrder(f"Unknown menu item(s): {', '.join(str(i) for i in missing)}")

        lines = []
        for item_id, quantity in quantities.items():
            if quantity > MAX_LINE_QUANTITY:
                raise InvalidOrder(
                    f"Quantity for menu item {item_id} exceeds {MAX_LINE_QUANTITY}"
                )
            menu_item = catalog[item_id]
            lines.append(
                OrderLineRead(
                    menu_item_id=item_id,
                    name=menu_item.name,
                    unit_price=menu_item.price,
                    quantity=quantity,
                    line_total=line_total(menu_item.price, quantity),
                )
            )

        return OrderDraft(
            order_type=request.order_type,
            table_number=request.table_number,
            member_phone=request.member_phone,
            note=request.note,
            lines=lines,
            subtotal=compute_subtotal((line.unit_price, line.quantity) for line in lines),
            requested_points=request.use_points,
        )

    def settlement_for(self, draft: OrderDraft):
        """Settlement callback the store invokes with the member balance."""
        def _settle(balance: Optional[int]) -> Settlement:
            if balance is None:
                return settle_guest(draft.subtotal)
            return settle(
                draft.subtotal,
                requested_points=draft.requested_points,
                available_points=balance,
                point_value=self.point_value,
                points_per_amount=self.points_per_amount,
            )
        return _settle

    async def place_order(self, request: OrderCreate) -> OrderRead:
        draft = await self.build_draft(request)
        order = await self.store.create_order(draft, self.settlement_for(draft))

        logger.info(
            f"Order #{order.id} placed: {order.order_type.value}, total={order.total}, "
            f"points -{order.points_used}/+{order.points_earned}"
            + (f", ticket {order.ticket_number}" if order.ticket_number else "")
        )

        if self.export_orders:
            self.queue_export(order)
        return order

    @staticmethod
    def queue_export(order: OrderRead) -> None:
        """Queue the ledger export; a broker outage never fails the order."""
        try:
            export_order_to_excel.delay(order_to_row(order))
        except Exception as e:
            logger.warning(f"Could not queue ledger export for order #{order.id}: {e}")
