"""
In-Memory Store Implementation

Keeps the catalog, members and orders in plain Python lists and dicts.
Used by default in development and by the test-suite. Data lives only as
long as the process.

All mutations run under one asyncio.Lock, which makes order settlement
atomic within the process. Each mutation works on a deep copy of the
state, which replaces the live state only once ``_persist`` has accepted
it, so a failed write leaves nothing half-applied. Records are held as
JSON-compatible dicts so the JSON file backend can persist the same state
verbatim.
"""

import asyncio
import copy
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from restaurant_api.exceptions import (
    MemberAlreadyExists,
    MemberNotFound,
    MenuItemNotFound,
    OrderNotFound,
)
from restaurant_api.models import OrderStatus, OrderType
from restaurant_api.repositories.base import (
    ORDER_COUNTER,
    TICKET_COUNTER,
    BaseStore,
    SettleFn,
    default_menu,
)
from restaurant_api.schemas import (
    MemberCreate,
    MemberRead,
    MenuItemCreate,
    MenuItemRead,
    MenuItemUpdate,
    OrderDraft,
    OrderRead,
)

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def empty_state() -> dict[str, Any]:
    return {
        "menu": [],
        "members": {},
        "orders": [],
        "counters": {TICKET_COUNTER: 0, ORDER_COUNTER: 0},
    }


class MemoryStore(BaseStore):
    """
    Process-local store.

    Example:
        >>> store = MemoryStore()
        >>> await store.init()
        >>> [item.name for item in await store.list_menu()][:2]
        ['牛肉麵', '陽春麵']
    """

    def __init__(self, seed_menu: bool = True):
        super().__init__(seed_menu=seed_menu)
        self._state: dict[str, Any] = empty_state()
        self._lock = asyncio.Lock()

    @property
    def backend_name(self) -> str:
        return "memory"

    async def init(self) -> None:
        async with self._lock:
            if self.seed_menu and not self._state["menu"]:
                state = self._stage()
                state["menu"] = [item.model_dump(mode="json") for item in default_menu()]
                await self._commit(state)
                logger.info(f"Seeded default menu ({len(state['menu'])} items)")

    def _stage(self) -> dict[str, Any]:
        """Working copy for one mutation."""
        return copy.deepcopy(self._state)

    async def _commit(self, state: dict[str, Any]) -> None:
        await self._persist(state)
        self._state = state

    async def _persist(self, state: dict[str, Any]) -> None:
        """Hook called with the staged state, under the lock; raising discards it."""

    @staticmethod
    def _next(state: dict[str, Any], counter: str) -> int:
        counters = state["counters"]
        counters[counter] = counters.get(counter, 0) + 1
        return counters[counter]

    # =========================================================================
    # MENU
    # =========================================================================

    @staticmethod
    def _find_menu_index(state: dict[str, Any], item_id: int) -> int:
        for index, item in enumerate(state["menu"]):
            if item["id"] == item_id:
                return index
        raise MenuItemNotFound(item_id)

    async def list_menu(self, category: Optional[str] = None) -> list[MenuItemRead]:
        items = sorted(self._state["menu"], key=lambda m: m["id"])
        if category is not None:
            items = [m for m in items if m.get("category", "") == category]
        return [MenuItemRead.model_validate(m) for m in items]

    async def get_menu_item(self, item_id: int) -> MenuItemRead:
        index = self._find_menu_index(self._state, item_id)
        return MenuItemRead.model_validate(self._state["menu"][index])

    async def get_menu_items(self, item_ids: list[int]) -> dict[int, MenuItemRead]:
        wanted = set(item_ids)
        return {
            m["id"]: MenuItemRead.model_validate(m)
            for m in self._state["menu"]
            if m["id"] in wanted
        }

    async def create_menu_item(self, data: MenuItemCreate) -> MenuItemRead:
        async with self._lock:
            state = self._stage()
            new_id = max((m["id"] for m in state["menu"]), default=0) + 1
            item = MenuItemRead(id=new_id, **data.model_dump())
            state["menu"].append(item.model_dump(mode="json"))
            await self._commit(state)
        return item

    async def update_menu_item(self, item_id: int, changes: MenuItemUpdate) -> MenuItemRead:
        async with self._lock:
            state = self._stage()
            index = self._find_menu_index(state, item_id)
            updated = MenuItemRead.model_validate(
                {**state["menu"][index], **changes.model_dump(exclude_unset=True, exclude_none=True)}
            )
            state["menu"][index] = updated.model_dump(mode="json")
            await self._commit(state)
        return updated

    async def delete_menu_item(self, item_id: int) -> MenuItemRead:
        async with self._lock:
            state = self._stage()
            removed = state["menu"].pop(self._find_menu_index(state, item_id))
            await self._commit(state)
        return MenuItemRead.model_validate(removed)

    # =========================================================================
    # MEMBERS
    # =========================================================================

    @staticmethod
    def _member_record(state: dict[str, Any], phone: str) -> dict[str, Any]:
        record = state["members"].get(phone)
        if record is None:
            raise MemberNotFound(phone)
        return record

    async def list_members(self) -> list[MemberRead]:
        return [MemberRead.model_validate(m) for m in self._state["members"].values()]

    async def get_member(self, phone: str) -> MemberRead:
        return MemberRead.model_validate(self._member_record(self._state, phone))

    async def create_member(self, data: MemberCreate) -> MemberRead:
        async with self._lock:
            if data.phone in self._state["members"]:
                raise MemberAlreadyExists(data.phone)
            state = self._stage()
            member = MemberRead(phone=data.phone, name=data.name, points=0, created_at=_now())
            state["members"][data.phone] = member.model_dump(mode="json")
            await self._commit(state)
        return member

    async def adjust_points(self, phone: str, delta: int) -> MemberRead:
        async with self._lock:
            state = self._stage()
            record = self._member_record(state, phone)
            record["points"] = max(record["points"] + delta, 0)
            record["updated_at"] = _now().isoformat()
            await self._commit(state)
        return MemberRead.model_validate(record)

    # =========================================================================
    # ORDERS
    # =========================================================================

    @staticmethod
    def _order_index(state: dict[str, Any], order_id: int) -> int:
        for index, order in enumerate(state["orders"]):
            if order["id"] == order_id:
                return index
        raise OrderNotFound(order_id)

    async def create_order(self, draft: OrderDraft, settle: SettleFn) -> OrderRead:
        async with self._lock:
            now = _now()
            state = self._stage()
            members = state["members"]
            member = None
            if draft.member_phone:
                member = members.get(draft.member_phone)
                if member is None:
                    member = MemberRead(
                        phone=draft.member_phone, points=0, created_at=now
                    ).model_dump(mode="json")
                    members[draft.member_phone] = member
                    logger.info(f"Enrolling member {draft.member_phone} at checkout")

            settlement = settle(member["points"] if member else None)

            if member is not None:
                member["points"] = settlement.balance_after(member["points"])
                member["updated_at"] = now.isoformat()

            ticket = self._next(state, TICKET_COUNTER) if draft.order_type == OrderType.TAKEOUT else None
            order = OrderRead(
                id=self._next(state, ORDER_COUNTER),
                ticket_number=ticket,
                order_type=draft.order_type,
                table_number=draft.table_number,
                member_phone=draft.member_phone,
                note=draft.note,
                lines=draft.lines,
                subtotal=settlement.subtotal,
                points_used=settlement.points_used,
                discount=settlement.discount,
                total=settlement.total,
                points_earned=settlement.points_earned,
                status=OrderStatus.PENDING_PAYMENT,
                created_at=now,
            )
            state["orders"].append(order.model_dump(mode="json"))
            await self._commit(state)
        return order

    async def get_order(self, order_id: int) -> OrderRead:
        return OrderRead.model_validate(self._state["orders"][self._order_index(self._state, order_id)])

    async def list_orders(
        self,
        skip: int = 0,
        limit: int = 50,
        status: Optional[OrderStatus] = None,
        member_phone: Optional[str] = None,
    ) -> tuple[int, list[OrderRead]]:
        orders = sorted(self._state["orders"], key=lambda o: o["id"], reverse=True)
        if status is not None:
            orders = [o for o in orders if o["status"] == status.value]
        if member_phone is not None:
            orders = [o for o in orders if o.get("member_phone") == member_phone]
        page = orders[skip:skip + limit]
        return len(orders), [OrderRead.model_validate(o) for o in page]

    async def update_order_status(self, order_id: int, status: OrderStatus) -> OrderRead:
        async with self._lock:
            state = self._stage()
            record = state["orders"][self._order_index(state, order_id)]
            record["status"] = status.value
            record["updated_at"] = _now().isoformat()
            await self._commit(state)
        return OrderRead.model_validate(record)
