"""
Store Abstract Base Class

Defines the persistence contract for the catalog, members and orders.
MemoryStore, JsonFileStore and SqlStore implement it, and the API layer
only ever sees this interface.

Placement of an order is a single call, ``create_order(draft, settle)``:
inside one lock or transaction the store reads the member balance, asks
``settle`` for the settlement, applies the point movement, allocates a
takeout ticket number and inserts the order.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

from restaurant_api.models import OrderStatus
from restaurant_api.schemas import (
    MemberCreate,
    MemberRead,
    MenuItemCreate,
    MenuItemRead,
    MenuItemUpdate,
    OrderDraft,
    OrderRead,
)
from restaurant_api.services.pricing import Settlement

# Receives the member balance (None for guest orders)
SettleFn = Callable[[Optional[int]], Settlement]

TICKET_COUNTER = "ticket_number"
ORDER_COUNTER = "order_id"

DEFAULT_MENU = [
    {"id": 1, "name": "牛肉麵", "price": 150, "category": "主食"},
    {"id": 2, "name": "陽春麵", "price": 80, "category": "主食"},
    {"id": 3, "name": "炸雞塊", "price": 60, "category": "小菜"},
    {"id": 4, "name": "滷蛋", "price": 20, "category": "小菜"},
    {"id": 5, "name": "珍珠奶茶", "price": 60, "category": "飲料"},
    {"id": 6, "name": "紅茶", "price": 30, "category": "飲料"},
]


def default_menu() -> list[MenuItemRead]:
    return [MenuItemRead(**item) for item in DEFAULT_MENU]


class BaseStore(ABC):
    """
    Abstract base class for storage backends.

    Lookups raise the matching ``*NotFound`` exception from
    ``restaurant_api.exceptions`` instead of returning None.
    """

    def __init__(self, seed_menu: bool = True):
        self.seed_menu = seed_menu

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend name (memory, json, postgres)."""
        pass

    async def init(self) -> None:
        """Prepare the backend; called once at startup."""

    async def close(self) -> None:
        """Release resources; called once at shutdown."""

    async def health_check(self) -> bool:
        """Check the backend is usable."""
        return True

    # =========================================================================
    # MENU
    # =========================================================================

    @abstractmethod
    async def list_menu(self, category: Optional[str] = None) -> list[MenuItemRead]:
        """Catalog in id order, optionally filtered by category."""
        pass

    @abstractmethod
    async def get_menu_item(self, item_id: int) -> MenuItemRead:
        pass

    @abstractmethod
    async def get_menu_items(self, item_ids: list[int]) -> dict[int, MenuItemRead]:
        """Existing items among ``item_ids``, keyed by id. Unknown ids are omitted."""
        pass

    @abstractmethod
    async def create_menu_item(self, data: MenuItemCreate) -> MenuItemRead:
        """Insert with id = max(existing ids) + 1, or 1 for an empty catalog."""
        pass

    @abstractmethod
    async def update_menu_item(self, item_id: int, changes: MenuItemUpdate) -> MenuItemRead:
        pass

    @abstractmethod
    async def delete_menu_item(self, item_id: int) -> MenuItemRead:
        """Remove and return the item."""
        pass

    # =========================================================================
    # MEMBERS
    # =========================================================================

    @abstractmethod
    async def list_members(self) -> list[MemberRead]:
        pass

    @abstractmethod
    async def get_member(self, phone: str) -> MemberRead:
        pass

    @abstractmethod
    async def create_member(self, data: MemberCreate) -> MemberRead:
        """Enroll with 0 points; raises MemberAlreadyExists."""
        pass

    @abstractmethod
    async def adjust_points(self, phone: str, delta: int) -> MemberRead:
        """Add ``delta`` to the balance, clamping at 0."""
        pass

    # =========================================================================
    # ORDERS
    # =========================================================================

    @abstractmethod
    async def create_order(self, draft: OrderDraft, settle: SettleFn) -> OrderRead:
        """
        Settle and insert an order atomically.

        A member phone that is not enrolled yet is enrolled with 0 points.
        Takeout orders receive the next ticket number.
        """
        pass

    @abstractmethod
    async def get_order(self, order_id: int) -> OrderRead:
        pass

    @abstractmethod
    async def list_orders(
        self,
        skip: int = 0,
        limit: int = 50,
        status: Optional[OrderStatus] = None,
        member_phone: Optional[str] = None,
    ) -> tuple[int, list[OrderRead]]:
        """Return ``(total matching, page)`` newest first."""
        pass

    @abstractmethod
    async def update_order_status(self, order_id: int, status: OrderStatus) -> OrderRead:
        """Set any status; there is no transition guard."""
        pass
