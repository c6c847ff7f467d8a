"""
SQLAlchemy Store Implementation

Postgres-backed store (SQLite through aiosqlite also works; the tests use
it). Order placement runs inside one transaction.

Concurrent writers are serialized on rows that always exist:
    - counter rows are created by init(), and every increment is a single
      UPDATE ... RETURNING, which row-locks on Postgres and takes the write
      lock on SQLite
    - catalog inserts bump the ``menu_item_id`` counter before reading
      max(id), so two creators never pick the same id
    - members enrolled at checkout are inserted ON CONFLICT DO NOTHING and
      then read FOR UPDATE
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from restaurant_api.database import build_session_maker, init_db
from restaurant_api.exceptions import (
    MemberAlreadyExists,
    MemberNotFound,
    MenuItemNotFound,
    OrderNotFound,
)
from restaurant_api.models import Counter, Member, MenuItem, Order, OrderLine, OrderStatus, OrderType
from restaurant_api.repositories.base import TICKET_COUNTER, BaseStore, SettleFn, default_menu
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

MENU_COUNTER = "menu_item_id"

INSERT_IGNORE = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SqlStore(BaseStore):
    """Store on a SQLAlchemy async engine."""

    def __init__(self, engine: AsyncEngine, seed_menu: bool = True):
        super().__init__(seed_menu=seed_menu)
        if engine.dialect.name not in INSERT_IGNORE:
            raise ValueError(f"Unsupported database dialect: {engine.dialect.name}")
        self.engine = engine
        self.session_maker = build_session_maker(engine)

    @property
    def backend_name(self) -> str:
        return "postgres"

    async def init(self) -> None:
        await init_db(self.engine)
        logger.info("Database tables created")

        async with self.session_maker() as session:
            async with session.begin():
                for name in (TICKET_COUNTER, MENU_COUNTER):
                    await session.execute(self._insert_ignore(Counter, name=name, value=0))

        if not self.seed_menu:
            return
        async with self.session_maker() as session:
            async with session.begin():
                await self._next_value(session, MENU_COUNTER)
                count = await session.scalar(select(func.count(MenuItem.id)))
                if count:
                    return
                for item in default_menu():
                    session.add(MenuItem(**item.model_dump()))
        logger.info("Seeded default menu")

    def _insert_ignore(self, model, **values):
        """INSERT that silently skips rows whose key already exists."""
        insert = INSERT_IGNORE[self.engine.dialect.name]
        return insert(model).values(**values).on_conflict_do_nothing()

    async def close(self) -> None:
        await self.engine.dispose()

    async def health_check(self) -> bool:
        try:
            async with self.session_maker() as session:
                await session.execute(select(1))
            return True
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            return False

    # =========================================================================
    # MENU
    # =========================================================================

    @staticmethod
    async def _menu_row(session: AsyncSession, item_id: int) -> MenuItem:
        row = await session.get(MenuItem, item_id)
        if row is None:
            raise MenuItemNotFound(item_id)
        return row

    async def list_menu(self, category: Optional[str] = None) -> list[MenuItemRead]:
        query = select(MenuItem).order_by(MenuItem.id)
        if category is not None:
            query = query.where(MenuItem.category == category)
        async with self.session_maker() as session:
            rows = (await session.execute(query)).scalars().all()
        return [MenuItemRead.model_validate(row) for row in rows]

    async def get_menu_item(self, item_id: int) -> MenuItemRead:
        async with self.session_maker() as session:
            return MenuItemRead.model_validate(await self._menu_row(session, item_id))

    async def get_menu_items(self, item_ids: list[int]) -> dict[int, MenuItemRead]:
        if not item_ids:
            return {}
        async with self.session_maker() as session:
            result = await session.execute(select(MenuItem).where(MenuItem.id.in_(item_ids)))
            return {row.id: MenuItemRead.model_validate(row) for row in result.scalars()}

    async def create_menu_item(self, data: MenuItemCreate) -> MenuItemRead:
        async with self.session_maker() as session:
            async with session.begin():
                await self._next_value(session, MENU_COUNTER)
                max_id = await session.scalar(select(func.max(MenuItem.id)))
                row = MenuItem(id=(max_id or 0) + 1, **data.model_dump())
                session.add(row)
            return MenuItemRead.model_validate(row)

    async def update_menu_item(self, item_id: int, changes: MenuItemUpdate) -> MenuItemRead:
        async with self.session_maker() as session:
            async with session.begin():
                row = await self._menu_row(session, item_id)
                for field, value in changes.model_dump(exclude_unset=True, exclude_none=True).items():
                    setattr(row, field, value)
            return MenuItemRead.model_validate(row)

    async def delete_menu_item(self, item_id: int) -> MenuItemRead:
        async with self.session_maker() as session:
            async with session.begin():
                row = await self._menu_row(session, item_id)
                removed = MenuItemRead.model_validate(row)
                await session.delete(row)
            return removed

    # =========================================================================
    # MEMBERS
    # =========================================================================

    @staticmethod
    async def _member_row(session: AsyncSession, phone: str, for_update: bool = False) -> Optional[Member]:
        return await session.get(Member, phone, with_for_update=True if for_update else None)

    async def list_members(self) -> list[MemberRead]:
        async with self.session_maker() as session:
            rows = (await session.execute(select(Member).order_by(Member.created_at))).scalars().all()
        return [MemberRead.model_validate(row) for row in rows]

    async def get_member(self, phone: str) -> MemberRead:
        async with self.session_maker() as session:
            row = await self._member_row(session, phone)
            if row is None:
                raise MemberNotFound(phone)
            return MemberRead.model_validate(row)

    async def create_member(self, data: MemberCreate) -> MemberRead:
        async with self.session_maker() as session:
            async with session.begin():
                member = MemberRead(phone=data.phone, name=data.name, points=0, created_at=_now())
                result = await session.execute(
                    self._insert_ignore(Member, **member.model_dump())
                )
                if result.rowcount == 0:
                    raise MemberAlreadyExists(data.phone)
            return member

    async def adjust_points(self, phone: str, delta: int) -> MemberRead:
        async with self.session_maker() as session:
            async with session.begin():
                row = await self._member_row(session, phone, for_update=True)
                if row is None:
                    raise MemberNotFound(phone)
                row.points = max(row.points + delta, 0)
                row.updated_at = _now()
            return MemberRead.model_validate(row)

    # =========================================================================
    # ORDERS
    # =========================================================================

    @staticmethod
    async def _next_value(session: AsyncSession, name: str) -> int:
        """Increment a counter row in one statement; concurrent callers queue on the row."""
        value = await session.scalar(
            update(Counter)
            .where(Counter.name == name)
            .values(value=Counter.value + 1)
            .returning(Counter.value)
            .execution_options(synchronize_session=False)
        )
        if value is None:
            raise RuntimeError(f"Counter {name!r} is missing; call init() first")
        return value

    async def create_order(self, draft: OrderDraft, settle: SettleFn) -> OrderRead:
        async with self.session_maker() as session:
            async with session.begin():
                now = _now()
                member = None
                if draft.member_phone:
                    enrolled = await session.execute(
                        self._insert_ignore(
                            Member, phone=draft.member_phone, name="", points=0, created_at=now
                        )
                    )
                    if enrolled.rowcount:
                        logger.info(f"Enrolled member {draft.member_phone} at checkout")
                    member = await self._member_row(session, draft.member_phone, for_update=True)

                settlement = settle(member.points if member is not None else None)
                if member is not None:
                    member.points = settlement.balance_after(member.points)
                    member.updated_at = now

                ticket = None
                if draft.order_type == OrderType.TAKEOUT:
                    ticket = await self._next_value(session, TICKET_COUNTER)

                order = Order(
                    ticket_number=ticket,
                    order_type=draft.order_type,
                    table_number=draft.table_number,
                    member_phone=draft.member_phone,
                    note=draft.note,
                    subtotal=settlement.subtotal,
                    points_used=settlement.points_used,
                    discount=settlement.discount,
                    total=settlement.total,
                    points_earned=settlement.points_earned,
                    status=OrderStatus.PENDING_PAYMENT,
                    created_at=now,
                    updated_at=None,
                    lines=[OrderLine(**line.model_dump()) for line in draft.lines],
                )
                session.add(order)
                await session.flush()
                result = OrderRead.model_validate(order)
            return result

    async def get_order(self, order_id: int) -> OrderRead:
        async with self.session_maker() as session:
            order = await session.get(Order, order_id)
            if order is None:
                raise OrderNotFound(order_id)
            return OrderRead.model_validate(order)

    async def list_orders(
        self,
        skip: int = 0,
        limit: int = 50,
        status: Optional[OrderStatus] = None,
        member_phone: Optional[str] = None,
    ) -> tuple[int, list[OrderRead]]:
        query = select(Order).order_by(Order.id.desc())
        count_query = select(func.count(Order.id))
        if status is not None:
            query = query.where(Order.status == status)
            count_query = count_query.where(Order.status == status)
        if member_phone is not None:
            query = query.where(Order.member_phone == member_phone)
            count_query = count_query.where(Order.member_phone == member_phone)

        async with self.session_maker() as session:
            total = await session.scalar(count_query) or 0
            rows = (await session.execute(query.offset(skip).limit(limit))).scalars().all()
            return total, [OrderRead.model_validate(row) for row in rows]

    async def update_order_status(self, order_id: int, status: OrderStatus) -> OrderRead:
        async with self.session_maker() as session:
            async with session.begin():
                order = await session.get(Order, order_id, with_for_update=True)
                if order is None:
                    raise OrderNotFound(order_id)
                order.status = status
                order.updated_at = _now()
            return OrderRead.model_validate(order)
