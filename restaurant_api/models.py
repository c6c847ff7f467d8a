"""
SQLAlchemy Database Models

Tables used by the postgres storage backend:
- menu_items: the catalog
- members: loyalty records keyed by phone number
- orders / order_lines: placed orders with priced line snapshots
- counters: named sequences (takeout ticket numbers)
"""

import enum

from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from restaurant_api.database import Base


class OrderStatus(str, enum.Enum):
    """Order status lifecycle. Any status may follow any other."""
    PENDING_PAYMENT = "PENDING_PAYMENT"
    PAID = "PAID"
    COOKING = "COOKING"
    READY = "READY"
    DONE = "DONE"
    CANCELLED = "CANCELLED"


class OrderType(str, enum.Enum):
    """Order type - eat in or take away."""
    DINE_IN = "dine_in"
    TAKEOUT = "takeout"


class MenuItem(Base):
    """Catalog entry. Prices here are the only prices orders are charged."""
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True, autoincrement=False)
    name = Column(String(100), nullable=False)
    price = Column(Float, nullable=False)
    category = Column(String(50), nullable=False, default="")
    image = Column(String(500), nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    tags = Column(JSON, nullable=False, default=list)

    def __repr__(self):
        return f"<MenuItem #{self.id} - {self.name} - {self.price}>"


class Member(Base):
    """Loyalty member with an accumulated point balance."""
    __tablename__ = "members"

    phone = Column(String(20), primary_key=True)
    name = Column(String(100), nullable=False, default="")
    points = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Member {self.phone} - {self.points} pts>"


class Order(Base):
    """
    Placed order.

    Totals and point amounts are computed on the server at placement time
    and never change afterwards; only ``status`` moves.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    ticket_number = Column(Integer, nullable=True)

    order_type = Column(
        Enum(OrderType),
        default=OrderType.DINE_IN,
        nullable=False,
    )
    table_number = Column(String(20), nullable=True)
    member_phone = Column(String(20), nullable=True, index=True)
    note = Column(Text, nullable=False, default="")

    # =========================================================================
    # PRICING
    # =========================================================================
    subtotal = Column(Float, nullable=False)
    points_used = Column(Integer, nullable=False, default=0)
    discount = Column(Float, nullable=False, default=0.0)
    total = Column(Float, nullable=False)
    points_earned = Column(Integer, nullable=False, default=0)

    status = Column(
        Enum(OrderStatus),
        default=OrderStatus.PENDING_PAYMENT,
        nullable=False,
        index=True,
    )

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)

    lines = relationship(
        "OrderLine",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLine.id",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<Order #{self.id} - {self.order_type.value} - {self.total} - {self.status.value}>"


class OrderLine(Base):
    """Line snapshot: name and unit price as charged."""
    __tablename__ = "order_lines"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    menu_item_id = Column(Integer, nullable=False)
    name = Column(String(100), nullable=False)
    unit_price = Column(Float, nullable=False)
    quantity = Column(Integer, nullable=False)
    line_total = Column(Float, nullable=False)

    order = relationship("Order", back_populates="lines")


class Counter(Base):
    """Named monotonically increasing sequence."""
    __tablename__ = "counters"

    name = Column(String(50), primary_key=True)
    value = Column(Integer, nullable=False, default=0)
