"""
Pydantic Schemas for Request/Response Validation

Every storage backend hands these models back to the API layer, so the
same shapes come out of memory, JSON and SQL stores.
"""

import re
from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from restaurant_api.models import OrderStatus, OrderType

PHONE_PATTERN = re.compile(r"^\+?\d{6,20}$")


def normalize_phone(value: str) -> str:
    """Strip spaces, dashes and parentheses; the rest must be digits."""
    cleaned = re.sub(r"[\s\-()]", "", value or "")
    if not PHONE_PATTERN.match(cleaned):
        raise ValueError("Phone number must be 6-20 digits, optionally prefixed with +")
    return cleaned


# =============================================================================
# MENU
# =============================================================================

class MenuItemCreate(BaseModel):
    """A new catalog entry; the id is assigned by the store."""
    name: str = Field(..., min_length=1, max_length=100, examples=["牛肉麵"])
    price: float = Field(..., ge=0, examples=[150])
    category: str = Field(default="", max_length=50, examples=["主食"])
    image: str = ""
    description: str = ""
    tags: List[str] = Field(default_factory=list)


class MenuItemUpdate(BaseModel):
    """Partial update; unset fields are left alone."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = Field(None, max_length=50)
    image: Optional[str] = None
    description: Optional[str] = None
    tags: Optional[List[str]] = None


class MenuItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    price: float
    category: str = ""
    image: str = ""
    description: str = ""
    tags: List[str] = Field(default_factory=list)


# =============================================================================
# MEMBERS
# =============================================================================

class MemberCreate(BaseModel):
    """Enrollment request."""
    phone: str = Field(..., examples=["0912-345-678"])
    name: str = Field(default="", max_length=100)

    @field_validator("phone")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        return normalize_phone(v)


class MemberRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    phone: str
    name: str = ""
    points: int = 0
    created_at: datetime
    updated_at: Optional[datetime] = None


class PointsAdjustment(BaseModel):
    """Manual correction of a member balance."""
    delta: int = Field(..., examples=[50, -20])
    reason: Optional[str] = Field(None, max_length=200)


# =============================================================================
# ORDERS
# =============================================================================

class OrderItemCreate(BaseModel):
    """
    Single requested line.

    Any price or total the client sends alongside is ignored; the catalog
    price is charged.
    """
    menu_item_id: int = Field(
        ...,
        validation_alias=AliasChoices("menu_item_id", "id"),
        examples=[1],
    )
    quantity: int = Field(
        default=1,
        ge=1,
        le=99,
        validation_alias=AliasChoices("quantity", "qty"),
        examples=[2],
    )


class OrderCreate(BaseModel):
    """Request schema for placing a new order."""
    items: List[OrderItemCreate] = Field(..., min_length=1)
    order_type: OrderType = Field(default=OrderType.DINE_IN, examples=["takeout"])
    table_number: Optional[str] = Field(None, max_length=20)
    member_phone: Optional[str] = Field(None, examples=["0912345678"])
    use_points: int = Field(default=0, ge=0)
    note: str = Field(default="", max_length=500)

    @field_validator("member_phone")
    @classmethod
    def validate_member_phone(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return normalize_phone(v)


class OrderLineRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    menu_item_id: int
    name: str
    unit_price: float
    quantity: int
    line_total: float


class OrderDraft(BaseModel):
    """Repriced order handed to the store for atomic settlement."""
    order_type: OrderType
    table_number: Optional[str] = None
    member_phone: Optional[str] = None
    note: str = ""
    lines: List[OrderLineRead]
    subtotal: float
    requested_points: int = 0


class OrderRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticket_number: Optional[int] = None
    order_type: OrderType
    table_number: Optional[str] = None
    member_phone: Optional[str] = None
    note: str = ""
    lines: List[OrderLineRead]
    subtotal: float
    points_used: int = 0
    discount: float = 0.0
    total: float
    points_earned: int = 0
    status: OrderStatus
    created_at: datetime
    updated_at: Optional[datetime] = None


class OrderListResponse(BaseModel):
    """Response for listing multiple orders."""
    total: int
    orders: List[OrderRead]


class OrderStatusUpdate(BaseModel):
    status: OrderStatus

    @field_validator("status", mode="before")
    @classmethod
    def upper_status(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v


# =============================================================================
# MISC
# =============================================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    success: bool = False
    error: str
    detail: Optional[str] = None


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    storage: str
    redis: str
    timestamp: datetime
