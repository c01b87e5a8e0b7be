"""
Customer order schemas for validation and serialization.

An order reaches RESERVED only when every line item was reserved;
otherwise it is REJECTED with the shortfall of the first item that failed.
"""

from enum import Enum
from decimal import Decimal
from datetime import datetime
from typing import Any, Optional

from pydantic import Field, field_validator

from models.base import BaseSchema, TimestampMixin
from models.stock import StockReservationResponse


# ===================
# ENUMS
# ===================

class OrderStatus(str, Enum):
    """Customer order lifecycle."""
    NEW = "new"
    RESERVED = "reserved"
    FULFILLED = "fulfilled"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


VALID_ORDER_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.NEW: {OrderStatus.RESERVED, OrderStatus.REJECTED},
    OrderStatus.RESERVED: {OrderStatus.FULFILLED, OrderStatus.CANCELLED},
    OrderStatus.FULFILLED: set(),
    OrderStatus.REJECTED: set(),
    OrderStatus.CANCELLED: set(),
}


def is_valid_order_transition(current: OrderStatus, new: OrderStatus) -> bool:
    """Check if an order status transition is valid."""
    return new in VALID_ORDER_TRANSITIONS[current]


# ===================
# LINE ITEMS
# ===================

class OrderLineItem(BaseSchema):
    """One product and quantity on an order."""

    product_id: str = Field(..., min_length=1, description="Product id")
    quantity: int = Field(..., gt=0, description="Requested units")

    @field_validator("product_id", mode="before")
    @classmethod
    def stringify_product_id(cls, v: Any) -> str:
        return str(v)


def merge_line_items(items: list[OrderLineItem]) -> list[OrderLineItem]:
    """
    Sum quantities per product and sort by product id.

    Reservations are always taken in this order so concurrent orders
    lock rows in the same sequence.
    """
    totals: dict[str, int] = {}
    for item in items:
        totals[item.product_id] = totals.get(item.product_id, 0) + item.quantity
    return [
        OrderLineItem(product_id=product_id, quantity=totals[product_id])
        for product_id in sorted(totals)
    ]


# ===================
# RESERVATION RESULT
# ===================

class RejectionReason(BaseSchema):
    """Why an order could not be reserved."""

    product_id: str = Field(..., description="First product that could not be reserved")
    requested: Decimal = Field(..., description="Quantity requested for the product")
    available: Decimal = Field(..., description="Quantity available when the reservation failed")
    shortfall: Decimal = Field(..., description="requested - available")
    message: str = Field(..., description="Message suitable for the end user")


class ReservationOutcome(BaseSchema):
    """Result of reserving stock for a whole order."""

    order_id: str
    success: bool
    reservations: list[StockReservationResponse] = Field(default_factory=list)
    rejection: Optional[RejectionReason] = None


# ===================
# REQUEST / RESPONSE SCHEMAS
# ===================

class OrderCreate(BaseSchema):
    """
    Create a customer order.

    Stock for every line item is reserved on creation.
    """

    order_number: str = Field(..., min_length=1, max_length=50, description="Shop order reference")
    customer_name: str = Field(..., min_length=1, max_length=200, description="Customer name")
    customer_email: Optional[str] = Field(None, max_length=200, description="Customer email")
    source: str = Field("direct", max_length=50, description="Sales channel")
    line_items: list[OrderLineItem] = Field(..., min_length=1, description="Products ordered")
    notes: Optional[str] = Field(None, max_length=1000, description="Optional notes")


class OrderResponse(BaseSchema, TimestampMixin):
    """Order as stored."""

    id: str
    order_number: str
    customer_name: str
    customer_email: Optional[str] = None
    source: str = "direct"
    line_items: list[OrderLineItem]
    status: OrderStatus
    rejection: Optional[RejectionReason] = None
    notes: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, v: Any) -> str:
        return str(v)


class OrderWithReservationsResponse(OrderResponse):
    """Order plus the stock reservations it holds."""

    reservations: list[StockReservationResponse] = Field(default_factory=list)
