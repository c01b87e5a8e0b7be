"""
Stock ledger schemas for validation and serialization.

Models for the finished-goods and material stock ledger:
- StockEntityResponse: on-hand / reserved figures for one item
- StockReservationResponse: one order's hold on one item
- StockAdjustment: body for credit / debit calls
"""

from enum import Enum
from decimal import Decimal
from datetime import datetime
from typing import Any, Optional

from pydantic import Field, computed_field, field_validator

from models.base import BaseSchema


# ===================
# ENUMS
# ===================

class StockKind(str, Enum):
    """What a stock entity tracks."""
    MATERIAL = "material"
    FINISHED_GOOD = "finished_good"


class StockStatus(str, Enum):
    """Stock level relative to the minimum threshold."""
    NORMAL = "normal"
    LOW = "low"
    OUT = "out"


class ReservationStatus(str, Enum):
    """Lifecycle of a reservation row."""
    ACTIVE = "active"
    RELEASED = "released"
    FULFILLED = "fulfilled"


# ===================
# HELPERS
# ===================

def to_quantity(value: Any) -> Decimal:
    """
    Coerce a database or request value to a Decimal quantity.

    Whole numbers come back without a fractional part, so "5.000" from a
    numeric column reads as 5.
    """
    if value is None:
        return Decimal("0")
    quantity = Decimal(str(value))
    if quantity == quantity.to_integral_value():
        return quantity.quantize(Decimal(1))
    return quantity.normalize()


def calculate_stock_status(available: Decimal, threshold: Decimal) -> StockStatus:
    """Out at zero, low at or under threshold, normal otherwise."""
    if available <= 0:
        return StockStatus.OUT
    if available <= threshold:
        return StockStatus.LOW
    return StockStatus.NORMAL


# ===================
# RESPONSE SCHEMAS
# ===================

class StockEntityResponse(BaseSchema):
    """
    Stock figures for one material or finished good.

    Invariant: 0 <= quantity_reserved <= quantity_on_hand.
    """

    kind: StockKind = Field(..., description="material or finished_good")
    item_id: str = Field(..., description="Product id (finished goods) or material id")
    quantity_on_hand: Decimal = Field(..., ge=0, description="Total quantity recorded")
    quantity_reserved: Decimal = Field(Decimal("0"), ge=0, description="Quantity promised to open orders")
    minimum_threshold: Decimal = Field(Decimal("0"), ge=0, description="Low-stock threshold")
    updated_at: Optional[datetime] = Field(None, description="Last mutation timestamp")

    @field_validator("item_id", mode="before")
    @classmethod
    def stringify_item_id(cls, v: Any) -> str:
        return str(v)

    @field_validator("quantity_on_hand", "quantity_reserved", "minimum_threshold", mode="before")
    @classmethod
    def coerce_quantity(cls, v: Any) -> Decimal:
        return to_quantity(v)

    @computed_field
    @property
    def quantity_available(self) -> Decimal:
        """On-hand minus reserved, never negative."""
        return max(self.quantity_on_hand - self.quantity_reserved, Decimal("0"))

    @computed_field
    @property
    def status(self) -> StockStatus:
        return calculate_stock_status(self.quantity_available, self.minimum_threshold)


class StockReservationResponse(BaseSchema):
    """A single order's hold on one stock entity."""

    id: Optional[str] = Field(None, description="Reservation id")
    order_id: str = Field(..., description="Owning order")
    kind: StockKind = Field(StockKind.FINISHED_GOOD, description="Stock kind")
    item_id: str = Field(..., description="Reserved item")
    quantity: Decimal = Field(..., gt=0, description="Reserved quantity")
    status: ReservationStatus = Field(ReservationStatus.ACTIVE, description="Reservation status")
    created_at: Optional[datetime] = Field(None, description="When the hold was taken")

    @field_validator("id", "order_id", "item_id", mode="before")
    @classmethod
    def stringify_ids(cls, v: Any) -> Optional[str]:
        return None if v is None else str(v)

    @field_validator("quantity", mode="before")
    @classmethod
    def coerce_quantity(cls, v: Any) -> Decimal:
        return to_quantity(v)


# ===================
# REQUEST SCHEMAS
# ===================

class StockAdjustment(BaseSchema):
    """Body for crediting (receipt, production) or debiting (consumption) stock."""

    quantity: Decimal = Field(..., gt=0, description="Quantity to add or remove")
    notes: Optional[str] = Field(None, max_length=500, description="Optional notes")


# ===================
# LIST RESPONSE SCHEMAS
# ===================

class StockListResponse(BaseSchema):
    """List of stock entities."""

    data: list[StockEntityResponse]
    total: int
