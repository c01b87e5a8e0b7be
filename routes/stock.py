"""
Stock API routes.

Read stock figures, receive stock and record consumption. Every mutation
invalidates cached availability for finished goods.
"""

from fastapi import APIRouter, Query
from typing import Optional
import structlog

from models.stock import (
    StockKind,
    StockStatus,
    StockAdjustment,
    StockEntityResponse,
    StockListResponse,
)
from services.stock_ledger_service import get_stock_ledger_service
from services.availability_service import get_availability_cache
from routes.errors import handle_error

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/stock", tags=["Stock"])


@router.get("", response_model=StockListResponse)
async def list_stock(
    kind: Optional[StockKind] = Query(None, description="material or finished_good"),
    status: Optional[StockStatus] = Query(None, description="normal, low or out"),
):
    """List stock entities, e.g. ?status=low for the reorder view."""
    try:
        entities = get_stock_ledger_service().list_stock(kind=kind, status=status)
        return StockListResponse(data=entities, total=len(entities))

    except Exception as e:
        return handle_error(e)


@router.get("/{kind}/{item_id}", response_model=StockEntityResponse)
async def get_stock(kind: StockKind, item_id: str):
    """
    Get on-hand and reserved quantities.

    Raises:
        404: Stock entity not found
    """
    try:
        return get_stock_ledger_service().get_stock(item_id, kind)

    except Exception as e:
        return handle_error(e)


@router.post("/{kind}/{item_id}/credit", response_model=StockEntityResponse)
async def credit_stock(kind: StockKind, item_id: str, data: StockAdjustment):
    """Receive stock. Creates the entity on first receipt."""
    try:
        entity = get_stock_ledger_service().credit(item_id, data.quantity, kind)
        if kind == StockKind.FINISHED_GOOD:
            get_availability_cache().invalidate(item_id)
        return entity

    except Exception as e:
        return handle_error(e)


@router.post("/{kind}/{item_id}/debit", response_model=StockEntityResponse)
async def debit_stock(kind: StockKind, item_id: str, data: StockAdjustment):
    """
    Remove stock (consumption, write-off). Clamped at zero.

    Raises:
        404: Stock entity not found
    """
    try:
        entity = get_stock_ledger_service().debit(item_id, data.quantity, kind)
        if kind == StockKind.FINISHED_GOOD:
            get_availability_cache().invalidate(item_id)
        return entity

    except Exception as e:
        return handle_error(e)
