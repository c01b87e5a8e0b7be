"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    DatabaseError,
    StorageFaultError,

    # Product
    ProductNotFoundError,

    # Stock
    StockEntityNotFoundError,
    InsufficientStockError,

    # Orders
    OrderNotFoundError,
    InvalidStatusTransitionError,

    # Print jobs
    ProductionJobNotFoundError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "DatabaseError",
    "StorageFaultError",

    # Product
    "ProductNotFoundError",

    # Stock
    "StockEntityNotFoundError",
    "InsufficientStockError",

    # Orders
    "OrderNotFoundError",
    "InvalidStatusTransitionError",

    # Print jobs
    "ProductionJobNotFoundError",
]
