"""
Custom exception classes for the application.

Every error renders through AppError.to_dict() so API clients always
receive the same envelope.
"""

from typing import Optional, Any
from datetime import datetime


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "PRODUCT_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.utcnow().isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with existing resource (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


class StorageFaultError(DatabaseError):
    """
    Storage failed while reading or writing stock (500).

    No partial reservation survives a fault, so callers may retry.
    """

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            operation=operation,
            message=message,
            details={"retryable": True, **(details or {})}
        )
        self.code = "STORAGE_FAULT"


# ===================
# PRODUCT ERRORS
# ===================

class ProductNotFoundError(NotFoundError):
    """Product not found."""

    def __init__(self, product_id: str):
        super().__init__(
            resource="Product",
            identifier=product_id,
            code="PRODUCT_NOT_FOUND"
        )


# ===================
# STOCK ERRORS
# ===================

class StockEntityNotFoundError(NotFoundError):
    """No stock row for the item."""

    def __init__(self, item_id: str, kind: str = "finished_good"):
        super().__init__(
            resource="Stock entity",
            identifier=item_id,
            code="STOCK_ENTITY_NOT_FOUND"
        )
        self.item_id = item_id
        self.kind = kind
        self.details["kind"] = kind


class InsufficientStockError(AppError):
    """
    Not enough available stock to reserve (400).

    Carries the available quantity so callers can report the exact shortfall.
    """

    def __init__(self, item_id: str, available: Any, requested: Any):
        self.item_id = item_id
        self.available = available
        self.requested = requested
        self.shortfall = requested - available
        super().__init__(
            code="INSUFFICIENT_STOCK",
            message=(
                f"Cannot fulfill order for product {item_id}: "
                f"{available} available, {requested} requested"
            ),
            status_code=400,
            details={
                "product_id": item_id,
                "available": str(available),
                "requested": str(requested),
                "shortfall": str(self.shortfall),
            }
        )


# ===================
# ORDER ERRORS
# ===================

class OrderNotFoundError(NotFoundError):
    """Order not found."""

    def __init__(self, order_id: str):
        super().__init__(
            resource="Order",
            identifier=order_id,
            code="ORDER_NOT_FOUND"
        )


class InvalidStatusTransitionError(ValidationError):
    """Invalid status transition."""

    def __init__(self, current_status: str, new_status: str, resource: str = "Order"):
        super().__init__(
            code="INVALID_STATUS_TRANSITION",
            message=f"Cannot transition {resource.lower()} from {current_status} to {new_status}",
            details={
                "resource": resource,
                "current_status": current_status,
                "new_status": new_status,
            }
        )


# ===================
# PRODUCTION JOB ERRORS
# ===================

class ProductionJobNotFoundError(NotFoundError):
    """Print job not found."""

    def __init__(self, job_id: str):
        super().__init__(
            resource="Print job",
            identifier=job_id,
            code="PRINT_JOB_NOT_FOUND"
        )
