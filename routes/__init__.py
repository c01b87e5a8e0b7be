"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.availability import router as availability_router
from routes.orders import router as orders_router
from routes.print_jobs import router as print_jobs_router
from routes.stock import router as stock_router

__all__ = [
    "availability_router",
    "orders_router",
    "print_jobs_router",
    "stock_router",
]
