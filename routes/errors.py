"""
Exception to JSON response conversion shared by the route modules.
"""

from fastapi.responses import JSONResponse
import structlog

from exceptions import AppError, StorageFaultError

logger = structlog.get_logger(__name__)


def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        if isinstance(e, StorageFaultError):
            logger.error("storage_fault", code=e.code, message=e.message)
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    # Unexpected error
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )
