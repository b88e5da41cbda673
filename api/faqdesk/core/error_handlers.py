"""
Error handlers for the FAQ Desk API.

Rejected activities and failures that escaped the activity router are
rendered as a JSON error envelope for the connector. Failures are logged
with the type and id of the activity being processed, when known.
"""

import logging

from faqdesk.core.exceptions import BaseAppException
from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


async def base_exception_handler(
    request: Request, exc: BaseAppException
) -> JSONResponse:
    """Handle all application-specific exceptions.

    Args:
        request: The incoming request that caused the exception
        exc: The application exception that was raised

    Returns:
        JSON response with standardized error format
    """
    logger.warning(
        "Rejected request: %s - %s",
        exc.error_code,
        exc.detail,
        extra={
            "error_code": exc.error_code,
            "status_code": exc.status_code,
            "path": request.url.path,
        },
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "code": exc.error_code,
                "message": exc.detail,
                "status_code": exc.status_code,
            }
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected errors.

    The activity router has already told the user that something went wrong;
    this handler only produces the HTTP response for the connector.

    Args:
        request: The incoming request that caused the exception
        exc: The unhandled exception that was raised

    Returns:
        JSON response with generic error message (no sensitive details)
    """
    activity_type = getattr(request.state, "activity_type", None)
    logger.exception(
        "Unhandled exception while processing %s activity: %s",
        activity_type or "unknown",
        type(exc).__name__,
        extra={
            "path": request.url.path,
            "activity_type": activity_type,
            "activity_id": getattr(request.state, "activity_id", None),
            "exception_type": type(exc).__name__,
        },
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "INTERNAL_SERVER_ERROR",
                "message": "An unexpected error occurred",
                "status_code": 500,
            }
        },
    )
