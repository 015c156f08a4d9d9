"""
Error handlers for the edit-mcp HTTP API.

Tool failures reach the API wrapped in ToolError; the status code is picked
from the error that caused it.
"""
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from editmcp.utils.errors import (
    CapacityError,
    EditMCPError,
    FilesystemError,
    NotFoundError,
    ProcessFailureError,
    ProtocolStateError,
    ToolError,
    UnsupportedOperationError,
    ValidationError,
)
from editmcp.utils.logging import logger

STATUS_BY_ERROR = [
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (ProtocolStateError, status.HTTP_400_BAD_REQUEST),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (UnsupportedOperationError, status.HTTP_501_NOT_IMPLEMENTED),
    (CapacityError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (ProcessFailureError, status.HTTP_502_BAD_GATEWAY),
    (FilesystemError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def status_for_error(error: EditMCPError) -> int:
    """HTTP status for an edit-mcp error, looking through ToolError to its cause."""
    if isinstance(error, ToolError) and isinstance(error.__cause__, EditMCPError):
        error = error.__cause__

    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def edit_error_handler(request: Request, exc: EditMCPError):
    """
    Handle edit-mcp errors raised by API routes.

    Args:
        request: FastAPI request object
        exc: The error raised

    Returns:
        JSON response with error details
    """
    status_code = status_for_error(exc)

    logger.warning(
        f"API request failed: {exc}",
        component="http",
        operation="exception",
        context={"path": request.url.path, "status_code": status_code, "code": exc.code},
    )

    return JSONResponse(
        status_code=status_code,
        content={
            "error": {
                "code": exc.code,
                "message": exc.message,
                "details": exc.details,
            }
        },
    )


def add_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(EditMCPError, edit_error_handler)
