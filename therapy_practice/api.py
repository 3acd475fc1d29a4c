"""
Central API router and utilities for the practice backend.

This module provides:
- A central router that includes all module routers
- Exception handlers mapping domain errors to HTTP responses
- The standard response envelope
"""

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Dict, Any, Optional

from therapy_practice.common.error_handling import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    PracticeError,
    ValidationError,
    error_response,
    log_error,
)
from therapy_practice.common.logger import app_logger

logger = app_logger.getChild("api")

# Create main API router
main_router = APIRouter()

# Version prefix for all API routes
API_VERSION = "v1"

# Dictionary to track registered modules
registered_modules: Dict[str, APIRouter] = {}

# Domain error to HTTP status
STATUS_BY_ERROR = (
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
)


def register_assessment_module(name: str, router: APIRouter) -> None:
    """
    Register a module router with the main API router.

    Args:
        name: Name of the module, used as the path prefix below the version
        router: FastAPI router for the module
    """
    if name in registered_modules:
        logger.warning(f"Module '{name}' already registered, overwriting")

    main_router.include_router(
        router,
        prefix=f"/{API_VERSION}/{name}",
        tags=[name]
    )

    registered_modules[name] = router
    logger.info(f"Registered module: {name} with {len(router.routes)} routes")


def status_for_error(error: PracticeError) -> int:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


# Common validation error handler
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle request validation errors and return a standardized response.

    Args:
        request: The incoming request
        exc: The validation exception

    Returns:
        A JSON response with error details
    """
    error_details = []
    for error in exc.errors():
        error_details.append({
            "location": error.get("loc", []),
            "message": error.get("msg", "Unknown validation error"),
            "type": error.get("type", "")
        })

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "status": "error",
            "message": "Validation error",
            "details": error_details
        }
    )


async def practice_exception_handler(request: Request, exc: PracticeError) -> JSONResponse:
    """
    Render a domain error with the status code of its category.

    Unclassified errors are logged with their traceback and reported
    without internal detail.
    """
    status_code = status_for_error(exc)
    if status_code == status.HTTP_500_INTERNAL_SERVER_ERROR:
        log_error(exc, context={"path": request.url.path})
        return JSONResponse(
            status_code=status_code,
            content=APIResponse.error("An unexpected error occurred")
        )

    logger.info(f"{request.method} {request.url.path} -> {status_code} {exc.code.value}")
    return JSONResponse(status_code=status_code, content=error_response(exc))


# Standard API response model
class APIResponse:
    """Standard API response structure"""

    @staticmethod
    def success(data: Any = None, message: str = "Success") -> Dict[str, Any]:
        """
        Create a success response.

        Args:
            data: Response data
            message: Success message

        Returns:
            Response dictionary
        """
        return {
            "status": "success",
            "message": message,
            "data": data
        }

    @staticmethod
    def error(message: str, details: Optional[Any] = None,
              code: Optional[str] = None) -> Dict[str, Any]:
        """
        Create an error response.

        Args:
            message: Error message
            details: Optional error details
            code: Optional error code

        Returns:
            Response dictionary
        """
        response = {
            "status": "error",
            "message": message
        }

        if details:
            response["details"] = details

        if code:
            response["code"] = code

        return response
