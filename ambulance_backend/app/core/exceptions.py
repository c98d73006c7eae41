"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes, global exception handlers and the
store failure guard used by the dispatch services.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger("ambulance_dispatch")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class DriverNotFoundError(AppException):
    """Raised when a referenced driver document does not exist."""

    def __init__(self, driver_id: str):
        super().__init__(
            message="Driver not found",
            error_code="ERR_NOT_FOUND_002",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": "Driver", "id": driver_id}
        )


class AmbulanceNotFoundError(ResourceNotFoundError):
    """Raised when a referenced ambulance document does not exist."""

    def __init__(self, ambulance_id: str):
        super().__init__("Ambulance", ambulance_id)


class DuplicateLicensePlateError(AppException):
    """Raised when a license plate is already used within a hospital fleet."""

    def __init__(self, license_plate: str):
        super().__init__(
            message=f'An ambulance with license plate "{license_plate}" already exists',
            error_code="ERR_CONFLICT_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"license_plate": license_plate}
        )


class DispatchOperationError(AppException):
    """
    Generic failure of a dispatch operation.

    Wraps whatever the store raised; callers only get the failing
    operation and the cause as text.
    """

    def __init__(self, operation: str, cause: str):
        self.operation = operation
        self.cause = cause
        super().__init__(
            message=f"Failed to {operation}: {cause}",
            error_code="ERR_DISPATCH_001",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"operation": operation}
        )


@asynccontextmanager
async def store_operation(operation: str, db: Optional[AsyncSession] = None):
    """
    Run a block of store calls as one named dispatch operation.

    Any SQLAlchemy error is re-raised as DispatchOperationError. When a
    session is given, it is rolled back on every failure so no partial
    write survives.

    Usage:
        async with store_operation("assign ambulance", db):
            ...
    """
    try:
        yield
    except SQLAlchemyError as exc:
        if db is not None:
            await db.rollback()
        logger.error("Store failure during %s: %s", operation, exc)
        raise DispatchOperationError(operation, str(exc)) from exc
    except Exception:
        if db is not None:
            await db.rollback()
        raise


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        },
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": exc.errors()
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception: %s: %s", type(exc).__name__, exc)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
