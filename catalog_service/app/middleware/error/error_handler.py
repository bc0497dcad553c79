"""
Error handling middleware for Catalog Service.
Maps domain errors to HTTP status codes with a single error envelope.
"""

import traceback
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ...core.exceptions import CatalogError
from ...utils.logging import setup_catalog_logging

logger = setup_catalog_logging("catalog_service_error_handler")


def _correlation_id(request: Request) -> str:
    return (
        getattr(request.state, "correlation_id", None)
        or request.headers.get("X-Correlation-ID")
        or "unknown"
    )


def _validation_details(errors: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in errors
    ]


class CatalogServiceErrorHandler:
    """
    Centralized error handling for Catalog Service.

    Domain errors carry their own status code and error type; request
    validation failures become 422 and anything unexpected becomes 500
    with the traceback logged.
    """

    @staticmethod
    def setup_error_handlers(app: FastAPI) -> None:
        @app.exception_handler(CatalogError)
        async def catalog_error_handler(
            request: Request, exc: CatalogError
        ) -> JSONResponse:
            """Handle catalog domain errors."""
            return CatalogServiceErrorHandler._create_error_response(
                request=request,
                status_code=exc.status_code,
                error_type=exc.error_type,
                message=exc.message,
                details=exc.details,
            )

        @app.exception_handler(StarletteHTTPException)
        async def http_exception_handler(
            request: Request, exc: StarletteHTTPException
        ) -> JSONResponse:
            """Handle HTTP exceptions from Starlette/FastAPI."""
            return CatalogServiceErrorHandler._create_error_response(
                request=request,
                status_code=exc.status_code,
                error_type="http_error",
                message=str(exc.detail),
            )

        @app.exception_handler(RequestValidationError)
        async def validation_exception_handler(
            request: Request, exc: RequestValidationError
        ) -> JSONResponse:
            """Handle request body and parameter validation errors."""
            return CatalogServiceErrorHandler._create_error_response(
                request=request,
                status_code=422,
                error_type="validation_error",
                message="Request validation failed",
                details={"validation_errors": _validation_details(exc.errors())},
            )

        @app.exception_handler(ValidationError)
        async def pydantic_validation_exception_handler(
            request: Request, exc: ValidationError
        ) -> JSONResponse:
            """Handle Pydantic validation errors raised outside request parsing."""
            return CatalogServiceErrorHandler._create_error_response(
                request=request,
                status_code=400,
                error_type="data_validation_error",
                message="Data validation failed",
                details={"validation_errors": _validation_details(exc.errors())},
            )

        @app.exception_handler(Exception)
        async def unhandled_exception_handler(
            request: Request, exc: Exception
        ) -> JSONResponse:
            logger.error(
                "Unhandled exception occurred",
                extra={
                    "correlation_id": _correlation_id(request),
                    "path": request.url.path,
                    "method": request.method,
                    "exception_type": type(exc).__name__,
                    "exception_message": str(exc),
                    "traceback": traceback.format_exc(),
                    "event_type": "unhandled_exception",
                },
                exc_info=True,
            )

            return CatalogServiceErrorHandler._create_error_response(
                request=request,
                status_code=500,
                error_type="internal_server_error",
                message="An internal server error occurred",
                details={"exception_type": type(exc).__name__},
            )

    @staticmethod
    def _create_error_response(
        request: Request,
        status_code: int,
        error_type: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> JSONResponse:
        """
        Create a standardized error response.

        Args:
            request: The FastAPI request object
            status_code: HTTP status code
            error_type: Type of error for categorization
            message: Human-readable error message
            details: Additional error details

        Returns:
            JSONResponse with standardized error format
        """
        correlation_id = _correlation_id(request)

        error_response: Dict[str, Any] = {
            "error": {
                "type": error_type,
                "message": message,
                "correlation_id": correlation_id,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "path": request.url.path,
                "method": request.method,
            }
        }

        if details:
            error_response["error"]["details"] = details

        # 5xx responses are logged by the handler that produced them
        if status_code < 500:
            logger.warning(
                f"Client error: {error_type}",
                extra={
                    "correlation_id": correlation_id,
                    "status_code": status_code,
                    "error_type": error_type,
                    "path": request.url.path,
                    "method": request.method,
                    "event_type": "client_error",
                },
            )

        return JSONResponse(status_code=status_code, content=error_response)


def setup_catalog_error_handling(app: FastAPI) -> None:
    """Register every Catalog Service error handler on the application."""
    CatalogServiceErrorHandler.setup_error_handlers(app)

    logger.info(
        "Catalog Service error handling configured",
        extra={"event_type": "error_handler_setup"},
    )
