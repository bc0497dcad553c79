"""
Unit tests for Catalog Service Error Handler.
"""

import json
from unittest.mock import Mock

import pytest
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from catalog_service.app.core.exceptions import (
    CatalogError,
    ConcurrentModificationError,
    DuplicateSkuError,
    InsufficientStockError,
    InvalidArgumentError,
    ProductNotFoundError,
)
from catalog_service.app.middleware.error.error_handler import (
    CatalogServiceErrorHandler,
    setup_catalog_error_handling,
)


class TestCatalogServiceErrorHandler:
    """Test cases for error handler."""

    @pytest.fixture
    def app(self):
        app = FastAPI()
        setup_catalog_error_handling(app)
        return app

    @pytest.fixture
    def mock_request(self):
        mock_request = Mock(spec=Request)
        mock_request.url.path = "/api/v1/products/1"
        mock_request.method = "GET"
        mock_request.state.correlation_id = "test-correlation-id"
        return mock_request

    def test_setup_error_handlers(self, app):
        assert CatalogError in app.exception_handlers
        assert StarletteHTTPException in app.exception_handlers
        assert RequestValidationError in app.exception_handlers
        assert ValidationError in app.exception_handlers
        assert Exception in app.exception_handlers

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "exc, status_code, error_type",
        [
            (ProductNotFoundError(999), 404, "not_found"),
            (DuplicateSkuError("SKU-ABC123"), 409, "duplicate_sku"),
            (InsufficientStockError(1, 2, 3), 400, "insufficient_stock"),
            (InvalidArgumentError("Invalid operation"), 400, "invalid_argument"),
            (ConcurrentModificationError(1), 409, "concurrent_modification"),
        ],
    )
    async def test_domain_errors_map_to_status(
        self, app, mock_request, exc, status_code, error_type
    ):
        handler = app.exception_handlers[CatalogError]

        response = await handler(mock_request, exc)

        assert response.status_code == status_code
        body = json.loads(response.body)
        assert body["error"]["type"] == error_type
        assert body["error"]["message"] == exc.message
        assert body["error"]["correlation_id"] == "test-correlation-id"
        assert body["error"]["path"] == "/api/v1/products/1"

    @pytest.mark.asyncio
    async def test_insufficient_stock_details(self, app, mock_request):
        handler = app.exception_handlers[CatalogError]

        response = await handler(mock_request, InsufficientStockError(5, 2, 3))

        details = json.loads(response.body)["error"]["details"]
        assert details == {"product_id": 5, "available": 2, "requested": 3}

    @pytest.mark.asyncio
    async def test_http_exception_handler(self, app, mock_request):
        handler = app.exception_handlers[StarletteHTTPException]

        response = await handler(
            mock_request, StarletteHTTPException(status_code=405, detail="Nope")
        )

        assert response.status_code == 405
        assert json.loads(response.body)["error"]["message"] == "Nope"

    @pytest.mark.asyncio
    async def test_request_validation_error_handler(self, app, mock_request):
        handler = app.exception_handlers[RequestValidationError]
        exc = RequestValidationError(
            [
                {
                    "loc": ("body", "price"),
                    "msg": "Input should be greater than 0",
                    "type": "greater_than",
                }
            ]
        )

        response = await handler(mock_request, exc)

        assert response.status_code == 422
        errors = json.loads(response.body)["error"]["details"]["validation_errors"]
        assert errors[0]["field"] == "body.price"

    @pytest.mark.asyncio
    async def test_unhandled_exception_returns_500(self, app, mock_request):
        handler = app.exception_handlers[Exception]

        response = await handler(mock_request, RuntimeError("boom"))

        assert response.status_code == 500
        body = json.loads(response.body)
        assert body["error"]["type"] == "internal_server_error"
        assert "boom" not in body["error"]["message"]

    def test_create_error_response_without_details(self, mock_request):
        response = CatalogServiceErrorHandler._create_error_response(
            request=mock_request,
            status_code=400,
            error_type="invalid_argument",
            message="bad",
        )

        assert "details" not in json.loads(response.body)["error"]
