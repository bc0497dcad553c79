from decimal import Decimal

import pytest
from pydantic import ValidationError

from catalog_service.app.schemas.product import (
    ProductCreate,
    ProductSearch,
    ProductUpdate,
)


class TestProductCreate:
    def test_valid_payload(self):
        product = ProductCreate(name="  Widget ", price="19.99", sku="sku-abc123")

        assert product.name == "Widget"
        assert product.price == Decimal("19.99")
        assert product.sku == "SKU-ABC123"
        assert product.category is None

    @pytest.mark.parametrize(
        "payload",
        [
            {"name": "W", "price": "1.00"},
            {"name": "Widget", "price": "0"},
            {"name": "Widget", "price": "1.001"},
            {"name": "Widget", "price": "1.00", "stock_quantity": -1},
            {"name": "Widget", "price": "1.00", "sku": "ABC123"},
            {"name": "Widget", "price": "1.00", "category": "x"},
            {"name": "Widget", "price": "1.00", "description": "d" * 501},
        ],
    )
    def test_invalid_payloads(self, payload):
        with pytest.raises(ValidationError):
            ProductCreate(**payload)


class TestProductUpdate:
    def test_changes_only_contains_present_fields(self):
        update = ProductUpdate.model_validate({"price": "12.50", "change_reason": "Promo"})

        assert update.changes() == {"price": Decimal("12.50")}
        assert update.change_reason == "Promo"

    def test_empty_update_has_no_changes(self):
        assert ProductUpdate().changes() == {}

    def test_description_may_be_cleared(self):
        update = ProductUpdate.model_validate({"description": None})

        assert update.changes() == {"description": None}

    @pytest.mark.parametrize("field", ["name", "price", "stock_quantity", "is_active"])
    def test_explicit_null_is_rejected(self, field):
        with pytest.raises(ValidationError):
            ProductUpdate.model_validate({field: None})


class TestProductSearch:
    def test_defaults(self):
        criteria = ProductSearch()

        assert criteria.sort_by == "name"
        assert criteria.sort_direction == "ASC"
        assert criteria.page == 0
        assert criteria.size == 10
        assert criteria.name is None and criteria.min_price is None

    def test_direction_is_normalized(self):
        assert ProductSearch(sort_direction="desc").sort_direction == "DESC"
        assert ProductSearch(sort_direction="sideways").sort_direction == "ASC"

    def test_page_size_is_bounded(self):
        with pytest.raises(ValidationError):
            ProductSearch(size=101)

    def test_inverted_price_range_is_rejected(self):
        with pytest.raises(ValidationError):
            ProductSearch(min_price=Decimal("10"), max_price=Decimal("5"))

    def test_unknown_sort_field_is_rejected(self):
        with pytest.raises(ValidationError):
            ProductSearch(sort_by="version")
