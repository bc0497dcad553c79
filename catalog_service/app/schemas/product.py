from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

SKU_PATTERN = r"^SKU-[A-Z0-9][A-Z0-9-]{5,}$"

# Fields that an update may explicitly set to null
NULLABLE_UPDATE_FIELDS = frozenset({"description", "change_reason", "changed_by"})
AUDIT_UPDATE_FIELDS = frozenset({"change_reason", "changed_by"})


class StockOperation(str, Enum):
    INCREASE = "INCREASE"
    DECREASE = "DECREASE"


def _normalize_sku(v: Any) -> Any:
    if isinstance(v, str):
        return v.strip().upper()
    return v


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    price: Decimal = Field(
        ...,
        gt=0,
        max_digits=12,
        decimal_places=2,
        description="Product price (positive, at most 2 decimal places)",
    )
    category: Optional[str] = Field(None, min_length=2, max_length=50)
    stock_quantity: Optional[int] = Field(
        None, ge=0, description="Initial stock (defaults to 0)"
    )
    sku: Optional[str] = Field(
        None, pattern=SKU_PATTERN, description="Generated when omitted"
    )
    is_active: Optional[bool] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name cannot be empty or whitespace only")
        return v.strip()

    @field_validator("sku", mode="before")
    @classmethod
    def normalize_sku(cls, v: Any) -> Any:
        return _normalize_sku(v)


class ProductUpdate(BaseModel):
    """
    Partial update payload.

    Only fields present in the request body are applied; absent fields keep
    their stored value. ``description`` may be explicitly cleared with null,
    every other field rejects an explicit null.
    """

    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    price: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    category: Optional[str] = Field(None, min_length=2, max_length=50)
    stock_quantity: Optional[int] = Field(None, ge=0)
    sku: Optional[str] = Field(None, pattern=SKU_PATTERN)
    is_active: Optional[bool] = None

    # Free-text reason and actor recorded on the price-history row
    change_reason: Optional[str] = Field(None, max_length=255)
    changed_by: Optional[str] = Field(None, max_length=255)

    @field_validator("sku", mode="before")
    @classmethod
    def normalize_sku(cls, v: Any) -> Any:
        return _normalize_sku(v)

    @model_validator(mode="after")
    def reject_explicit_nulls(self) -> "ProductUpdate":
        for field_name in self.model_fields_set:
            if field_name in NULLABLE_UPDATE_FIELDS:
                continue
            if getattr(self, field_name) is None:
                raise ValueError(f"{field_name} cannot be null")
        return self

    def changes(self) -> Dict[str, Any]:
        """Product fields explicitly present in the input"""
        return {
            field_name: getattr(self, field_name)
            for field_name in self.model_fields_set
            if field_name not in AUDIT_UPDATE_FIELDS
        }


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    price: Decimal
    category: str
    stock_quantity: int
    sku: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ProductSearch(BaseModel):
    name: Optional[str] = Field(None, description="Case-insensitive substring")
    category: Optional[str] = None
    min_price: Optional[Decimal] = Field(None, gt=0)
    max_price: Optional[Decimal] = Field(None, gt=0)
    is_active: Optional[bool] = None
    sort_by: Literal[
        "id", "name", "price", "category", "stock_quantity", "created_at", "updated_at"
    ] = "name"
    sort_direction: str = "ASC"
    page: int = Field(0, ge=0)
    size: int = Field(10, ge=1, le=100)

    @field_validator("sort_direction")
    @classmethod
    def normalize_direction(cls, v: str) -> str:
        return "DESC" if v.strip().upper() == "DESC" else "ASC"

    @model_validator(mode="after")
    def validate_price_range(self) -> "ProductSearch":
        if (
            self.min_price is not None
            and self.max_price is not None
            and self.min_price > self.max_price
        ):
            raise ValueError("min_price cannot be greater than max_price")
        return self


class ProductPage(BaseModel):
    items: List[ProductResponse]
    total: int
    page: int
    size: int
    total_pages: int


class PriceHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    old_price: Decimal
    new_price: Decimal
    change_reason: Optional[str] = None
    changed_at: datetime
    changed_by: Optional[str] = None


class CategoryCount(BaseModel):
    category: str
    count: int


class PriceStatistics(BaseModel):
    min: Optional[Decimal] = None
    max: Optional[Decimal] = None
    average: Optional[Decimal] = None


class ProductStatistics(BaseModel):
    total_products: int
    active_products: int
    low_stock_products: int
    price_range_distribution: Dict[str, int]
    price_statistics: PriceStatistics
    category_counts: List[CategoryCount]
    recent_products: List[ProductResponse] = []


class BulkDeleteRequest(BaseModel):
    ids: List[int] = Field(..., min_length=1)


class BulkDeleteResult(BaseModel):
    message: str = "Bulk delete completed"
    deleted_count: int
    not_found_count: int
    total_requested: int
