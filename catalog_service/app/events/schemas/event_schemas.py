"""
Catalog Service Event Schemas
=============================

Payloads published to the product stream.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict

PRODUCT_CREATED = "product.created"
PRODUCT_UPDATED = "product.updated"
PRODUCT_STOCK_UPDATED = "product.stock_updated"

# Partition key used when a snapshot has no id assigned yet
NEW_PRODUCT_KEY = "new-product"


class ProductSnapshotEventData(BaseModel):
    """Full product state at the moment of the change"""

    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    name: str
    description: Optional[str] = None
    price: Decimal
    category: str
    stock_quantity: int
    sku: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def partition_key(self) -> str:
        return str(self.id) if self.id is not None else NEW_PRODUCT_KEY

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
