"""
Events module for the Catalog Service.

Producers:
    - ProductEventProducer: publishes full product snapshots on create,
      update and stock adjustment to the ``products`` stream, keyed by
      product id.

Consumers:
    - ProductEventConsumer: logs every snapshot received on the product
      stream.

Event Types:
    product.created, product.updated, product.stock_updated
"""

from .event_consumers import ProductEventConsumer
from .event_producers import ProductEventProducer

__all__ = ["ProductEventConsumer", "ProductEventProducer"]
