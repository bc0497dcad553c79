"""
Catalog Service Event Producers
===============================

Publishes product snapshots to the product stream so downstream systems
(analytics, notifications) can react to catalog changes.
"""

import asyncio
from typing import Any, Optional

from ..core.setting import get_settings
from ..utils.logging import setup_catalog_logging as setup_logging
from .base import BaseEvent, EventPublisher
from .schemas import ProductSnapshotEventData

settings = get_settings()
logger = setup_logging("catalog_service_event_producers", log_level=settings.LOG_LEVEL)


class ProductEventProducer:
    """
    Product snapshot producer.

    Every method is best effort: failures are logged and swallowed so the
    lifecycle operation that triggered the event never fails because of it.
    """

    def __init__(self, publisher: EventPublisher, topic: str = "products"):
        self.publisher = publisher
        self.topic = topic

    async def publish_product_snapshot(
        self,
        product: Any,
        event_type: str,
        correlation_id: Optional[str] = None,
    ) -> Optional[asyncio.Future]:
        """Dispatch a snapshot keyed by product id; the caller must not await the result"""
        try:
            snapshot = ProductSnapshotEventData.model_validate(product)
            event = BaseEvent(
                event_type=event_type,
                source_service=settings.SERVICE_NAME,
                data=snapshot.to_dict(),
                correlation_id=correlation_id,
            )
            return await self.publisher.publish(
                event, topic=self.topic, key=snapshot.partition_key()
            )
        except Exception as e:
            logger.error(
                f"Failed to publish {event_type} event: {e}",
                extra={
                    "product_id": getattr(product, "id", None),
                    "event_type": event_type,
                    "correlation_id": correlation_id,
                },
            )
            return None
