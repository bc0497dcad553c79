"""
Catalog Service Event Consumers
===============================

Listens on the product stream. Received snapshots are only logged; the
catalog itself is never changed by a consumed event.
"""

from typing import List

from ..core.setting import get_settings
from ..utils.logging import setup_catalog_logging as setup_logging
from .base import BaseEvent, EventHandler
from .base.kafka_client import KafkaEventSubscriber
from .schemas import PRODUCT_CREATED, PRODUCT_STOCK_UPDATED, PRODUCT_UPDATED

settings = get_settings()
logger = setup_logging("catalog_service_event_consumers", log_level=settings.LOG_LEVEL)

PRODUCT_EVENT_TYPES = (PRODUCT_CREATED, PRODUCT_UPDATED, PRODUCT_STOCK_UPDATED)


class ProductSnapshotLogHandler(EventHandler):
    """Log every product snapshot received from the stream"""

    async def handle(self, event: BaseEvent) -> None:
        data = event.data
        logger.info(
            f"Received product from Kafka: {data.get('name')}",
            extra={
                "event_type": event.event_type,
                "event_id": event.event_id,
                "product_id": data.get("id"),
                "sku": data.get("sku"),
                "source_service": event.source_service,
                "correlation_id": event.correlation_id,
            },
        )


class ProductEventConsumer:
    """Subscribes the snapshot handler to every product event type"""

    def __init__(self, subscriber: KafkaEventSubscriber, topic: str = "products"):
        self.subscriber = subscriber
        self.topic = topic
        self.handler = ProductSnapshotLogHandler()

    @classmethod
    def from_settings(cls) -> "ProductEventConsumer":
        subscriber = KafkaEventSubscriber(
            bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
            group_id=settings.KAFKA_GROUP_ID,
            client_id=f"{settings.SERVICE_NAME}-consumer",
            max_retries=settings.KAFKA_CONNECT_MAX_RETRIES,
            retry_delay=settings.KAFKA_CONNECT_RETRY_DELAY,
        )
        return cls(subscriber, topic=settings.KAFKA_TOPIC_PRODUCTS)

    @property
    def subscriptions(self) -> List[str]:
        return [f"{self.topic}:{event_type}" for event_type in PRODUCT_EVENT_TYPES]

    async def start(self) -> None:
        await self.subscriber.start()
        for event_type in PRODUCT_EVENT_TYPES:
            await self.subscriber.subscribe(
                topic=self.topic, event_type=event_type, handler=self.handler
            )

        logger.info(
            "Started consuming product events",
            extra={
                "subscriptions": self.subscriptions,
                "connected": self.subscriber.running,
            },
        )

    async def stop(self) -> None:
        await self.subscriber.stop()
