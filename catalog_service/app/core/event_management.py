"""
Catalog Service Event Management
Initializes and manages Kafka event publishing and the product stream
consumer for the catalog service.
"""

from typing import Optional

from ..events.base.kafka_client import KafkaEventPublisher
from ..events.event_consumers import ProductEventConsumer
from ..events.event_producers import ProductEventProducer
from ..utils.logging import setup_catalog_logging as setup_logging
from .setting import get_settings

logger = setup_logging("catalog_service_events", log_level=get_settings().LOG_LEVEL)

# Global instances
_kafka_publisher: Optional[KafkaEventPublisher] = None
_product_event_producer: Optional[ProductEventProducer] = None
_product_event_consumer: Optional[ProductEventConsumer] = None


async def init_events() -> None:
    """Initialize event publishing infrastructure"""
    global _kafka_publisher, _product_event_producer, _product_event_consumer

    settings = get_settings()
    logger.info(
        "Initializing event publishing infrastructure",
        extra={
            "operation": "init_events",
            "kafka_enabled": settings.KAFKA_ENABLED,
            "kafka_servers": settings.KAFKA_BOOTSTRAP_SERVERS,
            "topic": settings.KAFKA_TOPIC_PRODUCTS,
        },
    )

    _kafka_publisher = KafkaEventPublisher(
        bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
        client_id=settings.KAFKA_CLIENT_ID,
        enabled=settings.KAFKA_ENABLED,
        max_retries=settings.KAFKA_CONNECT_MAX_RETRIES,
        retry_delay=settings.KAFKA_CONNECT_RETRY_DELAY,
        request_timeout_ms=settings.KAFKA_REQUEST_TIMEOUT_MS,
    )
    _product_event_producer = ProductEventProducer(
        _kafka_publisher, topic=settings.KAFKA_TOPIC_PRODUCTS
    )

    try:
        await _kafka_publisher.start(timeout=30.0)
    except Exception as e:
        logger.warning(
            "Event publishing initialization failed - operating in degraded mode",
            extra={
                "operation": "init_events_failed",
                "error": str(e),
                "degraded_mode": True,
            },
        )

    if settings.KAFKA_ENABLED and settings.KAFKA_CONSUMER_ENABLED:
        _product_event_consumer = ProductEventConsumer.from_settings()
        try:
            await _product_event_consumer.start()
        except Exception as e:
            logger.warning(
                "Product event consumer failed to start",
                extra={"operation": "init_consumer_failed", "error": str(e)},
            )


async def close_events() -> None:
    """Close event publishing infrastructure"""
    global _kafka_publisher, _product_event_producer, _product_event_consumer

    try:
        if _product_event_consumer:
            await _product_event_consumer.stop()
        if _kafka_publisher:
            await _kafka_publisher.stop()
            logger.info("Event publishing infrastructure closed")
    except Exception as e:
        logger.error(
            "Error closing event infrastructure",
            extra={"operation": "close_events_error", "error": str(e)},
        )
    finally:
        _kafka_publisher = None
        _product_event_producer = None
        _product_event_consumer = None


def get_event_producer() -> Optional[ProductEventProducer]:
    """Get the product event producer instance"""
    return _product_event_producer


async def health_check_events() -> bool:
    """Check if event publishing is healthy"""
    if _kafka_publisher:
        return await _kafka_publisher.health_check()
    return False
