import asyncio
import json
from functools import partial
from typing import Any, Dict, List, Optional

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer  # type: ignore
from aiokafka.errors import KafkaConnectionError, KafkaError  # type: ignore

from ...core.setting import get_settings
from ...utils.logging import setup_catalog_logging as setup_logging
from . import BaseEvent, EventHandler, EventPublisher

logger = setup_logging("catalog_service_kafka", log_level=get_settings().LOG_LEVEL)


class KafkaEventPublisher(EventPublisher):
    """
    Fire-and-forget Kafka publisher.

    ``publish`` only enqueues the record in the producer buffer and returns
    the delivery future; broker acknowledgment is observed by a done-callback
    that logs the outcome. Nothing raised by the client escapes ``publish``.
    """

    def __init__(
        self,
        bootstrap_servers: str,
        client_id: str,
        enabled: bool = True,
        max_retries: int = 5,
        retry_delay: float = 2.0,
        request_timeout_ms: int = 30000,
    ):
        self.bootstrap_servers = bootstrap_servers
        self.client_id = client_id
        self.enabled = enabled
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.request_timeout_ms = request_timeout_ms
        self.producer: Optional[AIOKafkaProducer] = None
        self.is_connected = False
        self._connection_lock = asyncio.Lock()

    async def start(self, timeout: float = 30.0) -> None:
        """Start Kafka producer with retry logic"""
        if not self.enabled:
            logger.info("Kafka is disabled, skipping producer start")
            return

        async with self._connection_lock:
            if self.producer and self.is_connected:
                return

            for attempt in range(self.max_retries):
                self.producer = AIOKafkaProducer(
                    bootstrap_servers=self.bootstrap_servers,
                    client_id=self.client_id,
                    value_serializer=lambda x: json.dumps(x, default=str).encode("utf-8"),
                    key_serializer=lambda x: x.encode("utf-8") if x else None,
                    retry_backoff_ms=1000,
                    request_timeout_ms=self.request_timeout_ms,
                    connections_max_idle_ms=540000,
                )
                try:
                    logger.info(
                        "Attempting Kafka connection",
                        extra={
                            "attempt": attempt + 1,
                            "max_retries": self.max_retries,
                            "operation": "kafka_connect",
                        },
                    )
                    await asyncio.wait_for(self.producer.start(), timeout=timeout)
                    self.is_connected = True
                    logger.info("Successfully connected to Kafka")
                    return

                except (KafkaConnectionError, asyncio.TimeoutError) as e:
                    await self._discard_producer()
                    delay = self.retry_delay * (2**attempt)
                    if attempt < self.max_retries - 1:
                        logger.warning(
                            f"Kafka connection attempt {attempt + 1} failed: {e}. "
                            f"Retrying in {delay} seconds..."
                        )
                        await asyncio.sleep(delay)
                    else:
                        logger.error(
                            f"Failed to connect to Kafka after {self.max_retries} attempts. "
                            "Running in degraded mode (events will be logged but not published)"
                        )

    async def _discard_producer(self) -> None:
        if self.producer is not None:
            try:
                await self.producer.stop()
            except Exception as e:
                logger.debug("Error discarding Kafka producer", extra={"error": str(e)})
        self.producer = None
        self.is_connected = False

    async def stop(self) -> None:
        """Flush pending records and stop the producer"""
        async with self._connection_lock:
            if self.producer:
                try:
                    await self.producer.stop()
                    logger.info("Kafka producer stopped")
                except Exception as e:
                    logger.warning(
                        "Error stopping Kafka producer",
                        extra={"error": str(e), "operation": "stop_producer"},
                    )
                finally:
                    self.producer = None
                    self.is_connected = False

    async def publish(
        self, event: BaseEvent, topic: str, key: Optional[str] = None
    ) -> Optional[asyncio.Future]:
        if not self.enabled:
            logger.debug(
                "Kafka is disabled, skipping event publishing",
                extra={"event_type": event.event_type, "event_id": event.event_id},
            )
            return None

        if not self.is_connected or not self.producer:
            logger.warning(
                f"Kafka not available, logging event instead: {event.event_type}",
                extra={
                    "event_id": event.event_id,
                    "event_type": event.event_type,
                    "event_data": event.model_dump(mode="json"),
                },
            )
            return None

        try:
            delivery = await self.producer.send(
                topic, value=event.model_dump(mode="json"), key=key
            )
        except KafkaError as e:
            logger.error(
                f"Kafka exception while sending {event.event_type}: {e}",
                extra={
                    "event_id": event.event_id,
                    "topic": topic,
                    "key": key,
                    "operation": "publish_event_failed",
                },
            )
            return None
        except Exception as e:
            logger.error(
                f"Unexpected error while sending {event.event_type} to Kafka: {e}",
                extra={
                    "event_id": event.event_id,
                    "topic": topic,
                    "key": key,
                    "operation": "publish_event_failed",
                },
            )
            return None

        delivery.add_done_callback(partial(self._log_delivery, event, topic, key))
        return delivery

    @staticmethod
    def _log_delivery(
        event: BaseEvent, topic: str, key: Optional[str], delivery: asyncio.Future
    ) -> None:
        """Completion callback; only ever logs"""
        if delivery.cancelled():
            logger.warning(
                "Kafka delivery cancelled",
                extra={"event_id": event.event_id, "topic": topic, "key": key},
            )
            return

        error = delivery.exception()
        if error is not None:
            logger.error(
                f"Failed to send {event.event_type} to Kafka: {error}",
                extra={
                    "event_id": event.event_id,
                    "topic": topic,
                    "key": key,
                    "operation": "publish_event_failed",
                },
            )
            return

        metadata = delivery.result()
        logger.info(
            "Published event to Kafka topic",
            extra={
                "event_type": event.event_type,
                "event_id": event.event_id,
                "topic": topic,
                "key": key,
                "partition": getattr(metadata, "partition", None),
                "offset": getattr(metadata, "offset", None),
                "operation": "publish_event",
            },
        )

    async def health_check(self) -> bool:
        """Check if Kafka connection is healthy"""
        try:
            if not self.producer or not self.is_connected:
                return False

            metadata = await self.producer.client.fetch_all_metadata()
            return len(metadata.brokers()) > 0

        except Exception as e:
            logger.warning(
                "Kafka health check failed",
                extra={"error": str(e), "operation": "health_check"},
            )
            return False


class KafkaEventSubscriber:
    """
    Kafka subscriber with connection retry logic.

    Handlers are registered per event type; a handler failure is logged and
    never stops consumption of the topic.
    """

    def __init__(
        self,
        bootstrap_servers: str,
        group_id: str,
        client_id: str,
        max_retries: int = 5,
        retry_delay: float = 2.0,
    ):
        self.bootstrap_servers = bootstrap_servers
        self.group_id = group_id
        self.client_id = client_id
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.consumers: Dict[str, AIOKafkaConsumer] = {}
        self.handlers: Dict[str, List[EventHandler]] = {}
        self.tasks: Dict[str, asyncio.Task] = {}
        self.running = False

    async def start(self, timeout: float = 30.0) -> None:
        """Mark the subscriber running once the brokers are reachable"""
        for attempt in range(self.max_retries):
            connection_check = AIOKafkaConsumer(
                bootstrap_servers=self.bootstrap_servers,
                group_id=f"{self.group_id}-health-check",
                client_id=f"{self.client_id}-health-check",
            )
            try:
                await asyncio.wait_for(connection_check.start(), timeout=timeout)
                await connection_check.stop()
                self.running = True
                logger.info("Kafka subscriber connected successfully")
                return
            except (KafkaConnectionError, asyncio.TimeoutError) as e:
                delay = self.retry_delay * (2**attempt)
                if attempt < self.max_retries - 1:
                    logger.warning(
                        f"Kafka subscriber connection attempt {attempt + 1} failed: {e}. "
                        f"Retrying in {delay} seconds..."
                    )
                    await asyncio.sleep(delay)
                else:
                    logger.error(
                        "Failed to connect Kafka subscriber after all retries. "
                        "Running in degraded mode (no event consumption)"
                    )

    async def subscribe(self, topic: str, event_type: str, handler: EventHandler) -> None:
        if not self.running:
            logger.warning(f"Cannot subscribe to {event_type} - Kafka not connected")
            return

        self.handlers.setdefault(event_type, []).append(handler)
        if topic in self.consumers:
            return

        try:
            consumer = AIOKafkaConsumer(
                topic,
                bootstrap_servers=self.bootstrap_servers,
                group_id=self.group_id,
                client_id=f"{self.client_id}-{topic}",
                value_deserializer=lambda x: json.loads(x.decode("utf-8")),
                enable_auto_commit=True,
                auto_offset_reset="earliest",
            )
            await consumer.start()
        except Exception as e:
            logger.error(
                "Failed to subscribe to Kafka topic",
                extra={"topic": topic, "error": str(e), "operation": "subscribe_failed"},
            )
            return

        self.consumers[topic] = consumer
        self.tasks[topic] = asyncio.create_task(self._consume_messages(topic, consumer))
        logger.info(
            "Subscribed to event type on Kafka topic",
            extra={"event_type": event_type, "topic": topic, "operation": "subscribe"},
        )

    async def _consume_messages(self, topic: str, consumer: AIOKafkaConsumer) -> None:
        try:
            async for message in consumer:
                if not self.running:
                    break
                await self.dispatch(topic, message.value)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                "Kafka consumer error",
                extra={"topic": topic, "error": str(e), "operation": "consumer_error"},
            )

    async def dispatch(self, topic: str, payload: Any) -> int:
        """Hand one decoded message to its handlers; returns how many ran cleanly"""
        try:
            event = BaseEvent.model_validate(payload)
        except Exception as e:
            logger.error(
                "Error processing Kafka message",
                extra={
                    "topic": topic,
                    "error": str(e),
                    "operation": "process_message_error",
                },
            )
            return 0

        handled = 0
        for handler in self.handlers.get(event.event_type, []):
            try:
                await handler.handle(event)
                handled += 1
            except Exception as e:
                logger.error(
                    "Event handler error",
                    extra={
                        "event_type": event.event_type,
                        "event_id": event.event_id,
                        "correlation_id": event.correlation_id,
                        "error": str(e),
                        "operation": "handler_error",
                    },
                )
        return handled

    async def stop(self) -> None:
        """Stop all consumers"""
        self.running = False
        for task in self.tasks.values():
            task.cancel()
        for topic, consumer in self.consumers.items():
            try:
                await consumer.stop()
                logger.info(
                    "Stopped Kafka consumer for topic",
                    extra={"topic": topic, "operation": "stop_consumer"},
                )
            except Exception as e:
                logger.warning(
                    "Error stopping Kafka consumer",
                    extra={
                        "topic": topic,
                        "error": str(e),
                        "operation": "stop_consumer_error",
                    },
                )
        self.tasks.clear()
        self.consumers.clear()
