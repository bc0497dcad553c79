import logging
from unittest.mock import AsyncMock, MagicMock, Mock, patch

import pytest

from catalog_service.app.events.base import BaseEvent, EventHandler
from catalog_service.app.events.base.kafka_client import KafkaEventSubscriber
from catalog_service.app.events.event_consumers import (
    ProductEventConsumer,
    ProductSnapshotLogHandler,
)

CONSUMER_PATH = "catalog_service.app.events.base.kafka_client.AIOKafkaConsumer"


def _snapshot_event(event_type="product.created"):
    return BaseEvent(
        event_type=event_type,
        correlation_id="corr-3",
        data={"id": 4, "name": "Lamp", "sku": "SKU-LAMP01"},
    )


class TestProductSnapshotLogHandler:
    @pytest.mark.asyncio
    async def test_received_snapshot_is_logged(self, caplog):
        with caplog.at_level(logging.INFO):
            await ProductSnapshotLogHandler().handle(_snapshot_event())

        record = next(
            r for r in caplog.records if "Received product from Kafka" in r.getMessage()
        )
        assert record.product_id == 4
        assert record.sku == "SKU-LAMP01"
        assert record.correlation_id == "corr-3"


class TestKafkaEventSubscriber:
    @pytest.fixture
    def subscriber(self):
        subscriber = KafkaEventSubscriber(
            "localhost:9092", "product-group", "test-consumer", max_retries=1
        )
        subscriber.running = True
        return subscriber

    @pytest.mark.asyncio
    async def test_dispatch_routes_by_event_type(self, subscriber):
        created = Mock(spec=EventHandler)
        created.handle = AsyncMock()
        subscriber.handlers = {"product.created": [created]}

        handled = await subscriber.dispatch(
            "products", _snapshot_event().model_dump(mode="json")
        )
        ignored = await subscriber.dispatch(
            "products", _snapshot_event("product.archived").model_dump(mode="json")
        )

        assert (handled, ignored) == (1, 0)
        event = created.handle.call_args.args[0]
        assert event.data["sku"] == "SKU-LAMP01"

    @pytest.mark.asyncio
    async def test_handler_and_payload_errors_are_absorbed(self, subscriber):
        failing = Mock(spec=EventHandler)
        failing.handle = AsyncMock(side_effect=RuntimeError("boom"))
        subscriber.handlers = {"product.created": [failing]}

        assert (
            await subscriber.dispatch(
                "products", _snapshot_event().model_dump(mode="json")
            )
            == 0
        )
        assert await subscriber.dispatch("products", {"no": "event_type"}) == 0

    @pytest.mark.asyncio
    async def test_subscribe_is_skipped_when_not_connected(self):
        subscriber = KafkaEventSubscriber("localhost:9092", "product-group", "c")

        with patch(CONSUMER_PATH) as consumer_class:
            await subscriber.subscribe("products", "product.created", Mock())

        consumer_class.assert_not_called()
        assert subscriber.handlers == {}

    @pytest.mark.asyncio
    async def test_one_consumer_per_topic(self, subscriber):
        consumer = MagicMock()
        consumer.start = AsyncMock()
        consumer.stop = AsyncMock()

        with patch(CONSUMER_PATH, return_value=consumer) as consumer_class, patch.object(
            subscriber, "_consume_messages", AsyncMock()
        ):
            await subscriber.subscribe("products", "product.created", Mock())
            await subscriber.subscribe("products", "product.updated", Mock())

        consumer_class.assert_called_once()
        assert set(subscriber.handlers) == {"product.created", "product.updated"}

        await subscriber.stop()
        consumer.stop.assert_awaited_once()
        assert subscriber.consumers == {}


class TestProductEventConsumer:
    @pytest.mark.asyncio
    async def test_start_subscribes_every_product_event_type(self):
        subscriber = Mock(spec=KafkaEventSubscriber)
        subscriber.start = AsyncMock()
        subscriber.subscribe = AsyncMock()
        subscriber.running = True
        consumer = ProductEventConsumer(subscriber, topic="products")

        await consumer.start()

        subscribed = [
            call.kwargs["event_type"] for call in subscriber.subscribe.call_args_list
        ]
        assert subscribed == [
            "product.created",
            "product.updated",
            "product.stock_updated",
        ]
        assert all(
            call.kwargs["topic"] == "products"
            for call in subscriber.subscribe.call_args_list
        )
