import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from aiokafka.errors import KafkaConnectionError, KafkaTimeoutError

from catalog_service.app.events.base import BaseEvent
from catalog_service.app.events.base.kafka_client import KafkaEventPublisher

PRODUCER_PATH = "catalog_service.app.events.base.kafka_client.AIOKafkaProducer"


class TestKafkaEventPublisher:
    """Fire-and-forget publishing over a mocked AIOKafkaProducer."""

    @pytest.fixture
    def event(self):
        return BaseEvent(event_type="product.created", data={"id": 1})

    @pytest.fixture
    def mock_producer(self):
        producer = MagicMock()
        producer.start = AsyncMock()
        producer.stop = AsyncMock()
        producer.send = AsyncMock()
        return producer

    @pytest.fixture
    async def publisher(self, mock_producer):
        publisher = KafkaEventPublisher("localhost:9092", "test-client", max_retries=1)
        with patch(PRODUCER_PATH, return_value=mock_producer):
            await publisher.start(timeout=1.0)
        return publisher

    @pytest.mark.asyncio
    async def test_publish_returns_without_waiting_for_ack(
        self, publisher, mock_producer, event
    ):
        # Arrange
        delivery = asyncio.get_running_loop().create_future()
        mock_producer.send.return_value = delivery

        # Act
        result = await publisher.publish(event, topic="products", key="1")

        # Assert
        assert result is delivery
        assert not delivery.done()
        mock_producer.send.assert_awaited_once_with(
            "products", value=event.model_dump(mode="json"), key="1"
        )

    @pytest.mark.asyncio
    async def test_delivery_callback_logs_success(
        self, publisher, mock_producer, event, caplog
    ):
        delivery = asyncio.get_running_loop().create_future()
        mock_producer.send.return_value = delivery
        await publisher.publish(event, topic="products", key="1")

        with caplog.at_level(logging.INFO):
            delivery.set_result(MagicMock(partition=0, offset=42))
            await asyncio.sleep(0)

        assert any("Published event" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_delivery_failure_is_only_logged(
        self, publisher, mock_producer, event, caplog
    ):
        delivery = asyncio.get_running_loop().create_future()
        mock_producer.send.return_value = delivery
        await publisher.publish(event, topic="products", key="1")

        with caplog.at_level(logging.ERROR):
            delivery.set_exception(KafkaTimeoutError())
            await asyncio.sleep(0)

        assert any("Failed to send" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_send_exception_is_swallowed(self, publisher, mock_producer, event):
        mock_producer.send.side_effect = KafkaTimeoutError()

        assert await publisher.publish(event, topic="products") is None

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_swallowed(
        self, publisher, mock_producer, event
    ):
        mock_producer.send.side_effect = ValueError("bad payload")

        assert await publisher.publish(event, topic="products") is None

    @pytest.mark.asyncio
    async def test_disabled_publisher_is_noop(self, event):
        with patch(PRODUCER_PATH) as producer_cls:
            publisher = KafkaEventPublisher("localhost:9092", "test", enabled=False)
            await publisher.start()
            result = await publisher.publish(event, topic="products")

        assert result is None
        producer_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_start_degrades_after_retries(self, mock_producer, event):
        mock_producer.start.side_effect = KafkaConnectionError("no broker")
        publisher = KafkaEventPublisher(
            "localhost:9092", "test", max_retries=2, retry_delay=0.0
        )

        with patch(PRODUCER_PATH, return_value=mock_producer):
            await publisher.start(timeout=1.0)

        assert mock_producer.start.await_count == 2
        assert publisher.is_connected is False
        assert await publisher.publish(event, topic="products") is None
        mock_producer.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_stop_releases_producer(self, publisher, mock_producer):
        await publisher.stop()

        mock_producer.stop.assert_awaited_once()
        assert publisher.producer is None
        assert publisher.is_connected is False
