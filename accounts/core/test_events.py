"""
Tests for user event publishing
"""
import threading
from unittest.mock import MagicMock, patch

import pytest

from accounts.core.events import (
    USER_CREATED,
    KafkaEventPublisher,
    LoggingEventPublisher,
    user_created_event,
)


class TestUserCreatedEvent:

    def test_event_shape(self):
        event = user_created_event(42)
        assert event["event_type"] == USER_CREATED
        assert event["user_id"] == 42
        assert "timestamp" in event


class TestKafkaEventPublisher:

    @pytest.fixture
    def publisher(self):
        publisher = KafkaEventPublisher("broker-1:9092,broker-2:9092", "users.created")
        yield publisher
        publisher.close()

    @patch('accounts.core.events.KafkaProducer')
    def test_producer_initialization(self, mock_kafka_producer, publisher):
        producer = publisher.get_producer()

        mock_kafka_producer.assert_called_once()
        call_kwargs = mock_kafka_producer.call_args[1]
        assert call_kwargs['bootstrap_servers'] == ["broker-1:9092", "broker-2:9092"]
        assert call_kwargs['value_serializer']({"user_id": 1}) == b'{"user_id": 1}'
        assert call_kwargs['key_serializer'](7) == b"7"
        assert call_kwargs['acks'] == 'all'
        assert call_kwargs['api_version'] == (2, 5, 0)
        assert call_kwargs['request_timeout_ms'] == 5000
        assert call_kwargs['max_block_ms'] == 1000

        assert publisher.get_producer() is producer
        mock_kafka_producer.assert_called_once()

    def test_publish_does_not_wait_for_delivery(self, publisher):
        mock_producer = MagicMock()
        publisher._producer = mock_producer

        publisher.publish_user_created(7)
        publisher._executor.shutdown(wait=True)

        mock_producer.send.assert_called_once()
        call_args = mock_producer.send.call_args
        assert call_args[0][0] == "users.created"
        assert call_args[1]["key"] == 7
        assert call_args[1]["value"]["user_id"] == 7
        future = mock_producer.send.return_value
        future.get.assert_not_called()
        future.add_errback.assert_called_once_with(publisher._on_send_error, 7)

    def test_publish_runs_off_the_caller_thread(self, publisher):
        send_threads = []
        mock_producer = MagicMock()
        mock_producer.send.side_effect = lambda *a, **kw: send_threads.append(threading.get_ident())
        publisher._producer = mock_producer

        publisher.publish_user_created(7)
        publisher._executor.shutdown(wait=True)

        assert send_threads and send_threads[0] != threading.get_ident()

    def test_send_failure_is_swallowed(self, publisher):
        mock_producer = MagicMock()
        mock_producer.send.side_effect = Exception("Kafka connection failed")
        publisher._producer = mock_producer

        publisher.publish_user_created(7)
        publisher._executor.shutdown(wait=True)

        mock_producer.send.assert_called_once()

    @patch('accounts.core.events.KafkaProducer', side_effect=Exception("no brokers available"))
    def test_failed_construction_is_backed_off(self, mock_kafka_producer, publisher):
        assert publisher.get_producer() is None
        assert publisher.get_producer() is None

        publisher.publish_user_created(7)
        publisher.publish_user_created(8)
        publisher._executor.shutdown(wait=True)

        mock_kafka_producer.assert_called_once()
        assert publisher._producer is None

    @patch('accounts.core.events.KafkaProducer')
    def test_construction_retried_after_backoff(self, mock_kafka_producer):
        publisher = KafkaEventPublisher("broker-1:9092", "users.created", retry_backoff_seconds=0)
        mock_kafka_producer.side_effect = [Exception("no brokers available"), MagicMock()]

        assert publisher.get_producer() is None
        assert publisher.get_producer() is not None
        assert mock_kafka_producer.call_count == 2
        publisher.close()

    @patch('accounts.core.events.KafkaProducer')
    def test_start_builds_producer_in_background(self, mock_kafka_producer, publisher):
        publisher.start()
        publisher._executor.shutdown(wait=True)
        mock_kafka_producer.assert_called_once()

    def test_publish_after_close_is_swallowed(self, publisher):
        publisher.close()
        publisher.publish_user_created(7)

    def test_delivery_errback_logs(self, publisher):
        with patch('accounts.core.events.logger') as mock_logger:
            publisher._on_send_error(7, Exception("timed out"))
        mock_logger.error.assert_called_once()
        assert mock_logger.error.call_args[1]["user_id"] == 7

    def test_close(self, publisher):
        mock_producer = MagicMock()
        publisher._producer = mock_producer

        publisher.close()

        mock_producer.close.assert_called_once()
        assert publisher._producer is None


class TestLoggingEventPublisher:

    def test_publish_never_raises(self):
        publisher = LoggingEventPublisher()
        publisher.start()
        publisher.publish_user_created(1)
        publisher.close()
