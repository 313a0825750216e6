"""
User Events
Fire-and-forget notifications for other subsystems when users are created
"""

import json
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional, Tuple
from datetime import datetime, timezone

from kafka import KafkaProducer
import structlog

logger = structlog.get_logger()

USER_CREATED = "user_created"


def user_created_event(user_id: Any) -> Dict[str, Any]:
    return {
        "event_type": USER_CREATED,
        "user_id": user_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


class EventPublisher(ABC):
    """Outbound event queue; publishing never raises or blocks the caller"""

    @abstractmethod
    def publish_user_created(self, user_id: Any) -> None:
        pass

    def start(self) -> None:
        return None

    def close(self) -> None:
        return None


class LoggingEventPublisher(EventPublisher):
    """Used when no broker is configured; events are logged and dropped"""

    def publish_user_created(self, user_id: Any) -> None:
        logger.info("No event broker configured, dropping event", event_type=USER_CREATED, user_id=user_id)


class KafkaEventPublisher(EventPublisher):
    """Publishes user events to Kafka/Redpanda from a background worker

    Producer construction and sends run on a single worker thread, so a slow
    or dead broker never holds up the request that published the event. After
    a failed construction the producer is not rebuilt until the backoff ends.
    """

    def __init__(
        self,
        bootstrap_servers: str,
        topic: str,
        max_block_ms: int = 1000,
        request_timeout_ms: int = 5000,
        api_version: Tuple[int, ...] = (2, 5, 0),
        retry_backoff_seconds: float = 60.0,
    ):
        self.bootstrap_servers = bootstrap_servers
        self.topic = topic
        self.max_block_ms = max_block_ms
        self.request_timeout_ms = request_timeout_ms
        self.api_version = api_version
        self.retry_backoff_seconds = retry_backoff_seconds
        self._producer: Optional[KafkaProducer] = None
        self._unavailable_until = 0.0
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="user-events")

    def get_producer(self) -> Optional[KafkaProducer]:
        """Get or create the Kafka producer; None while the broker is backed off"""
        if self._producer is None:
            if time.monotonic() < self._unavailable_until:
                return None
            try:
                self._producer = KafkaProducer(
                    bootstrap_servers=self.bootstrap_servers.split(','),
                    value_serializer=lambda v: json.dumps(v).encode('utf-8'),
                    key_serializer=lambda k: str(k).encode('utf-8') if k is not None else None,
                    acks='all',
                    retries=3,
                    # A fixed api_version skips the blocking broker version probe
                    api_version=self.api_version,
                    max_block_ms=self.max_block_ms,
                    request_timeout_ms=self.request_timeout_ms,
                )
                logger.info("Kafka producer initialized", servers=self.bootstrap_servers)
            except Exception as e:
                self._unavailable_until = time.monotonic() + self.retry_backoff_seconds
                logger.error(
                    "Failed to initialize Kafka producer",
                    servers=self.bootstrap_servers,
                    retry_in_seconds=self.retry_backoff_seconds,
                    error=str(e),
                )
                return None
        return self._producer

    def start(self) -> None:
        """Build the producer in the background ahead of the first event"""
        self._submit(self.get_producer)

    def publish_user_created(self, user_id: Any) -> None:
        self._submit(self._send, user_id)

    def _submit(self, fn, *args) -> None:
        try:
            self._executor.submit(fn, *args)
        except RuntimeError as e:
            # Executor already shut down
            logger.error("User event publisher is closed", topic=self.topic, error=str(e))

    def _send(self, user_id: Any) -> None:
        producer = self.get_producer()
        if producer is None:
            logger.warning("Kafka unavailable, dropping user event", topic=self.topic, user_id=user_id)
            return
        try:
            future = producer.send(self.topic, key=user_id, value=user_created_event(user_id))
            future.add_errback(self._on_send_error, user_id)
        except Exception as e:
            logger.error(
                "Failed to publish user event",
                topic=self.topic,
                user_id=user_id,
                error=str(e),
            )

    def _on_send_error(self, user_id: Any, exc: Exception) -> None:
        logger.error(
            "User event delivery failed",
            topic=self.topic,
            user_id=user_id,
            error=str(exc),
        )

    def close(self) -> None:
        self._executor.shutdown(wait=True)
        if self._producer is not None:
            try:
                self._producer.close()
                logger.info("Kafka producer closed")
            except Exception as e:
                logger.error("Error closing Kafka producer", error=str(e))
            self._producer = None
