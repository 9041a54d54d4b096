# app/core/kafka_producer.py

import json
import logging
import threading
from typing import Optional

from kafka import KafkaProducer
from kafka.errors import KafkaError

from app.core.config import settings

logger = logging.getLogger(__name__)

_producer: Optional[KafkaProducer] = None
_lock = threading.Lock()


def get_kafka_singleton() -> Optional[KafkaProducer]:
    """
    Return the process-wide Kafka producer, creating it on first use.

    Returns None when publishing is disabled or the brokers cannot be reached,
    so callers can degrade to a logged no-op.
    """
    global _producer

    if not settings.KAFKA_ENABLED:
        return None

    if _producer is not None:
        return _producer

    with _lock:
        if _producer is None:
            try:
                _producer = KafkaProducer(
                    bootstrap_servers=settings.KAFKA_BOOTSTRAP_SERVERS,
                    value_serializer=lambda v: json.dumps(v, default=str).encode("utf-8"),
                    key_serializer=lambda k: k.encode("utf-8") if k else None,
                    request_timeout_ms=5000,
                )
                logger.info("Kafka producer connected")
            except KafkaError as e:
                logger.error(f"Could not create Kafka producer: {e}")
                return None
    return _producer


def close_kafka_singleton() -> None:
    global _producer
    with _lock:
        if _producer is not None:
            _producer.flush()
            _producer.close()
            _producer = None
