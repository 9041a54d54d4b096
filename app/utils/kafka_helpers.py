# app/utils/kafka_helpers.py
"""
Kafka helper functions for publishing booking lifecycle events.
Uses the singleton producer from app.core.kafka_producer.
"""
import logging
from typing import Any, Dict

from kafka.errors import KafkaError

from app.core.kafka_producer import get_kafka_singleton

logger = logging.getLogger(__name__)

# Kafka Topics
TOPIC_BOOKING_LIFECYCLE = "booking.lifecycle.v1"


def publish_booking_event(event_type: str, booking: Dict[str, Any]) -> bool:
    """
    Publish a booking lifecycle event, keyed by booking id.

    Args:
        event_type: e.g. 'booking.confirmed', 'booking.review_required'
        booking: Snapshot of the booking taken inside the transaction

    Returns:
        bool: True if handed to the producer, False otherwise
    """
    producer = get_kafka_singleton()
    if producer is None:
        logger.warning(f"Kafka producer unavailable, skipping {event_type} for {booking.get('bookingId')}")
        return False

    try:
        producer.send(
            TOPIC_BOOKING_LIFECYCLE,
            key=booking.get("bookingId"),
            value={"type": event_type, **booking},
        )
        logger.info(f"Published {event_type} for booking {booking.get('bookingId')}")
        return True
    except KafkaError as e:
        logger.error(f"Failed to publish {event_type} for booking {booking.get('bookingId')}: {e}")
        return False
