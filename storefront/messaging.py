from __future__ import annotations

import json
import logging

import pika
from pika.exceptions import AMQPError

from .config import EVENTS_ENABLED, EVENTS_EXCHANGE, RABBITMQ_URL

logger = logging.getLogger(__name__)


def _connect() -> pika.BlockingConnection:
    params = pika.URLParameters(RABBITMQ_URL)
    # a few sane defaults
    params.heartbeat = 30
    params.blocked_connection_timeout = 30
    return pika.BlockingConnection(params)


def publish_event(routing_key: str, payload: dict) -> None:
    connection = _connect()
    try:
        ch = connection.channel()
        ch.exchange_declare(exchange=EVENTS_EXCHANGE, exchange_type="topic", durable=True)
        body = json.dumps(payload, ensure_ascii=False, default=str).encode("utf-8")
        ch.basic_publish(
            exchange=EVENTS_EXCHANGE,
            routing_key=routing_key,
            body=body,
            properties=pika.BasicProperties(
                content_type="application/json",
                delivery_mode=2,  # persistent
            ),
        )
    finally:
        connection.close()


def notify(routing_key: str, payload: dict) -> bool:
    """Publish an event after a committed change.

    The change already stands, so a broker failure is logged, not raised.
    Returns True when the event was handed to the broker.
    """
    if not EVENTS_ENABLED:
        return False
    try:
        publish_event(routing_key, payload)
    except (AMQPError, OSError, ValueError):
        logger.exception("failed to publish %s", routing_key)
        return False
    return True
