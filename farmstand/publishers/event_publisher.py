"""
RabbitMQ Broadcast Publisher
"""
import pika
import json
import logging
import uuid
from datetime import datetime
from typing import Dict, Optional

from farmstand.config import settings

logger = logging.getLogger(__name__)

ORDERS_CHANNEL = "orders"
INVENTORY_CHANNEL = "inventory"


def user_channel(user_id: Optional[str]) -> str:
    """Per-user channel so subscribers only receive their own order events"""
    if user_id:
        return f"{ORDERS_CHANNEL}.user.{user_id}"
    return f"{ORDERS_CHANNEL}.guest"


class EventPublisher:
    """Fire-and-forget publisher for realtime events on a topic exchange"""

    def __init__(self, rabbitmq_url: Optional[str] = None, exchange: Optional[str] = None):
        self.rabbitmq_url = rabbitmq_url or settings.RABBITMQ_URL
        self.exchange = exchange or settings.RABBITMQ_EXCHANGE

    def build_event(self, event: str, payload: Dict) -> Dict:
        """Wrap a payload in the standard event envelope"""
        return {
            "event_type": event,
            "event_id": str(uuid.uuid4()),
            "event_version": "1.0",
            "timestamp": datetime.utcnow().isoformat(),
            "source": settings.SERVICE_NAME,
            "data": payload
        }

    def send(self, channel: str, event: str, payload: Dict) -> bool:
        """
        Publish an event to RabbitMQ

        Args:
            channel: Logical channel, e.g. "orders.user.<id>" or "inventory"
            event: Event name, e.g. "order-status-updated"
            payload: Event data; user-scoped events must carry user_id

        Returns:
            True if published successfully, False otherwise
        """
        envelope = self.build_event(event, payload)
        try:
            connection = pika.BlockingConnection(
                pika.URLParameters(self.rabbitmq_url)
            )
            try:
                channel_ = connection.channel()
                channel_.exchange_declare(
                    exchange=self.exchange,
                    exchange_type='topic',
                    durable=True
                )
                channel_.basic_publish(
                    exchange=self.exchange,
                    routing_key=f"{channel}.{event}",
                    body=json.dumps(envelope, default=str),
                    properties=pika.BasicProperties(
                        delivery_mode=2,  # Persistent message
                        content_type='application/json',
                        correlation_id=envelope["event_id"]
                    )
                )
            finally:
                connection.close()

            logger.debug("Event published: %s on %s (ID: %s)", event, channel, envelope["event_id"])
            return True

        except Exception as e:
            logger.warning("Error publishing %s event on %s: %s", event, channel, e)
            return False
