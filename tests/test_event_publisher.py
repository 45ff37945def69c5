import json
from unittest.mock import MagicMock, patch

from farmstand.publishers.event_publisher import EventPublisher, user_channel


class TestUserChannel:
    def test_user_scoped(self):
        assert user_channel("user-1") == "orders.user.user-1"

    def test_guest(self):
        assert user_channel(None) == "orders.guest"


class TestEventPublisher:
    def test_envelope(self):
        event = EventPublisher("amqp://test", "test_exchange").build_event("new-order", {"order_id": "o1"})
        assert event["event_type"] == "new-order"
        assert event["event_version"] == "1.0"
        assert event["data"] == {"order_id": "o1"}
        assert event["event_id"]

    @patch("farmstand.publishers.event_publisher.pika")
    def test_publishes_to_topic_exchange(self, pika):
        connection = pika.BlockingConnection.return_value
        channel = connection.channel.return_value

        sent = EventPublisher("amqp://test", "test_exchange").send(
            "orders.user.user-1", "order-status-updated", {"user_id": "user-1", "status": "ready"}
        )

        assert sent
        channel.exchange_declare.assert_called_once_with(
            exchange="test_exchange", exchange_type="topic", durable=True
        )
        kwargs = channel.basic_publish.call_args.kwargs
        assert kwargs["routing_key"] == "orders.user.user-1.order-status-updated"
        body = json.loads(kwargs["body"])
        assert body["data"]["status"] == "ready"
        connection.close.assert_called_once()

    @patch("farmstand.publishers.event_publisher.pika")
    def test_connection_failure_returns_false(self, pika):
        pika.BlockingConnection.side_effect = ConnectionError("broker down")
        assert EventPublisher("amqp://test").send("inventory", "stock-restored", {}) is False

    @patch("farmstand.publishers.event_publisher.pika")
    def test_publish_failure_still_closes_connection(self, pika):
        connection = MagicMock()
        connection.channel.return_value.basic_publish.side_effect = RuntimeError("channel closed")
        pika.BlockingConnection.return_value = connection

        assert EventPublisher("amqp://test").send("inventory", "stock-restored", {}) is False
        connection.close.assert_called_once()
