"""
Notification dispatcher with console and HTTP backends
"""
import httpx
import logging
from typing import Optional
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from farmstand.config import settings
from farmstand.schemas.notification import NotificationRequest, NotificationResult
from farmstand.utils.timeutil import format_slot

logger = logging.getLogger(__name__)

SUBJECTS = {
    'order_confirmed': "Order #{order_id} received",
    'pickup_ready': "Order #{order_id} is ready for pickup",
    'order_cancelled': "Order #{order_id} was cancelled",
    'pickup_rescheduled': "Order #{order_id} pickup time changed",
}


class NotificationServiceUnavailableError(Exception):
    """Notification service is unavailable"""
    pass


def render_message(request: NotificationRequest) -> tuple:
    """Build (subject, body) for a notification"""
    order = request.order
    order_id = order.id if order else "-"
    subject = SUBJECTS[request.type].format(order_id=order_id)

    lines = [f"Hi {request.customer_name}!", ""]
    if request.custom_message:
        lines.append(request.custom_message)
    elif request.type == 'order_confirmed':
        lines.append("Thanks for your order. We'll let you know when it's ready.")
    elif request.type == 'pickup_ready':
        lines.append("Your order is packed and waiting for you at the farmstand.")
    elif request.type == 'order_cancelled':
        lines.append("Your order has been cancelled.")
    elif request.type == 'pickup_rescheduled':
        lines.append("Your pickup time has been updated.")

    if order is not None:
        lines.append("")
        lines.append(f"Order ID: {order.id}")
        if order.fulfillment_type == 'pickup':
            lines.append(f"Pickup: {format_slot(order.pickup_date, order.pickup_time)}")
        lines.append(f"Total: ${order.total:.2f}")
    return subject, "\n".join(lines)


class NotificationDispatcher:
    """Sends customer notifications over the configured backend"""

    def __init__(self, backend: Optional[str] = None, base_url: Optional[str] = None):
        self.backend = backend or settings.NOTIFICATION_BACKEND
        self.base_url = base_url or settings.NOTIFICATION_SERVICE_URL
        self.timeout = 5.0  # 5 seconds timeout

    def send_notification(self, request: NotificationRequest) -> NotificationResult:
        """
        Send a notification on every requested channel

        Returns:
            Per-channel outcome; never raises for delivery failures
        """
        if self.backend == "console":
            return self._send_console(request)
        if self.backend == "http":
            try:
                return self._send_http(request)
            except (NotificationServiceUnavailableError, httpx.HTTPError) as e:
                logger.warning("Notification %s failed: %s", request.type, e)
                return NotificationResult(success=False, failed_channels=list(request.channels))

        logger.warning("Unknown notification backend: %s", self.backend)
        return NotificationResult(success=False, failed_channels=list(request.channels))

    def _send_console(self, request: NotificationRequest) -> NotificationResult:
        """
        Log the rendered message instead of delivering it

        This is for development/testing purposes
        """
        subject, body = render_message(request)
        logger.info(
            "Notification [%s] via %s to %s: %s\n%s",
            request.type, ",".join(request.channels),
            request.customer_email or request.customer_phone, subject, body
        )
        return NotificationResult(success=True, sent_channels=list(request.channels))

    @retry(
        stop=stop_after_attempt(settings.MAX_RETRIES),
        wait=wait_exponential(multiplier=settings.RETRY_DELAY, min=1, max=10),
        retry=retry_if_exception_type(NotificationServiceUnavailableError),
        reraise=True
    )
    def _send_http(self, request: NotificationRequest) -> NotificationResult:
        subject, body = render_message(request)
        payload = {
            "user_id": request.user_id,
            "email": request.customer_email,
            "phone": request.customer_phone,
            "type": request.type,
            "channels": request.channels,
            "subject": subject,
            "body": body,
            "order_id": request.order.id if request.order else None,
        }
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(f"{self.base_url}/notifications", json=payload)
        except (httpx.TimeoutException, httpx.ConnectError) as e:
            raise NotificationServiceUnavailableError(f"Notification service unavailable: {e}")

        if response.status_code >= 500:
            raise NotificationServiceUnavailableError(f"Unexpected status code: {response.status_code}")
        if response.status_code >= 400:
            logger.warning("Notification rejected with status %s", response.status_code)
            return NotificationResult(success=False, failed_channels=list(request.channels))

        data = response.json()
        sent = data.get("sent_channels", list(request.channels))
        failed = data.get("failed_channels", [])
        return NotificationResult(success=bool(sent), sent_channels=sent, failed_channels=failed)
