"""
Fail-soft side effects

Broadcasts and notifications never fail the primary operation. Each helper
swallows the failure, logs it at WARNING and appends a readable line to the
caller's warnings list so results can report what did not happen.
"""
import logging
from typing import Dict, List

from farmstand.schemas.notification import NotificationRequest

logger = logging.getLogger(__name__)


def broadcast(publisher, channel: str, event: str, payload: Dict, warnings: List[str]) -> bool:
    """Publish an event; False (with a warning recorded) on any failure"""
    try:
        if publisher.send(channel, event, payload):
            return True
        message = f"Broadcast '{event}' was not delivered"
    except Exception as e:
        message = f"Broadcast '{event}' failed: {e}"
    logger.warning(message)
    warnings.append(message)
    return False


def notify(dispatcher, request: NotificationRequest, warnings: List[str]) -> bool:
    """Send a notification; False (with a warning recorded) unless it succeeded"""
    try:
        result = dispatcher.send_notification(request)
        if result.success:
            return True
        message = (
            f"Notification '{request.type}' failed on channels: "
            f"{', '.join(result.failed_channels) or 'all'}"
        )
    except Exception as e:
        message = f"Notification '{request.type}' failed: {e}"
    logger.warning(message)
    warnings.append(message)
    return False
