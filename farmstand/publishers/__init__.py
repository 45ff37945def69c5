"""
Publishers package
"""
from farmstand.publishers.event_publisher import EventPublisher, user_channel

__all__ = ["EventPublisher", "user_channel"]
