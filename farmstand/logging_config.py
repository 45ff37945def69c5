"""
Logging setup
"""
import logging

from farmstand.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once from LOG_LEVEL"""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
    )
    # pika is chatty at INFO on every connection open/close
    logging.getLogger("pika").setLevel(logging.WARNING)
