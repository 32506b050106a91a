import logging

from app.senders.base import BaseSender

logger = logging.getLogger(__name__)


class LogSender(BaseSender):
    """Writes messages to the application log instead of delivering them."""

    @property
    def sender_name(self) -> str:
        return "log"

    def send(self, address: str, subject: str, body: str) -> None:
        logger.info("Notification to %s: %s (%d chars)", address, subject, len(body))
