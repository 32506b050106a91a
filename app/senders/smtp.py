import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from app.exceptions import NotificationFailure
from app.senders.base import BaseSender

logger = logging.getLogger(__name__)


class SmtpSender(BaseSender):
    """
    Delivers HTML email over SMTP.
    One connection per message; STARTTLS and login are optional.
    """

    def __init__(
        self,
        host: str,
        port: int,
        from_address: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.from_address = from_address
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    @property
    def sender_name(self) -> str:
        return "smtp"

    def build_message(self, address: str, subject: str, body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.from_address
        msg["To"] = address
        msg["Subject"] = subject
        msg.set_content("This message requires an HTML capable mail client.")
        msg.add_alternative(body, subtype="html")
        return msg

    def send(self, address: str, subject: str, body: str) -> None:
        msg = self.build_message(address, subject, body)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password or "")
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationFailure(f"SMTP delivery to {address} failed: {e}") from e
        logger.debug("Sent '%s' to %s via %s:%s", subject, address, self.host, self.port)
