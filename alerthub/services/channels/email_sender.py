import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Dict, Optional

from alerthub.core.settings import settings
from .base import ChannelSender

logger = logging.getLogger(__name__)


class EmailSender(ChannelSender):
    """SMTP email sender (STARTTLS). Skips sending when SMTP credentials are not set."""

    channel = "email"

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        sender_name: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.host = host or settings.SMTP_HOST
        self.port = port or settings.SMTP_PORT
        self.user = user or settings.SMTP_USER
        self.password = password or settings.SMTP_PASSWORD
        self.sender_name = sender_name or settings.SMTP_SENDER_NAME
        self.timeout = timeout or settings.CHANNEL_SEND_TIMEOUT_SECONDS

    def is_configured(self) -> bool:
        return bool(self.user and self.password)

    def send(self, destination: str, title: str, body: str, metadata: Optional[Dict] = None) -> bool:
        if not self.is_configured():
            logger.info("Email not configured, skipping email notification")
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = title
        msg["From"] = f'"{self.sender_name}" <{self.user}>'
        msg["To"] = destination
        msg.attach(MIMEText(body, "plain"))
        html = (metadata or {}).get("html")
        if html:
            msg.attach(MIMEText(html, "html"))

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls()
                server.login(self.user, self.password)
                server.sendmail(self.user, [destination], msg.as_string())
            logger.info(f"Email sent to {destination}")
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.warning(f"Email sending failed for {destination}: {e}")
            return False
