import logging
from typing import Dict, Optional

import requests

from alerthub.core.settings import settings
from .base import ChannelSender

logger = logging.getLogger(__name__)


class TwilioSmsSender(ChannelSender):
    """
    SMS sender using the Twilio Messages REST endpoint.

    Skips sending when account credentials or the sender number are missing.
    """

    channel = "sms"
    BASE_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"

    def __init__(
        self,
        account_sid: Optional[str] = None,
        auth_token: Optional[str] = None,
        from_number: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.account_sid = account_sid or settings.TWILIO_ACCOUNT_SID
        self.auth_token = auth_token or settings.TWILIO_AUTH_TOKEN
        self.from_number = from_number or settings.TWILIO_FROM_NUMBER
        self.timeout = timeout or settings.CHANNEL_SEND_TIMEOUT_SECONDS
        self._session = requests.Session()

    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    def send(self, destination: str, title: str, body: str, metadata: Optional[Dict] = None) -> bool:
        if not self.is_configured():
            logger.info("SMS not configured, skipping SMS notification")
            return False

        try:
            resp = self._session.post(
                self.BASE_URL.format(sid=self.account_sid),
                data={"To": destination, "From": self.from_number, "Body": body},
                auth=(self.account_sid, self.auth_token),
                timeout=self.timeout,
            )
            if resp.status_code not in (200, 201):
                logger.warning(f"SMS sending failed with status {resp.status_code}: {resp.text[:200]}")
                return False
            logger.info(f"SMS sent successfully: {resp.json().get('sid')}")
            return True
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"SMS sending failed: {e}")
            return False

    def close(self) -> None:
        self._session.close()
