"""
Channel Sender contract.

A sender delivers one rendered message to one destination and reports
success as a boolean. Expected failures (not configured, invalid
destination, provider outage) return False; only programmer errors raise.
"""

from abc import ABC, abstractmethod
from typing import Dict, Optional
import logging

logger = logging.getLogger(__name__)


class ChannelSender(ABC):

    channel: str = ""

    @abstractmethod
    def is_configured(self) -> bool:
        pass

    @abstractmethod
    def send(self, destination: str, title: str, body: str, metadata: Optional[Dict] = None) -> bool:
        """
        Send a message.

        Args:
            destination: FCM token, email address or phone number
            title: Message title / subject
            body: Plain-text body
            metadata: Channel-specific extras (alert id, html body, ...)

        Returns:
            True if the provider accepted the message
        """
        pass

    def close(self) -> None:
        """Release transport resources. Default: nothing to release."""
