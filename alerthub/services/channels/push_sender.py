import logging
from typing import Dict, Optional

import firebase_admin
from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging

from alerthub.core.settings import settings
from .base import ChannelSender

logger = logging.getLogger(__name__)


class FcmPushSender(ChannelSender):
    """Push notifications through Firebase Cloud Messaging (shares the Firestore Firebase app)."""

    channel = "push"

    def is_configured(self) -> bool:
        return settings.PUSH_ENABLED and bool(firebase_admin._apps)

    def send(self, destination: str, title: str, body: str, metadata: Optional[Dict] = None) -> bool:
        if not self.is_configured():
            logger.info("Firebase not configured, skipping push notification")
            return False

        data = {key: str(value) for key, value in (metadata or {}).items() if value is not None and key != "html"}
        message = messaging.Message(
            notification=messaging.Notification(title=title, body=body),
            data=data,
            token=destination,
        )

        try:
            message_id = messaging.send(message)
            logger.info(f"Push notification sent successfully: {message_id}")
            return True
        except (firebase_exceptions.FirebaseError, ValueError) as e:
            logger.warning(f"Push notification failed: {e}")
            return False
