"""
Channel Router - which channels an alert goes out on, and its per-channel delivery state.

ELIGIBILITY (all must hold, per channel):
1. the recipient enabled the channel in notification preferences
2. the channel has not been sent for this alert yet (retries never re-send)
3. SMS only: severity is not "low"
4. the recipient has a destination (fcm token / email / phone)
5. the alert is active and unexpired

CLAIMS:
    before sending, each (alert, channel) pair is claimed under the alert's
    lock and checked against the stored delivery state, so overlapping
    sends of the same alert (background pass and a manual retry) deliver
    each channel once. A claim is released when its send finishes.

DELIVERY STATE:
    success → sent=True, sent_at=now
    failure or timeout → unchanged (still eligible for a later retry)
    engagement (clicked / opened / delivered) only after sent, never reversed
"""

import asyncio
import threading
from typing import Any, Dict, List, Optional, Set, Tuple
import logging

from alerthub.config.firebase import get_db
from alerthub.core.exceptions import AlertNotFoundError
from alerthub.core.settings import settings
from alerthub.models.alert import Alert, Channel, ENGAGEMENT_FIELDS, Severity
from alerthub.models.report import utcnow
from alerthub.models.user import UserProfile
from alerthub.services.channels.base import ChannelSender
from alerthub.services.channels.templates import push_metadata, render_alert_email_html, render_sms_body
from alerthub.utils.locks import KeyedLock

logger = logging.getLogger(__name__)

ALERTS_COLLECTION = "alerts"


def destination_for(channel: str, recipient: UserProfile) -> Optional[str]:
    if channel == Channel.PUSH.value:
        return recipient.device.fcm_token
    if channel == Channel.EMAIL.value:
        return recipient.email
    if channel == Channel.SMS.value:
        return recipient.phone
    return None


class ChannelRouter:

    def __init__(
        self,
        senders: Dict[str, ChannelSender],
        db: Optional[Any] = None,
        send_timeout: Optional[float] = None,
    ):
        self.senders = senders
        self.db = db or get_db()
        self.send_timeout = send_timeout if send_timeout is not None else settings.CHANNEL_SEND_TIMEOUT_SECONDS
        self._locks = KeyedLock()
        self._in_flight: Set[Tuple[str, str]] = set()
        self._in_flight_guard = threading.Lock()

    def eligible_channels(self, alert: Alert, recipient: UserProfile) -> Set[str]:
        if not alert.is_live():
            return set()

        enabled = recipient.preferences.notifications
        eligible: Set[str] = set()
        for channel in Channel:
            name = channel.value
            if not getattr(enabled, name):
                continue
            if alert.channels.is_sent(name):
                continue
            if name == Channel.SMS.value and alert.severity == Severity.LOW.value:
                continue
            if not destination_for(name, recipient):
                continue
            eligible.add(name)
        return eligible

    async def send(self, alert: Alert, recipient: UserProfile) -> Dict[str, bool]:
        """
        Send every eligible channel concurrently.

        Returns:
            channel → True if sent and recorded, False otherwise.
            Channels that were not eligible are absent.
        """
        channels = sorted(self.eligible_channels(alert, recipient))
        if not channels:
            return {}

        loop = asyncio.get_running_loop()
        claimed = await loop.run_in_executor(None, self._claim, alert.id, channels)
        if not claimed:
            return {}

        try:
            outcomes = await asyncio.gather(*(self._send_one(alert, recipient, channel) for channel in claimed))
        finally:
            self._release(alert.id, claimed)
        return dict(outcomes)

    def _claim(self, alert_id: str, channels: List[str]) -> List[str]:
        """Reserve channels for sending; skips those stored as sent or already being sent."""
        with self._locks.hold(alert_id):
            snapshot = self.db.collection(ALERTS_COLLECTION).document(alert_id).get()
            if not snapshot.exists:
                logger.warning(f"Alert {alert_id} is not stored, nothing to send")
                return []
            stored = Alert.model_validate(snapshot.to_dict())

            claimed = []
            with self._in_flight_guard:
                for channel in channels:
                    if stored.channels.is_sent(channel):
                        continue
                    if (alert_id, channel) in self._in_flight:
                        logger.info(f"{channel} for alert {alert_id} is already being sent, skipping")
                        continue
                    self._in_flight.add((alert_id, channel))
                    claimed.append(channel)
        return claimed

    def _release(self, alert_id: str, channels: List[str]) -> None:
        with self._in_flight_guard:
            for channel in channels:
                self._in_flight.discard((alert_id, channel))

    async def _send_one(self, alert: Alert, recipient: UserProfile, channel: str) -> Tuple[str, bool]:
        sender = self.senders.get(channel)
        if sender is None:
            logger.warning(f"No sender registered for channel {channel}, alert {alert.id} stays unsent")
            return channel, False

        destination = destination_for(channel, recipient)
        title, body, metadata = self._render(channel, alert, recipient)
        loop = asyncio.get_running_loop()

        try:
            ok = await asyncio.wait_for(
                loop.run_in_executor(None, sender.send, destination, title, body, metadata),
                timeout=self.send_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"{channel} send for alert {alert.id} timed out after {self.send_timeout}s")
            return channel, False
        except Exception as e:
            logger.error(f"{channel} sender raised for alert {alert.id}: {e}", exc_info=True)
            return channel, False

        if not ok:
            logger.info(f"{channel} send failed for alert {alert.id}, left eligible for retry")
            return channel, False

        try:
            self._mark_sent(alert, channel)
        except Exception as e:
            logger.error(f"Could not record {channel} delivery for alert {alert.id}: {e}", exc_info=True)
            return channel, False
        return channel, True

    def _render(self, channel: str, alert: Alert, recipient: UserProfile) -> Tuple[str, str, Dict]:
        if channel == Channel.EMAIL.value:
            subject = f"{settings.APP_NAME} Alert: {alert.title}"
            return subject, alert.message, {"html": render_alert_email_html(alert, recipient), "alert_id": alert.id}
        if channel == Channel.SMS.value:
            return alert.title, render_sms_body(alert), {"alert_id": alert.id}
        return alert.title, alert.message, push_metadata(alert)

    def _mark_sent(self, alert: Alert, channel: str) -> None:
        now = utcnow()
        self.db.collection(ALERTS_COLLECTION).document(alert.id).update({
            f"channels.{channel}.sent": True,
            f"channels.{channel}.sent_at": now,
        })
        state = getattr(alert.channels, channel)
        state.sent = True
        state.sent_at = now
        logger.info(f"Alert {alert.id} sent via {channel}")

    def record_engagement(self, alert_id: str, channel: str) -> bool:
        """
        Mark an alert as clicked (push), opened (email) or delivered (sms).

        Returns:
            True if the engagement flag is set after the call. False when the
            channel was never sent, in which case nothing changes.

        Raises:
            AlertNotFoundError: alert does not exist
            ValueError: unknown channel
        """
        channel = Channel(channel).value
        field = ENGAGEMENT_FIELDS[channel]

        with self._locks.hold(alert_id):
            ref = self.db.collection(ALERTS_COLLECTION).document(alert_id)
            snapshot = ref.get()
            if not snapshot.exists:
                raise AlertNotFoundError(alert_id)
            alert = Alert.model_validate(snapshot.to_dict())
            state = getattr(alert.channels, channel)

            if not state.sent:
                logger.info(f"Ignoring {field} on alert {alert_id}: {channel} was never sent")
                return False
            if getattr(state, field):
                return True

            ref.update({
                f"channels.{channel}.{field}": True,
                f"channels.{channel}.{field}_at": utcnow(),
            })
        logger.info(f"Alert {alert_id} {channel} marked {field}")
        return True
