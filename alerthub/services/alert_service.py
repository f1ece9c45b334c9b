"""
Alert service - a recipient's view of their own alerts.

Only the recipient can see or change an alert. Expired alerts are inert:
they are hidden from listings and stats and cannot be re-sent.
"""

from collections import Counter
from math import ceil
from typing import Any, Dict, List, Optional
import logging

from alerthub.config.firebase import get_db
from alerthub.core.context import get_context
from alerthub.core.exceptions import AlertNotFoundError
from alerthub.models.alert import Alert
from alerthub.models.report import utcnow
from alerthub.utils.firestore_helpers import where_filter

logger = logging.getLogger(__name__)

ALERTS_COLLECTION = "alerts"

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class AlertService:

    def __init__(self, db: Optional[Any] = None):
        self.db = db or get_db()

    def _live_alerts(self, recipient_id: str) -> List[Alert]:
        query = where_filter(self.db.collection(ALERTS_COLLECTION), "recipient_id", "==", recipient_id)
        query = where_filter(query, "is_active", "==", True)
        now = utcnow()
        alerts = []
        for doc in query.stream():
            alert = Alert.model_validate(doc.to_dict())
            if not alert.is_expired(now):
                alerts.append(alert)
        alerts.sort(key=lambda a: a.created_at, reverse=True)
        return alerts

    def list_alerts(
        self,
        recipient_id: str,
        severity: Optional[str] = None,
        alert_type: Optional[str] = None,
        is_read: Optional[bool] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Dict:
        """
        Active, unexpired alerts for a recipient, newest first.

        Returns:
            {"alerts": [...], "pagination": {...}, "unread_count": int}
        """
        if page < 1:
            raise ValueError("page must be >= 1")
        if not 1 <= limit <= MAX_PAGE_SIZE:
            raise ValueError(f"limit must be between 1 and {MAX_PAGE_SIZE}")

        alerts = self._live_alerts(recipient_id)
        unread_count = sum(1 for a in alerts if not a.is_read)

        if severity:
            alerts = [a for a in alerts if a.severity == severity]
        if alert_type:
            alerts = [a for a in alerts if a.alert_type == alert_type]
        if is_read is not None:
            alerts = [a for a in alerts if a.is_read == is_read]

        total = len(alerts)
        start = (page - 1) * limit
        return {
            "alerts": [a.to_public() for a in alerts[start:start + limit]],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": ceil(total / limit),
            },
            "unread_count": unread_count,
        }

    def get_alert(self, recipient_id: str, alert_id: str) -> Alert:
        snapshot = self.db.collection(ALERTS_COLLECTION).document(alert_id).get()
        if not snapshot.exists:
            raise AlertNotFoundError(alert_id)
        alert = Alert.model_validate(snapshot.to_dict())
        # Someone else's alert looks exactly like a missing one
        if alert.recipient_id != recipient_id:
            raise AlertNotFoundError(alert_id)
        return alert

    def mark_read(self, recipient_id: str, alert_id: str) -> Alert:
        alert = self.get_alert(recipient_id, alert_id)
        if alert.is_read:
            return alert
        now = utcnow()
        self.db.collection(ALERTS_COLLECTION).document(alert_id).update({"is_read": True, "read_at": now})
        alert.is_read = True
        alert.read_at = now
        return alert

    def mark_all_read(self, recipient_id: str) -> int:
        query = where_filter(self.db.collection(ALERTS_COLLECTION), "recipient_id", "==", recipient_id)
        query = where_filter(query, "is_read", "==", False)
        now = utcnow()
        count = 0
        for doc in query.stream():
            doc.reference.update({"is_read": True, "read_at": now})
            count += 1
        logger.info(f"Marked {count} alerts read for {recipient_id}")
        return count

    def deactivate(self, recipient_id: str, alert_id: str) -> None:
        self.get_alert(recipient_id, alert_id)
        self.db.collection(ALERTS_COLLECTION).document(alert_id).update({"is_active": False})
        logger.info(f"Alert {alert_id} deactivated by recipient")

    def stats(self, recipient_id: str) -> Dict:
        alerts = self._live_alerts(recipient_id)
        return {
            "total": len(alerts),
            "unread": sum(1 for a in alerts if not a.is_read),
            "by_severity": dict(Counter(a.severity for a in alerts)),
            "by_type": dict(Counter(a.alert_type for a in alerts)),
        }


def get_alert_service() -> AlertService:
    """AlertService bound to the current application context store."""
    return AlertService(get_context().db)
