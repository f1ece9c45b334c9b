"""
Alert Factory - turns recipient matches into stored Alert records.

SEVERITY:
- phone_match / email_match → critical (the recipient's own identity is implicated)
- proximity / pattern_match → report priority (low/medium/high/critical map 1:1)
- high_risk → classifier risk score (>= 80 critical, >= 60 high, >= 30 medium, else low)

UNIQUENESS:
The alert id is derived from (recipient, report, alert_type) and creation is
serialized per id, so building the same triple twice returns the stored
record instead of writing a second alert.
"""

from datetime import timedelta
from typing import Any, Dict, Optional, Tuple
import logging

from alerthub.config.firebase import get_db
from alerthub.core.settings import settings
from alerthub.models.alert import Alert, AlertType, LocationMatch, MatchCriteria, Severity
from alerthub.models.report import FraudReport, utcnow
from alerthub.models.user import UserProfile
from alerthub.utils.locks import KeyedLock

logger = logging.getLogger(__name__)

ALERTS_COLLECTION = "alerts"

PRIORITY_SEVERITY = {
    "low": Severity.LOW,
    "medium": Severity.MEDIUM,
    "high": Severity.HIGH,
    "critical": Severity.CRITICAL,
}

RISK_SEVERITY_THRESHOLDS = (
    (80, Severity.CRITICAL),
    (60, Severity.HIGH),
    (30, Severity.MEDIUM),
)


def alert_id_for(recipient_id: str, report_id: str, alert_type: str) -> str:
    return f"{recipient_id}_{report_id}_{alert_type}"


def severity_for_risk(risk_score: int) -> Severity:
    for threshold, severity in RISK_SEVERITY_THRESHOLDS:
        if risk_score >= threshold:
            return severity
    return Severity.LOW


def severity_for(alert_type: str, report: FraudReport, risk_score: Optional[int] = None) -> Severity:
    if alert_type in (AlertType.PHONE_MATCH.value, AlertType.EMAIL_MATCH.value):
        return Severity.CRITICAL
    if alert_type == AlertType.HIGH_RISK.value:
        score = risk_score if risk_score is not None else report.ai_analysis.risk_score
        return severity_for_risk(score)
    return PRIORITY_SEVERITY.get(report.priority, Severity.MEDIUM)


def render_title_and_message(alert_type: str, report: FraudReport, extra: Dict) -> Tuple[str, str]:
    fraud_label = report.fraud_type.replace("_", " ")
    distance = extra.get("distance_km")
    where = f"{distance:.1f}km away" if distance is not None else "in your area"

    if alert_type == AlertType.PROXIMITY.value:
        return "Scam Alert Nearby", f"{fraud_label.upper()} reported {where}: {report.title}"
    if alert_type == AlertType.PHONE_MATCH.value:
        return "Your Phone Number Reported", f"Your phone number was reported in a {fraud_label} scam: {report.title}"
    if alert_type == AlertType.EMAIL_MATCH.value:
        return "Your Email Reported", f"Your email was reported in a {fraud_label} scam: {report.title}"
    if alert_type == AlertType.HIGH_RISK.value:
        risk = extra.get("risk_score", report.ai_analysis.risk_score)
        return "High-Risk Scam Nearby", f"High-risk {fraud_label} scam (risk {risk}/100) reported {where}: {report.title}"
    return "Scam Pattern Match", f"A {fraud_label} scam matching a known pattern was reported: {report.title}"


def build_match_criteria(alert_type: str, report: FraudReport, extra: Dict) -> MatchCriteria:
    criteria = MatchCriteria()
    distance = extra.get("distance_km")
    if distance is not None:
        criteria.location = LocationMatch(
            distance_km=round(distance, 3),
            lat=report.location.lat,
            lng=report.location.lng,
        )

    if alert_type == AlertType.PHONE_MATCH.value:
        criteria.phone_number = report.evidence.phone_number
    elif alert_type == AlertType.EMAIL_MATCH.value:
        criteria.email = report.evidence.email
    elif alert_type == AlertType.PATTERN_MATCH.value:
        criteria.website = report.evidence.website
        criteria.keywords = list(extra.get("keywords") or report.ai_analysis.keywords)
    elif alert_type == AlertType.HIGH_RISK.value:
        criteria.risk_score = extra.get("risk_score", report.ai_analysis.risk_score)
    return criteria


class AlertFactory:
    """Builds at most one Alert per (recipient, report, alert_type)."""

    def __init__(self, db: Optional[Any] = None):
        self.db = db or get_db()
        self._locks = KeyedLock()

    def build_alert(
        self,
        recipient: UserProfile,
        report: FraudReport,
        alert_type: str,
        extra: Optional[Dict] = None,
    ) -> Tuple[Alert, bool]:
        """
        Build and store an alert, or return the one already stored for the triple.

        Args:
            recipient: User being alerted
            report: Source report
            alert_type: One of AlertType values
            extra: Match details (distance_km, risk_score, keywords)

        Returns:
            (alert, created) - created is False when the triple already existed
        """
        alert_type = AlertType(alert_type).value
        extra = extra or {}
        alert_id = alert_id_for(recipient.id, report.id, alert_type)

        with self._locks.hold(alert_id):
            ref = self.db.collection(ALERTS_COLLECTION).document(alert_id)
            snapshot = ref.get()
            if snapshot.exists:
                logger.debug(f"Alert {alert_id} already exists, not rebuilding")
                return Alert.model_validate(snapshot.to_dict()), False

            title, message = render_title_and_message(alert_type, report, extra)
            created_at = utcnow()
            alert = Alert(
                id=alert_id,
                recipient_id=recipient.id,
                source_report_id=report.id,
                alert_type=alert_type,
                severity=severity_for(alert_type, report, extra.get("risk_score")),
                title=title,
                message=message,
                match_criteria=build_match_criteria(alert_type, report, extra),
                created_at=created_at,
                expires_at=created_at + timedelta(days=settings.ALERT_RETENTION_DAYS),
            )
            ref.set(alert.model_dump())

        logger.info(f"Alert {alert_id} created ({alert.alert_type}, {alert.severity})")
        return alert, True
