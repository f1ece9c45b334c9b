"""
Alert Dispatcher - one report's alert pass, from enrichment to delivery.

STATES:
    ENRICHING → MATCHING_RECIPIENTS → BUILDING_ALERTS → DISPATCHING → DONE
    (ABORTED if recipient lookup fails; the report itself is unaffected)

- Every proximity and identifier candidate gets an alert built and one
  dispatch attempt; per-channel failures never stop the pass.
- Proximity candidates also get a high_risk alert when the classifier risk
  score reaches HIGH_RISK_ALERT_THRESHOLD.
- No retries inside a pass. Unsent channels stay retryable via retry_alert().
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import logging

from alerthub.config.firebase import get_db
from alerthub.core.exceptions import AlertNotFoundError, RecipientLookupError, UserNotFoundError
from alerthub.core.settings import settings
from alerthub.models.alert import Alert, AlertType
from alerthub.models.report import AIAnalysis, FraudReport
from alerthub.models.user import UserProfile
from alerthub.services.alert_factory import ALERTS_COLLECTION, AlertFactory
from alerthub.services.channel_router import ChannelRouter
from alerthub.services.classifier import ClassifierRegistry
from alerthub.services.live_feed import LiveFeed, user_room
from alerthub.services.pattern_matcher import MATCH_EMAIL, PatternMatcher
from alerthub.services.proximity_matcher import ProximityMatcher

logger = logging.getLogger(__name__)

REPORTS_COLLECTION = "fraud_reports"
USERS_COLLECTION = "users"


class DispatchState(str, Enum):
    ENRICHING = "enriching"
    MATCHING_RECIPIENTS = "matching_recipients"
    BUILDING_ALERTS = "building_alerts"
    DISPATCHING = "dispatching"
    DONE = "done"
    ABORTED = "aborted"


@dataclass
class AlertDelivery:
    """Outcome of one (recipient, alert_type) unit of work."""
    recipient_id: str
    alert_type: str
    alert_id: Optional[str] = None
    created: bool = False
    channels: Dict[str, bool] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def failed_channels(self) -> List[str]:
        return [channel for channel, ok in self.channels.items() if not ok]


@dataclass
class DispatchResult:
    report_id: str
    state: DispatchState = DispatchState.ENRICHING
    deliveries: List[AlertDelivery] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def alerts_created(self) -> int:
        return sum(1 for d in self.deliveries if d.created)

    @property
    def failures(self) -> List[AlertDelivery]:
        return [d for d in self.deliveries if d.error or d.failed_channels]


# (recipient, alert_type, extra)
Candidate = Tuple[UserProfile, str, Dict]


class AlertDispatcher:

    def __init__(
        self,
        router: ChannelRouter,
        db: Optional[Any] = None,
        factory: Optional[AlertFactory] = None,
        proximity: Optional[ProximityMatcher] = None,
        patterns: Optional[PatternMatcher] = None,
        classifier: Optional[ClassifierRegistry] = None,
        live_feed: Optional[LiveFeed] = None,
    ):
        self.db = db or get_db()
        self.router = router
        self.factory = factory or AlertFactory(self.db)
        self.proximity = proximity or ProximityMatcher(self.db)
        self.patterns = patterns or PatternMatcher(self.db)
        self.classifier = classifier or ClassifierRegistry()
        self.live_feed = live_feed or LiveFeed()

    async def dispatch_report(self, report: FraudReport) -> DispatchResult:
        result = DispatchResult(report_id=report.id)
        loop = asyncio.get_running_loop()

        # ENRICHING
        analysis = await loop.run_in_executor(None, self._ensure_enriched, report)

        # MATCHING_RECIPIENTS
        result.state = DispatchState.MATCHING_RECIPIENTS
        try:
            candidates = await loop.run_in_executor(None, self._collect_candidates, report, analysis)
        except RecipientLookupError as e:
            logger.error(f"Alert pass for report {report.id} aborted: {e}")
            result.state = DispatchState.ABORTED
            result.error = str(e)
            return result
        logger.info(f"Report {report.id}: {len(candidates)} alert candidates")

        # BUILDING_ALERTS
        result.state = DispatchState.BUILDING_ALERTS
        built = await asyncio.gather(
            *(loop.run_in_executor(None, self._build, report, candidate) for candidate in candidates)
        )

        # DISPATCHING
        result.state = DispatchState.DISPATCHING
        result.deliveries = list(await asyncio.gather(
            *(self._deliver(delivery, alert, recipient) for delivery, alert, recipient in built)
        ))

        result.state = DispatchState.DONE
        logger.info(
            f"Alert pass for report {report.id} done: {result.alerts_created} created, "
            f"{len(result.failures)} with failures"
        )
        return result

    async def retry_alert(self, alert_id: str) -> Dict[str, bool]:
        """
        Re-run channel delivery for one alert. Only channels still unsent and
        eligible are attempted; expired or deactivated alerts send nothing.

        Raises:
            AlertNotFoundError, UserNotFoundError
        """
        loop = asyncio.get_running_loop()
        alert, recipient = await loop.run_in_executor(None, self._load_alert_and_recipient, alert_id)
        outcome = await self.router.send(alert, recipient)
        logger.info(f"Retry of alert {alert_id}: {outcome or 'nothing eligible'}")
        return outcome

    def _ensure_enriched(self, report: FraudReport) -> AIAnalysis:
        if report.ai_analysis.provider is not None:
            return report.ai_analysis

        text = " ".join(filter(None, [report.title, report.description, report.evidence.message_content]))
        classification = self.classifier.classify_with_fallback(
            text,
            website=report.evidence.website,
            phone_number=report.evidence.phone_number,
            priority=report.priority,
            fallback_category=report.fraud_type,
        )
        analysis = AIAnalysis.model_validate(classification.to_dict())
        report.ai_analysis = analysis
        try:
            self.db.collection(REPORTS_COLLECTION).document(report.id).update({"ai_analysis": analysis.model_dump()})
        except Exception as e:
            logger.warning(f"Could not store classification for report {report.id}: {e}")
        return analysis

    def _collect_candidates(self, report: FraudReport, analysis: AIAnalysis) -> List[Candidate]:
        candidates: List[Candidate] = []
        high_risk = analysis.risk_score >= settings.HIGH_RISK_ALERT_THRESHOLD

        for user, distance in self.proximity.find_candidates(report, exclude_user_id=report.reported_by):
            candidates.append((user, AlertType.PROXIMITY.value, {"distance_km": distance}))
            if high_risk:
                candidates.append((
                    user,
                    AlertType.HIGH_RISK.value,
                    {"distance_km": distance, "risk_score": analysis.risk_score},
                ))

        for user, matched_field in self.patterns.find_identifier_matches(report):
            alert_type = AlertType.EMAIL_MATCH.value if matched_field == MATCH_EMAIL else AlertType.PHONE_MATCH.value
            candidates.append((user, alert_type, {}))

        return candidates

    def _build(self, report: FraudReport, candidate: Candidate) -> Tuple[AlertDelivery, Optional[Alert], UserProfile]:
        user, alert_type, extra = candidate
        delivery = AlertDelivery(recipient_id=user.id, alert_type=alert_type)
        try:
            alert, created = self.factory.build_alert(user, report, alert_type, extra)
        except Exception as e:
            logger.error(f"Building {alert_type} alert for {user.id} failed: {e}", exc_info=True)
            delivery.error = str(e)
            return delivery, None, user

        delivery.alert_id = alert.id
        delivery.created = created
        return delivery, alert, user

    async def _deliver(self, delivery: AlertDelivery, alert: Optional[Alert], recipient: UserProfile) -> AlertDelivery:
        if alert is None:
            return delivery

        if delivery.created:
            self.live_feed.publish(user_room(recipient.id), "new_alert", alert.live_event())

        try:
            delivery.channels = await self.router.send(alert, recipient)
        except Exception as e:
            logger.error(f"Dispatch of alert {alert.id} failed: {e}", exc_info=True)
            delivery.error = str(e)
        return delivery

    def _load_alert_and_recipient(self, alert_id: str) -> Tuple[Alert, UserProfile]:
        snapshot = self.db.collection(ALERTS_COLLECTION).document(alert_id).get()
        if not snapshot.exists:
            raise AlertNotFoundError(alert_id)
        alert = Alert.model_validate(snapshot.to_dict())

        user_snapshot = self.db.collection(USERS_COLLECTION).document(alert.recipient_id).get()
        if not user_snapshot.exists:
            raise UserNotFoundError(alert.recipient_id)
        data = user_snapshot.to_dict()
        data.setdefault("id", user_snapshot.id)
        return alert, UserProfile.model_validate(data)
