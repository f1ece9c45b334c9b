"""
Report service - submission, crowd verification and public lookups.

SUBMISSION FLOW:
1. Derive priority from fraud type and impact
2. Classify (advisory; defaults on failure) and reverse-geocode (coordinates on failure)
3. Store the report with the unverified trust baseline
4. Credit the reporter's reputation
5. Publish new_fraud_report to the report's location room
6. Alert dispatch runs afterwards (dispatch_alerts), never failing the submission
"""

import asyncio
from math import ceil
from typing import Dict, List, Optional, Tuple
import logging

from alerthub.core.context import AppContext, get_context
from alerthub.core.exceptions import ReportNotFoundError, UserNotFoundError
from alerthub.models.report import (
    AIAnalysis,
    FraudReport,
    FraudType,
    IdentifierKind,
    Priority,
    ReportCreate,
    ReportStatus,
    utcnow,
)
from alerthub.services.alert_dispatcher import DispatchResult
from alerthub.services.live_feed import BROADCAST_ROOM
from alerthub.utils.firestore_helpers import where_filter
from alerthub.utils.geo import haversine_km, location_room
from alerthub.utils.identifiers import normalize_email, normalize_phone

logger = logging.getLogger(__name__)

REPORTS_COLLECTION = "fraud_reports"
USERS_COLLECTION = "users"

HIGH_PRIORITY_TYPES = {FraudType.PONZI.value, FraudType.INVESTMENT.value}
CRITICAL_LOSS_THRESHOLD = 10000
HIGH_AFFECTED_USERS = 10

IDENTIFIER_CHECK_LIMIT = 10
MAP_DATA_LIMIT = 1000

DEFAULT_PAGE_SIZE = 20
MY_ITEMS_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100

NEAR_ME_DEFAULT_RADIUS_KM = 10.0
NEAR_ME_MIN_RADIUS_KM = 0.1
NEAR_ME_MAX_RADIUS_KM = 100.0

IDENTIFIER_FIELDS = {
    IdentifierKind.PHONE.value: "evidence.phone_number",
    IdentifierKind.EMAIL.value: "evidence.email",
    IdentifierKind.WEBSITE.value: "evidence.website",
}

RISK_LEVELS = ((80, "critical"), (60, "high"), (40, "medium"))


def derive_priority(data: ReportCreate) -> Priority:
    """First matching rule wins: fraud type, then financial loss, then reach."""
    if data.fraud_type in HIGH_PRIORITY_TYPES:
        return Priority.HIGH
    if data.impact.financial_loss > CRITICAL_LOSS_THRESHOLD:
        return Priority.CRITICAL
    if data.impact.affected_users > HIGH_AFFECTED_USERS:
        return Priority.HIGH
    return Priority.MEDIUM


def risk_level_for(trust_score: int) -> str:
    for threshold, level in RISK_LEVELS:
        if trust_score >= threshold:
            return level
    return "low"


def report_text(data: ReportCreate) -> str:
    return " ".join(filter(None, [data.title, data.description, data.evidence.message_content]))


def _check_paging(page: int, limit: int) -> None:
    if page < 1:
        raise ValueError("page must be >= 1")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValueError(f"limit must be between 1 and {MAX_PAGE_SIZE}")


def _paginate(items: List, page: int, limit: int) -> Tuple[List, Dict]:
    start = (page - 1) * limit
    return items[start:start + limit], {
        "page": page,
        "limit": limit,
        "total": len(items),
        "pages": ceil(len(items) / limit),
    }


class ReportService:

    def __init__(self, context: AppContext):
        context.require_ready()
        self.context = context
        self.db = context.db

    async def create_report(self, data: ReportCreate, reporter_id: str) -> FraudReport:
        """
        Store a new report.

        Raises:
            UserNotFoundError: reporter is not registered
        """
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._require_user, reporter_id)

        priority = derive_priority(data).value
        classification = await loop.run_in_executor(
            None,
            lambda: self.context.classifier.classify_with_fallback(
                report_text(data),
                website=data.evidence.website,
                phone_number=data.evidence.phone_number,
                priority=priority,
                fallback_category=data.fraud_type,
            ),
        )

        location = data.location.model_dump()
        if not location.get("address"):
            resolved = await loop.run_in_executor(
                None, self.context.geocoder.resolve, data.location.lat, data.location.lng
            )
            for key in ("address", "city", "state", "country"):
                location[key] = location.get(key) or resolved.get(key)

        ref = self.db.collection(REPORTS_COLLECTION).document()
        now = utcnow()
        report = FraudReport(
            id=ref.id,
            reported_by=reporter_id,
            fraud_type=data.fraud_type,
            sub_category=data.sub_category,
            title=data.title,
            description=data.description,
            location=location,
            evidence=data.evidence,
            impact=data.impact,
            tags=data.tags,
            priority=priority,
            status=ReportStatus.ACTIVE,
            ai_analysis=AIAnalysis.model_validate(classification.to_dict()),
            verification=self.context.trust_scorer.initial_verification(),
            created_at=now,
            updated_at=now,
        )

        try:
            await loop.run_in_executor(None, ref.set, report.model_dump())
        except Exception as e:
            logger.error(f"Failed to save report: {e}", exc_info=True)
            raise
        logger.info(f"Report {report.id} saved ({report.fraud_type}, priority {report.priority})")

        try:
            await loop.run_in_executor(None, self.context.reputation.record_report, reporter_id)
        except Exception as e:
            logger.warning(f"Could not update reputation for reporter {reporter_id}: {e}")

        self.context.live_feed.publish(
            location_room(report.location.lat, report.location.lng),
            "new_fraud_report",
            report.to_map_data(),
        )
        return report

    async def dispatch_alerts(self, report: FraudReport) -> Optional[DispatchResult]:
        """Run the alert pass for a stored report. Never raises."""
        try:
            return await self.context.dispatcher.dispatch_report(report)
        except Exception as e:
            logger.error(f"Alert dispatch for report {report.id} failed: {e}", exc_info=True)
            return None

    async def vote_on_report(self, report_id: str, voter_id: str, vote: str, comment: Optional[str] = None) -> Dict:
        """
        Apply a crowd verification vote.

        Raises:
            UserNotFoundError: voter is not registered
            ReportNotFoundError: report does not exist
            ReportUpdateConflictError: the report kept changing during the write
        """
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._require_user, voter_id)

        outcome = await loop.run_in_executor(
            None, self.context.trust_scorer.apply_vote, report_id, voter_id, vote, comment
        )

        if outcome.is_new_vote:
            try:
                await loop.run_in_executor(None, self.context.reputation.record_verification, voter_id)
            except Exception as e:
                logger.warning(f"Could not update reputation for voter {voter_id}: {e}")

        event = {
            "report_id": report_id,
            "trust_score": outcome.trust_score,
            "verification_count": outcome.verification_count,
        }
        self.context.live_feed.publish(BROADCAST_ROOM, "report_verified", event)
        return {**event, "status": outcome.status}

    def get_report(self, report_id: str) -> FraudReport:
        snapshot = self.db.collection(REPORTS_COLLECTION).document(report_id).get()
        if not snapshot.exists:
            raise ReportNotFoundError(report_id)
        return FraudReport.model_validate(snapshot.to_dict())

    def check_identifier(self, kind: str, value: str) -> Dict:
        """
        Has this phone / email / website been reported in an active report?

        Looks at the 10 most trusted matching reports; the risk level follows
        the highest trust score among them.
        """
        kind = IdentifierKind(kind).value
        if kind == IdentifierKind.PHONE.value:
            value = normalize_phone(value)
        elif kind == IdentifierKind.EMAIL.value:
            value = normalize_email(value)
        else:
            value = value.strip()
        if not value:
            raise ValueError(f"Empty {kind} value")

        query = where_filter(self.db.collection(REPORTS_COLLECTION), IDENTIFIER_FIELDS[kind], "==", value)
        query = where_filter(query, "status", "==", ReportStatus.ACTIVE.value)
        reports = [FraudReport.model_validate(doc.to_dict()) for doc in query.stream()]
        reports.sort(key=lambda r: r.verification.trust_score, reverse=True)
        reports = reports[:IDENTIFIER_CHECK_LIMIT]

        highest = max((r.verification.trust_score for r in reports), default=0)
        return {
            "is_reported": bool(reports),
            "risk_level": risk_level_for(highest),
            "trust_score": highest,
            "total_reports": len(reports),
            "reports": [
                {
                    "id": r.id,
                    "fraud_type": r.fraud_type,
                    "title": r.title,
                    "trust_score": r.verification.trust_score,
                    "verification_count": r.verification.verification_count,
                    "priority": r.priority,
                    "reported_at": r.created_at,
                }
                for r in reports
            ],
        }

    def map_data(
        self,
        sw_lat: float,
        sw_lng: float,
        ne_lat: float,
        ne_lng: float,
        fraud_types: Optional[List[str]] = None,
    ) -> Dict:
        """Active reports inside a bounding box, in the public map shape."""
        if sw_lat > ne_lat:
            raise ValueError("South-west latitude must not exceed north-east latitude")

        query = where_filter(self.db.collection(REPORTS_COLLECTION), "status", "==", ReportStatus.ACTIVE.value)
        query = where_filter(query, "location.lat", ">=", sw_lat)
        query = where_filter(query, "location.lat", "<=", ne_lat)

        wanted = set(fraud_types or [])
        reports = []
        for doc in query.stream():
            report = FraudReport.model_validate(doc.to_dict())
            if not self._in_lng_range(report.location.lng, sw_lng, ne_lng):
                continue
            if wanted and report.fraud_type not in wanted:
                continue
            reports.append(report.to_map_data())
            if len(reports) >= MAP_DATA_LIMIT:
                break

        return {"reports": reports, "count": len(reports)}

    @staticmethod
    def _in_lng_range(lng: float, sw_lng: float, ne_lng: float) -> bool:
        # A box crossing the antimeridian has sw_lng > ne_lng
        if sw_lng <= ne_lng:
            return sw_lng <= lng <= ne_lng
        return lng >= sw_lng or lng <= ne_lng

    def list_reports(
        self,
        fraud_type: Optional[str] = None,
        priority: Optional[str] = None,
        status: str = ReportStatus.ACTIVE.value,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        radius_km: float = NEAR_ME_DEFAULT_RADIUS_KM,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE,
    ) -> Dict:
        """
        Public report listing, newest first.

        With lat and lng only reports within radius_km of that point are
        kept, and each carries its distance_km.

        Raises:
            ValueError: bad paging, a lone lat or lng, or radius out of range
        """
        _check_paging(page, limit)
        if (lat is None) != (lng is None):
            raise ValueError("lat and lng must be given together")
        near_me = lat is not None
        if near_me and not NEAR_ME_MIN_RADIUS_KM <= radius_km <= NEAR_ME_MAX_RADIUS_KM:
            raise ValueError(f"radius_km must be between {NEAR_ME_MIN_RADIUS_KM} and {NEAR_ME_MAX_RADIUS_KM}")

        query = where_filter(self.db.collection(REPORTS_COLLECTION), "status", "==", status)
        if fraud_type:
            query = where_filter(query, "fraud_type", "==", fraud_type)
        if priority:
            query = where_filter(query, "priority", "==", priority)

        rows = []
        for doc in query.stream():
            report = FraudReport.model_validate(doc.to_dict())
            distance = None
            if near_me:
                distance = haversine_km(lat, lng, report.location.lat, report.location.lng)
                if distance > radius_km:
                    continue
            rows.append((report, distance))
        rows.sort(key=lambda row: row[0].created_at, reverse=True)

        page_rows, pagination = _paginate(rows, page, limit)
        reports = []
        for report, distance in page_rows:
            data = report.to_public()
            if distance is not None:
                data["distance_km"] = round(distance, 2)
            reports.append(data)
        return {"reports": reports, "pagination": pagination}

    def reports_by_user(
        self,
        user_id: str,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = MY_ITEMS_PAGE_SIZE,
    ) -> Dict:
        """A reporter's own reports, newest first, evidence included."""
        _check_paging(page, limit)
        self._require_user(user_id)

        query = where_filter(self.db.collection(REPORTS_COLLECTION), "reported_by", "==", user_id)
        if status:
            query = where_filter(query, "status", "==", status)
        reports = [FraudReport.model_validate(doc.to_dict()) for doc in query.stream()]
        reports.sort(key=lambda r: r.created_at, reverse=True)

        page_reports, pagination = _paginate(reports, page, limit)
        return {
            "reports": [r.to_public(include_evidence=True) for r in page_reports],
            "pagination": pagination,
        }

    def verifications_by_user(self, user_id: str, page: int = 1, limit: int = MY_ITEMS_PAGE_SIZE) -> Dict:
        """
        Votes a user has cast, most recent first.

        Votes live inside each report's verification entries, so this scans
        the reports collection.
        """
        _check_paging(page, limit)
        self._require_user(user_id)

        votes = []
        for doc in self.db.collection(REPORTS_COLLECTION).stream():
            report = FraudReport.model_validate(doc.to_dict())
            entry = next((e for e in report.verification.entries if e.voter_id == user_id), None)
            if entry is None:
                continue
            votes.append({
                "report_id": report.id,
                "report_title": report.title,
                "fraud_type": report.fraud_type,
                "reported_by": report.reported_by,
                "vote": entry.vote,
                "comment": entry.comment,
                "verified_at": entry.voted_at,
                "trust_score": report.verification.trust_score,
            })
        votes.sort(key=lambda v: v["verified_at"], reverse=True)

        page_votes, pagination = _paginate(votes, page, limit)
        return {"verifications": page_votes, "pagination": pagination}

    def _require_user(self, user_id: str) -> None:
        if not self.db.collection(USERS_COLLECTION).document(user_id).get().exists:
            raise UserNotFoundError(user_id)


def get_report_service() -> ReportService:
    return ReportService(get_context())
