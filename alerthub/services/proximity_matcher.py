"""
Proximity Matcher - which users are close enough to a new report to be alerted.

A user qualifies when ALL of:
1. active, push notifications enabled, known location
2. haversine distance <= the user's own alert_radius_km (inclusive)
3. the user's fraud_types is empty ("all") or contains the report's fraud type
4. the user is not the reporter
"""

from typing import Any, Dict, Iterator, Optional, Tuple
import logging

from alerthub.config.firebase import get_db
from alerthub.core.exceptions import RecipientLookupError
from alerthub.models.report import FraudReport
from alerthub.models.user import UserProfile
from alerthub.utils.firestore_helpers import where_filter
from alerthub.utils.geo import haversine_km

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"


class ProximityMatcher:

    def __init__(self, db: Optional[Any] = None):
        self.db = db or get_db()

    def find_candidates(
        self,
        report: FraudReport,
        exclude_user_id: Optional[str] = None,
    ) -> Iterator[Tuple[UserProfile, float]]:
        """
        Lazily yield (user, distance_km) for every qualifying user.

        Single pass: the underlying query is streamed once per call.

        Raises:
            RecipientLookupError: the users query failed
        """
        exclude_user_id = exclude_user_id or report.reported_by
        query = where_filter(self.db.collection(USERS_COLLECTION), "is_active", "==", True)
        query = where_filter(query, "preferences.notifications.push", "==", True)

        try:
            for doc in query.stream():
                data = doc.to_dict() or {}
                data.setdefault("id", doc.id)
                match = self._qualify(data, report, exclude_user_id)
                if match is not None:
                    yield match
        except RecipientLookupError:
            raise
        except Exception as e:
            raise RecipientLookupError(f"Proximity lookup failed for report {report.id}: {e}") from e

    def _qualify(
        self,
        data: Dict,
        report: FraudReport,
        exclude_user_id: Optional[str],
    ) -> Optional[Tuple[UserProfile, float]]:
        if data["id"] == exclude_user_id:
            return None

        try:
            user = UserProfile.model_validate(data)
        except Exception as e:
            logger.warning(f"Skipping malformed user record {data['id']}: {e}")
            return None

        if user.location is None:
            return None

        fraud_types = user.preferences.fraud_types
        if fraud_types and report.fraud_type not in fraud_types:
            return None

        distance = haversine_km(user.location.lat, user.location.lng, report.location.lat, report.location.lng)
        if distance > user.preferences.alert_radius_km:
            return None

        logger.debug(f"Proximity candidate {user.id} at {distance:.3f} km from report {report.id}")
        return user, distance
