"""
Pattern Matcher - users whose own phone / email appears as evidence in a report.

Uses equality lookups on the users collection (phone, email) instead of
scanning every user; the result is the same as checking each active user's
registered phone and email against the report evidence.
"""

from typing import Any, Iterator, Optional, Tuple
import logging

from alerthub.config.firebase import get_db
from alerthub.core.exceptions import RecipientLookupError
from alerthub.models.report import FraudReport
from alerthub.models.user import UserProfile
from alerthub.utils.firestore_helpers import where_filter
from alerthub.utils.identifiers import normalize_email, normalize_phone

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"

MATCH_PHONE = "phone"
MATCH_EMAIL = "email"


class PatternMatcher:

    def __init__(self, db: Optional[Any] = None):
        self.db = db or get_db()

    def find_identifier_matches(self, report: FraudReport) -> Iterator[Tuple[UserProfile, str]]:
        """
        Yield (user, matched_field) with matched_field in {"phone", "email"}.

        A user registered with both identifiers yields twice.

        Raises:
            RecipientLookupError: a users query failed
        """
        phone = normalize_phone(report.evidence.phone_number)
        email = normalize_email(report.evidence.email)

        if phone:
            yield from self._lookup("phone", phone, MATCH_PHONE, report.id)
        if email:
            yield from self._lookup("email", email, MATCH_EMAIL, report.id)

    def _lookup(self, field: str, value: str, matched_field: str, report_id: str) -> Iterator[Tuple[UserProfile, str]]:
        query = where_filter(self.db.collection(USERS_COLLECTION), field, "==", value)
        try:
            docs = list(query.stream())
        except Exception as e:
            raise RecipientLookupError(f"Identifier lookup on {field} failed for report {report_id}: {e}") from e

        for doc in docs:
            data = doc.to_dict() or {}
            data.setdefault("id", doc.id)
            try:
                user = UserProfile.model_validate(data)
            except Exception as e:
                logger.warning(f"Skipping malformed user record {doc.id}: {e}")
                continue
            if not user.is_active:
                continue
            logger.info(f"Report {report_id} evidence {matched_field} matches user {user.id}")
            yield user, matched_field
