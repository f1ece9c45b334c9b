"""
Reputation Tracker - user trust score and reputation tier from activity.

RULES (deterministic, recomputed from stored counters, never patched):
    trust_score = min(50 + min(report_count * 2, 30) + min(verification_count * 3, 40), 100)

    >= 90 → expert
    >= 75 → verified
    >= 60 → trusted
    else  → new

The score is monotonic non-decreasing in both counters and saturates at 100.
"""

from typing import Any, Dict, Iterable, Optional
import logging

from alerthub.config.firebase import get_db
from alerthub.core.exceptions import UserNotFoundError
from alerthub.models.user import ReputationTier
from alerthub.utils.locks import KeyedLock

logger = logging.getLogger(__name__)

USERS_COLLECTION = "users"

BASE_SCORE = 50
REPORT_POINTS = 2
MAX_REPORT_BONUS = 30
VERIFICATION_POINTS = 3
MAX_VERIFICATION_BONUS = 40

TIER_THRESHOLDS = (
    (90, ReputationTier.EXPERT),
    (75, ReputationTier.VERIFIED),
    (60, ReputationTier.TRUSTED),
)


def compute_user_trust_score(report_count: int, verification_count: int) -> int:
    report_bonus = min(report_count * REPORT_POINTS, MAX_REPORT_BONUS)
    verification_bonus = min(verification_count * VERIFICATION_POINTS, MAX_VERIFICATION_BONUS)
    return min(BASE_SCORE + report_bonus + verification_bonus, 100)


def tier_for_score(trust_score: int) -> ReputationTier:
    for threshold, tier in TIER_THRESHOLDS:
        if trust_score >= threshold:
            return tier
    return ReputationTier.NEW


class ReputationTracker:
    """Maintains users' trust scores and supplies voter weights to the TrustScorer."""

    def __init__(self, db: Optional[Any] = None):
        self.db = db or get_db()
        self._locks = KeyedLock()

    def record_report(self, user_id: str) -> Dict:
        return self._increment(user_id, "report_count")

    def record_verification(self, user_id: str) -> Dict:
        return self._increment(user_id, "verification_count")

    def recompute_trust_score(self, user_id: str) -> Dict:
        """
        Recompute a user's trust score and tier from the stored counters.

        Returns:
            {"trust_score": int, "reputation_tier": str}
        """
        with self._locks.hold(user_id):
            ref = self.db.collection(USERS_COLLECTION).document(user_id)
            snapshot = ref.get()
            if not snapshot.exists:
                raise UserNotFoundError(user_id)
            return self._store_score(ref, snapshot.to_dict())

    def get_trust_scores(self, user_ids: Iterable[str]) -> Dict[str, int]:
        """
        Current trust score per user id. Unknown or unreadable users are
        omitted (they carry zero weight as voters).
        """
        scores: Dict[str, int] = {}
        for user_id in set(user_ids):
            try:
                snapshot = self.db.collection(USERS_COLLECTION).document(user_id).get()
            except Exception as e:
                logger.warning(f"Could not read trust score for voter {user_id}: {e}")
                continue
            if not snapshot.exists:
                continue
            score = (snapshot.to_dict() or {}).get("trust_score")
            if isinstance(score, (int, float)):
                scores[user_id] = int(score)
        return scores

    def _increment(self, user_id: str, counter: str) -> Dict:
        with self._locks.hold(user_id):
            ref = self.db.collection(USERS_COLLECTION).document(user_id)
            snapshot = ref.get()
            if not snapshot.exists:
                raise UserNotFoundError(user_id)
            data = snapshot.to_dict()
            data[counter] = int(data.get(counter) or 0) + 1
            ref.update({counter: data[counter]})
            return self._store_score(ref, data)

    def _store_score(self, ref, data: Dict) -> Dict:
        trust_score = compute_user_trust_score(
            int(data.get("report_count") or 0),
            int(data.get("verification_count") or 0),
        )
        tier = tier_for_score(trust_score).value
        ref.update({"trust_score": trust_score, "reputation_tier": tier})
        logger.info(f"User {ref.id} reputation: trust_score={trust_score}, tier={tier}")
        return {"trust_score": trust_score, "reputation_tier": tier}
