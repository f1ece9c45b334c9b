"""
Trust Scorer - crowd verification score for a fraud report.

SCORING RULES:
1. No verifications → 30 (submission itself carries some signal)
2. Otherwise each vote is weighted by the voter's trust score / 100:
   - confirm weight counts toward the numerator
   - confirm, deny and uncertain weights all count toward the total
   trust_score = round(100 * weighted_confirm / total_weight)
3. If no voter weight can be resolved (total_weight == 0), fall back to
   round(100 * confirm_votes / total_votes)
4. Status: >= 80 verified, <= 20 disputed, else pending

Weighting by voter trust blunts vote-stuffing from new / sybil accounts.
The score is a pure function of the current entries and the voters'
current trust scores, so it can always be recomputed.

CONCURRENCY:
Votes on the same report are serialized through a per-report lock. Each
write is also a compare-and-swap on the report version: if another writer
(another process, or a path outside this scorer) bumped it since the read,
the vote is replayed on a fresh read. A voter never has more than one entry.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Optional, Tuple
import logging
import math

from alerthub.config.firebase import get_db
from alerthub.core.exceptions import ReportNotFoundError, ReportUpdateConflictError
from alerthub.models.report import FraudReport, Verification, VerificationEntry, VerificationStatus, Vote
from alerthub.services.reputation_tracker import ReputationTracker
from alerthub.utils.locks import KeyedLock

logger = logging.getLogger(__name__)

REPORTS_COLLECTION = "fraud_reports"

UNVERIFIED_SCORE = 30
VERIFIED_THRESHOLD = 80
DISPUTED_THRESHOLD = 20
VERSION_CONFLICT_ATTEMPTS = 3


@dataclass
class VoteOutcome:
    report_id: str
    trust_score: int
    verification_count: int
    status: str
    is_new_vote: bool


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def status_for_score(trust_score: int) -> VerificationStatus:
    if trust_score >= VERIFIED_THRESHOLD:
        return VerificationStatus.VERIFIED
    if trust_score <= DISPUTED_THRESHOLD:
        return VerificationStatus.DISPUTED
    return VerificationStatus.PENDING


def compute_trust_score(
    entries: Iterable[VerificationEntry],
    verification_count: int,
    voter_scores: Dict[str, int],
) -> Tuple[int, VerificationStatus]:
    """
    Score a report from its verification entries.

    Args:
        entries: Current verification entries (one per voter)
        verification_count: Number of distinct voters
        voter_scores: Voter id → current trust score (missing = unknown)

    Returns:
        (trust_score in [0, 100], verification status)
    """
    if verification_count == 0:
        return UNVERIFIED_SCORE, status_for_score(UNVERIFIED_SCORE)

    weighted_confirm = 0.0
    total_weight = 0.0
    confirm_votes = 0

    for entry in entries:
        if entry.vote == Vote.CONFIRM.value:
            confirm_votes += 1

        voter_score = voter_scores.get(entry.voter_id)
        if voter_score is None:
            continue
        weight = voter_score / 100
        total_weight += weight
        if entry.vote == Vote.CONFIRM.value:
            weighted_confirm += weight

    if total_weight > 0:
        trust_score = round_half_up(100 * weighted_confirm / total_weight)
    else:
        trust_score = round_half_up(100 * confirm_votes / verification_count)

    trust_score = max(0, min(trust_score, 100))
    return trust_score, status_for_score(trust_score)


class TrustScorer:
    """Applies votes to reports and keeps verification.trust_score current."""

    def __init__(self, db: Optional[Any] = None, reputation: Optional[ReputationTracker] = None):
        self.db = db or get_db()
        self.reputation = reputation or ReputationTracker(self.db)
        self._locks = KeyedLock()

    def initial_verification(self) -> Verification:
        """Verification state of a freshly submitted report."""
        trust_score, status = compute_trust_score([], 0, {})
        return Verification(trust_score=trust_score, verification_count=0, entries=[], status=status)

    def apply_vote(self, report_id: str, voter_id: str, vote: str, comment: Optional[str] = None) -> VoteOutcome:
        """
        Record a vote and recompute the report's trust score.

        A repeat vote from the same voter overwrites the existing entry in
        place (vote, comment, timestamp) and does not change
        verification_count; a first vote appends and increments it.

        Raises:
            ReportNotFoundError: report does not exist
            ReportUpdateConflictError: the report kept changing during the write
        """
        vote_value = Vote(vote).value

        def record(verification: Verification, now: datetime) -> bool:
            existing = next((e for e in verification.entries if e.voter_id == voter_id), None)
            if existing is not None:
                existing.vote = vote_value
                existing.comment = comment
                existing.voted_at = now
                return False
            verification.entries.append(
                VerificationEntry(voter_id=voter_id, vote=vote_value, comment=comment, voted_at=now)
            )
            verification.verification_count += 1
            return True

        verification, is_new_vote = self._update_verification(report_id, record)

        logger.info(
            f"Vote {vote_value} by {voter_id} on report {report_id}: "
            f"trust_score={verification.trust_score} ({verification.status}), "
            f"{'new vote' if is_new_vote else 'vote updated'}"
        )
        return VoteOutcome(
            report_id=report_id,
            trust_score=verification.trust_score,
            verification_count=verification.verification_count,
            status=verification.status,
            is_new_vote=is_new_vote,
        )

    def recompute(self, report_id: str) -> VoteOutcome:
        """Re-score a report against its voters' current trust scores."""
        verification, _ = self._update_verification(report_id, lambda verification, now: False)
        return VoteOutcome(
            report_id=report_id,
            trust_score=verification.trust_score,
            verification_count=verification.verification_count,
            status=verification.status,
            is_new_vote=False,
        )

    def _update_verification(
        self,
        report_id: str,
        change: Callable[[Verification, datetime], bool],
    ) -> Tuple[Verification, bool]:
        """
        Read-modify-write of a report's verification, guarded by its version.

        The write only lands if the stored version is still the one read;
        otherwise another writer got there first and the change is replayed
        on a fresh read, up to VERSION_CONFLICT_ATTEMPTS times.
        """
        for attempt in range(1, VERSION_CONFLICT_ATTEMPTS + 1):
            with self._locks.hold(report_id):
                ref = self.db.collection(REPORTS_COLLECTION).document(report_id)
                snapshot = ref.get()
                if not snapshot.exists:
                    raise ReportNotFoundError(report_id)
                report = FraudReport.model_validate(snapshot.to_dict())
                verification = report.verification
                now = datetime.now(timezone.utc)

                changed = change(verification, now)
                self._rescore(verification)

                current = ref.get()
                if not current.exists:
                    raise ReportNotFoundError(report_id)
                if (current.to_dict() or {}).get("version", 0) == report.version:
                    ref.update({
                        "verification": verification.model_dump(),
                        "version": report.version + 1,
                        "updated_at": now,
                    })
                    return verification, changed

            logger.warning(f"Report {report_id} changed during verification write (attempt {attempt}), retrying")

        raise ReportUpdateConflictError(report_id)

    def _rescore(self, verification: Verification) -> None:
        voter_scores = self.reputation.get_trust_scores(e.voter_id for e in verification.entries)
        trust_score, status = compute_trust_score(
            verification.entries, verification.verification_count, voter_scores
        )
        verification.trust_score = trust_score
        verification.status = status.value
