"""Tests for user reputation: trust score formula, tiers and counters."""

import pytest

from alerthub.core.exceptions import UserNotFoundError
from alerthub.services.reputation_tracker import (
    ReputationTracker,
    compute_user_trust_score,
    tier_for_score,
)


# ── formula ──────────────────────────────────────────────────────────


class TestUserTrustScore:

    def test_new_user_starts_at_50(self):
        assert compute_user_trust_score(0, 0) == 50

    def test_report_bonus_caps_at_30(self):
        assert compute_user_trust_score(15, 0) == 80
        assert compute_user_trust_score(500, 0) == 80

    def test_verification_bonus_caps_at_40(self):
        assert compute_user_trust_score(0, 14) == 90
        assert compute_user_trust_score(0, 1000) == 90

    def test_saturates_at_100(self):
        assert compute_user_trust_score(100, 100) == 100

    def test_mixed_activity(self):
        assert compute_user_trust_score(5, 3) == 69

    def test_monotonic_in_both_counters(self):
        previous = compute_user_trust_score(0, 0)
        for n in range(1, 40):
            current = compute_user_trust_score(n, n)
            assert current >= previous
            previous = current


class TestTiers:

    @pytest.mark.parametrize("score, tier", [
        (50, "new"),
        (59, "new"),
        (60, "trusted"),
        (74, "trusted"),
        (75, "verified"),
        (89, "verified"),
        (90, "expert"),
        (100, "expert"),
    ])
    def test_thresholds(self, score, tier):
        assert tier_for_score(score).value == tier


# ── ReputationTracker ────────────────────────────────────────────────


class TestReputationTracker:

    def test_record_report_updates_counter_and_score(self, db, make_user):
        make_user("u1")
        tracker = ReputationTracker(db)

        result = tracker.record_report("u1")

        assert result == {"trust_score": 52, "reputation_tier": "new"}
        stored = db.collection("users").document("u1").get().to_dict()
        assert stored["report_count"] == 1
        assert stored["trust_score"] == 52

    def test_record_verification_reaches_trusted(self, db, make_user):
        make_user("u1")
        tracker = ReputationTracker(db)

        for _ in range(4):
            result = tracker.record_verification("u1")

        assert result == {"trust_score": 62, "reputation_tier": "trusted"}

    def test_recompute_fixes_a_patched_score(self, db, make_user):
        make_user("u1", report_count=15, verification_count=14, trust_score=10)
        result = ReputationTracker(db).recompute_trust_score("u1")
        assert result == {"trust_score": 100, "reputation_tier": "expert"}

    def test_unknown_user_raises(self, db):
        with pytest.raises(UserNotFoundError):
            ReputationTracker(db).record_report("ghost")

    def test_get_trust_scores_omits_unknown_users(self, db, make_user):
        make_user("a", trust_score=80)
        make_user("b", trust_score=40)
        scores = ReputationTracker(db).get_trust_scores(["a", "b", "ghost", "a"])
        assert scores == {"a": 80, "b": 40}
