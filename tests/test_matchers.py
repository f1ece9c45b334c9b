"""Tests for recipient matching: proximity and identifier (phone / email)."""

import pytest

from alerthub.core.exceptions import RecipientLookupError
from alerthub.services.pattern_matcher import PatternMatcher
from alerthub.services.proximity_matcher import ProximityMatcher
from alerthub.utils.geo import haversine_km, location_room


class _BrokenQuery:
    def where(self, *args):
        return self

    def limit(self, n):
        return self

    def stream(self):
        raise ConnectionError("firestore unavailable")


class _BrokenDb:
    def collection(self, name):
        return _BrokenQuery()


# ── haversine ────────────────────────────────────────────────────────


class TestHaversine:

    def test_same_point_is_zero(self):
        assert haversine_km(37.7749, -122.4194, 37.7749, -122.4194) == 0

    def test_scenario_distance(self):
        distance = haversine_km(37.7750, -122.4195, 37.7749, -122.4194)
        assert distance == pytest.approx(0.014, abs=0.001)

    def test_one_degree_latitude(self):
        assert haversine_km(0, 0, 1, 0) == pytest.approx(111.19, abs=0.01)

    def test_location_room_floors_coordinates(self):
        assert location_room(37.7750, -122.4195) == "location_37_-123"


# ── ProximityMatcher ─────────────────────────────────────────────────


class TestProximityMatcher:

    def test_scenario_nearby_user_included(self, db, make_user, make_report):
        make_user("near", location={"lat": 37.7749, "lng": -122.4194})
        report = make_report()

        matches = list(ProximityMatcher(db).find_candidates(report))

        assert len(matches) == 1
        user, distance = matches[0]
        assert user.id == "near"
        assert distance == pytest.approx(0.014, abs=0.001)

    def test_boundary_is_inclusive(self, db, make_user, make_report):
        report = make_report()
        user_lat, user_lng = 37.80, -122.4195
        exact = haversine_km(user_lat, user_lng, report.location.lat, report.location.lng)
        make_user("edge", location={"lat": user_lat, "lng": user_lng}, preferences={"alert_radius_km": exact})
        make_user("beyond", location={"lat": user_lat, "lng": user_lng}, preferences={"alert_radius_km": exact - 0.001})

        ids = {user.id for user, _ in ProximityMatcher(db).find_candidates(report)}

        assert ids == {"edge"}

    def test_uses_recipient_radius(self, db, make_user, make_report):
        # ~5.5 km north of the report
        make_user("wide", location={"lat": 37.8250, "lng": -122.4195}, preferences={"alert_radius_km": 10})
        make_user("narrow", location={"lat": 37.8250, "lng": -122.4195}, preferences={"alert_radius_km": 2})
        report = make_report()

        ids = {user.id for user, _ in ProximityMatcher(db).find_candidates(report)}

        assert ids == {"wide"}

    def test_reporter_never_matched(self, db, make_user, make_report):
        make_user("reporter")
        make_user("other")
        report = make_report(reported_by="reporter")

        ids = {user.id for user, _ in ProximityMatcher(db).find_candidates(report)}

        assert ids == {"other"}

    def test_category_subscription(self, db, make_user, make_report):
        make_user("all")
        make_user("otp", preferences={"fraud_types": ["otp_fraud", "phishing"]})
        make_user("jobs", preferences={"fraud_types": ["fake_job"]})
        report = make_report(fraud_type="otp_fraud")

        ids = {user.id for user, _ in ProximityMatcher(db).find_candidates(report)}

        assert ids == {"all", "otp"}

    def test_skips_inactive_push_disabled_and_unlocated(self, db, make_user, make_report):
        make_user("inactive", is_active=False)
        make_user("no_push", preferences={"notifications": {"push": False, "email": True, "sms": False}})
        make_user("nowhere", location=None)
        make_user("ok")
        report = make_report()

        ids = {user.id for user, _ in ProximityMatcher(db).find_candidates(report)}

        assert ids == {"ok"}

    def test_lookup_failure_raises_recipient_lookup_error(self, make_report):
        report = make_report()
        with pytest.raises(RecipientLookupError):
            list(ProximityMatcher(_BrokenDb()).find_candidates(report))


# ── PatternMatcher ───────────────────────────────────────────────────


class TestPatternMatcher:

    def test_phone_match_regardless_of_distance(self, db, make_user, make_report):
        make_user("victim", phone="+15551234567", location={"lat": -33.86, "lng": 151.2})
        report = make_report(evidence={"phone_number": "+15551234567"})

        matches = [(u.id, field) for u, field in PatternMatcher(db).find_identifier_matches(report)]

        assert matches == [("victim", "phone")]

    def test_phone_formatting_is_ignored(self, db, make_user, make_report):
        make_user("victim", phone="+15551234567")
        report = make_report(evidence={"phone_number": "+1 555.123.4567"})

        matches = list(PatternMatcher(db).find_identifier_matches(report))

        assert [field for _, field in matches] == ["phone"]

    def test_email_compared_case_insensitively(self, db, make_user, make_report):
        make_user("victim", email="victim@example.com")
        report = make_report(evidence={"email": "Victim@Example.COM"})

        matches = [(u.id, field) for u, field in PatternMatcher(db).find_identifier_matches(report)]

        assert matches == [("victim", "email")]

    def test_both_identifiers_yield_twice(self, db, make_user, make_report):
        make_user("victim", phone="+15551234567", email="victim@example.com")
        report = make_report(evidence={"phone_number": "+15551234567", "email": "victim@example.com"})

        fields = sorted(field for _, field in PatternMatcher(db).find_identifier_matches(report))

        assert fields == ["email", "phone"]

    def test_inactive_users_not_matched(self, db, make_user, make_report):
        make_user("gone", phone="+15551234567", is_active=False)
        report = make_report(evidence={"phone_number": "+15551234567"})

        assert list(PatternMatcher(db).find_identifier_matches(report)) == []

    def test_no_evidence_no_lookup(self, make_report):
        report = make_report()
        # A broken store is never touched when there is nothing to look up
        assert list(PatternMatcher(_BrokenDb()).find_identifier_matches(report)) == []

    def test_lookup_failure_raises_recipient_lookup_error(self, make_report):
        report = make_report(evidence={"email": "x@example.com"})
        with pytest.raises(RecipientLookupError):
            list(PatternMatcher(_BrokenDb()).find_identifier_matches(report))
