"""HTTP API tests against the in-memory store and fake channel senders.

The client is used without a context manager so the startup hook does not
replace the test context; background alert dispatch still completes before
each response is returned.
"""

import time

import pytest
from fastapi.testclient import TestClient

from alerthub.main import app
from alerthub.services.live_feed import BROADCAST_ROOM, user_room

REPORT_BODY = {
    "fraud_type": "otp_fraud",
    "sub_category": "call",
    "title": "Caller asked for OTP",
    "description": "Caller claimed to be from the bank and asked for the OTP code.",
    "location": {"lat": 37.7750, "lng": -122.4195},
    "evidence": {"phone_number": "+15551234567"},
}


def _as(user_id):
    return {"X-User-Id": user_id}


@pytest.fixture
def client(context):
    return TestClient(app)


@pytest.fixture
def submitted(client, make_user):
    """A report submitted by 'reporter' with one nearby user 'neighbour'."""
    make_user("reporter")
    make_user("neighbour")
    response = client.post("/reports", json=REPORT_BODY, headers=_as("reporter"))
    assert response.status_code == 201
    return response.json()


# ── health ───────────────────────────────────────────────────────────


class TestHealth:

    def test_root(self, client):
        assert client.get("/").json()["status"] == "running"

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"

    def test_db_health(self, client):
        assert client.get("/health/db").json()["connected"] is True

    def test_channel_health(self, client):
        channels = client.get("/health/channels").json()["channels"]
        assert channels == {"push": True, "email": True, "sms": True}


# ── users ────────────────────────────────────────────────────────────


class TestUsers:

    def test_register_and_fetch(self, client):
        response = client.post("/users", json={
            "name": "Ada",
            "email": "Ada@Example.com",
            "phone": "+1 555 123 4567",
            "location": {"lat": 37.77, "lng": -122.42},
        })

        assert response.status_code == 201
        user = response.json()
        assert user["email"] == "ada@example.com"
        assert user["phone"] == "+15551234567"
        assert user["trust_score"] == 50

        me = client.get("/users/me", headers=_as(user["id"]))
        assert me.json()["id"] == user["id"]

        public = client.get(f"/users/{user['id']}").json()
        assert "email" not in public
        assert public["reputation_tier"] == "new"

    def test_duplicate_email_rejected(self, client):
        body = {"name": "Ada", "email": "ada@example.com"}
        assert client.post("/users", json=body).status_code == 201
        assert client.post("/users", json=body).status_code == 400

    def test_update_preferences(self, client, make_user):
        make_user("u1")

        response = client.put(
            "/users/me/preferences",
            json={"alert_radius_km": 25, "fraud_types": ["phishing"]},
            headers=_as("u1"),
        )

        preferences = response.json()["preferences"]
        assert preferences["alert_radius_km"] == 25
        assert preferences["fraud_types"] == ["phishing"]
        assert preferences["notifications"]["push"] is True

    def test_leaderboard_with_my_rank(self, client, make_user):
        make_user("top", trust_score=95)
        make_user("u1", trust_score=70)

        board = client.get("/users/leaderboard", headers=_as("u1")).json()
        anonymous = client.get("/users/leaderboard", params={"sort_by": "trust_score"}).json()

        assert [u["id"] for u in board["leaderboard"]] == ["top", "u1"]
        assert board["my_rank"] == 2
        assert anonymous["my_rank"] is None

    def test_leaderboard_bad_sort(self, client):
        assert client.get("/users/leaderboard", params={"sort_by": "email"}).status_code == 400

    def test_my_reports_and_verifications(self, client, submitted, make_user):
        make_user("voter")
        client.post(f"/reports/{submitted['id']}/verify", json={"vote": "confirm"}, headers=_as("voter"))

        mine = client.get("/users/me/reports", headers=_as("reporter")).json()
        votes = client.get("/users/me/verifications", headers=_as("voter")).json()

        assert [r["id"] for r in mine["reports"]] == [submitted["id"]]
        assert mine["reports"][0]["evidence"]["phone_number"] == "+15551234567"
        assert [v["report_id"] for v in votes["verifications"]] == [submitted["id"]]
        assert votes["verifications"][0]["vote"] == "confirm"

    def test_deactivate_account(self, client, make_user):
        make_user("u1")

        refused = client.request("DELETE", "/users/me", json={"confirm_delete": "no"}, headers=_as("u1"))
        accepted = client.request("DELETE", "/users/me", json={"confirm_delete": "DELETE"}, headers=_as("u1"))

        assert refused.status_code == 400
        assert accepted.status_code == 200
        assert client.get("/users/me", headers=_as("u1")).json()["is_active"] is False

    def test_deactivated_neighbour_is_not_alerted(self, client, make_user):
        make_user("reporter")
        make_user("neighbour")
        client.request("DELETE", "/users/me", json={"confirm_delete": "DELETE"}, headers=_as("neighbour"))

        client.post("/reports", json=REPORT_BODY, headers=_as("reporter"))

        assert client.get("/alerts", headers=_as("neighbour")).json()["alerts"] == []

    def test_unknown_user(self, client):
        assert client.get("/users/me", headers=_as("ghost")).status_code == 404
        assert client.get("/users/ghost").status_code == 404


# ── reports ──────────────────────────────────────────────────────────


class TestReports:

    def test_submit_requires_user_header(self, client):
        assert client.post("/reports", json=REPORT_BODY).status_code == 401

    def test_submit_by_unknown_user(self, client):
        assert client.post("/reports", json=REPORT_BODY, headers=_as("ghost")).status_code == 404

    def test_submit_validates_body(self, client, make_user):
        make_user("reporter")
        body = dict(REPORT_BODY, title="OTP")
        assert client.post("/reports", json=body, headers=_as("reporter")).status_code == 422

    def test_submit_returns_stored_report(self, submitted):
        assert submitted["reported_by"] == "reporter"
        assert submitted["priority"] == "medium"
        assert submitted["verification"]["trust_score"] == 30
        assert "entries" not in submitted["verification"]
        assert submitted["evidence"]["phone_number"] == "+15551234567"

    def test_evidence_only_shown_to_reporter(self, client, submitted):
        own = client.get(f"/reports/{submitted['id']}", headers=_as("reporter")).json()
        other = client.get(f"/reports/{submitted['id']}", headers=_as("neighbour")).json()

        assert own["evidence"]["phone_number"] == "+15551234567"
        assert "evidence" not in other

    def test_missing_report(self, client):
        assert client.get("/reports/missing").status_code == 404

    def test_verify(self, client, submitted, make_user):
        make_user("voter", trust_score=80)

        response = client.post(
            f"/reports/{submitted['id']}/verify", json={"vote": "confirm"}, headers=_as("voter")
        )

        assert response.json() == {
            "report_id": submitted["id"],
            "trust_score": 100,
            "verification_count": 1,
            "status": "verified",
        }

    def test_verify_rejects_unknown_vote(self, client, submitted):
        response = client.post(
            f"/reports/{submitted['id']}/verify", json={"vote": "maybe"}, headers=_as("neighbour")
        )
        assert response.status_code == 422

    def test_check_identifier(self, client, submitted):
        reported = client.post("/reports/check", json={"type": "phone", "value": "+1 (555) 123-4567"}).json()
        clean = client.post("/reports/check", json={"type": "phone", "value": "+15550000000"}).json()

        assert reported["is_reported"] is True
        assert reported["reports"][0]["id"] == submitted["id"]
        assert clean["is_reported"] is False
        assert clean["risk_level"] == "low"

    def test_list_reports(self, client, submitted):
        listing = client.get("/reports").json()
        nearby = client.get("/reports", params={"lat": 37.7749, "lng": -122.4194, "radius_km": 1}).json()
        far = client.get("/reports", params={"lat": 40.7128, "lng": -74.0060}).json()
        phishing = client.get("/reports", params={"fraud_type": "phishing"}).json()

        assert [r["id"] for r in listing["reports"]] == [submitted["id"]]
        assert listing["pagination"]["total"] == 1
        assert "evidence" not in listing["reports"][0]
        assert nearby["reports"][0]["distance_km"] < 1
        assert far["reports"] == []
        assert phishing["reports"] == []

    def test_list_reports_needs_both_coordinates(self, client):
        assert client.get("/reports", params={"lat": 37.77}).status_code == 400
        assert client.get("/reports", params={"fraud_type": "bogus"}).status_code == 422

    def test_map_data(self, client, submitted):
        inside = client.get("/reports/map-data", params={"bounds": "37,-123,38,-122"}).json()
        other_type = client.get(
            "/reports/map-data", params={"bounds": "37,-123,38,-122", "fraud_types": "phishing"}
        ).json()

        assert [r["id"] for r in inside["reports"]] == [submitted["id"]]
        assert other_type["count"] == 0

    def test_map_data_bad_bounds(self, client):
        assert client.get("/reports/map-data", params={"bounds": "37,-123"}).status_code == 400
        assert client.get("/reports/map-data", params={"bounds": "38,-123,37,-122"}).status_code == 400


# ── alerts ───────────────────────────────────────────────────────────


class TestAlerts:

    def test_submission_alerts_nearby_user(self, client, submitted, senders):
        listing = client.get("/alerts", headers=_as("neighbour")).json()

        assert listing["pagination"]["total"] == 1
        assert listing["unread_count"] == 1
        alert = listing["alerts"][0]
        assert alert["alert_type"] == "proximity"
        assert alert["source_report_id"] == submitted["id"]
        assert senders["push"].calls[0]["destination"] == "token-neighbour"

    def test_reporter_gets_no_alert(self, client, submitted):
        assert client.get("/alerts", headers=_as("reporter")).json()["alerts"] == []

    def test_listing_requires_user_header(self, client):
        assert client.get("/alerts").status_code == 401

    def test_filters(self, client, submitted):
        critical = client.get("/alerts", params={"severity": "critical"}, headers=_as("neighbour")).json()
        medium = client.get("/alerts", params={"severity": "medium"}, headers=_as("neighbour")).json()

        assert critical["alerts"] == []
        assert len(medium["alerts"]) == 1

    def test_read_stats_and_delete(self, client, submitted):
        alert_id = client.get("/alerts", headers=_as("neighbour")).json()["alerts"][0]["id"]

        read = client.put(f"/alerts/{alert_id}/read", headers=_as("neighbour")).json()
        assert read["is_read"] is True

        stats = client.get("/alerts/stats", headers=_as("neighbour")).json()
        assert stats == {"total": 1, "unread": 0, "by_severity": {"medium": 1}, "by_type": {"proximity": 1}}

        assert client.delete(f"/alerts/{alert_id}", headers=_as("neighbour")).status_code == 200
        assert client.get("/alerts", headers=_as("neighbour")).json()["alerts"] == []

    def test_mark_all_read(self, client, submitted):
        response = client.put("/alerts/read-all", headers=_as("neighbour")).json()

        assert response["updated"] == 1
        assert client.get("/alerts", headers=_as("neighbour")).json()["unread_count"] == 0

    def test_other_users_alert_is_not_found(self, client, submitted):
        alert_id = client.get("/alerts", headers=_as("neighbour")).json()["alerts"][0]["id"]
        assert client.get(f"/alerts/{alert_id}", headers=_as("reporter")).status_code == 404

    def test_engagement(self, client, submitted):
        alert_id = client.get("/alerts", headers=_as("neighbour")).json()["alerts"][0]["id"]

        clicked = client.post(f"/alerts/{alert_id}/engagement/push", headers=_as("neighbour")).json()
        never_sent = client.post(f"/alerts/{alert_id}/engagement/sms", headers=_as("neighbour")).json()

        assert clicked["recorded"] is True
        assert never_sent["recorded"] is False

    def test_retry_failed_channel(self, client, senders, make_user):
        senders["email"].result = False
        make_user("reporter")
        make_user("neighbour")
        client.post("/reports", json=REPORT_BODY, headers=_as("reporter"))
        alert_id = client.get("/alerts", headers=_as("neighbour")).json()["alerts"][0]["id"]

        senders["email"].result = True
        response = client.post(f"/alerts/{alert_id}/retry", headers=_as("neighbour")).json()

        assert response["channels"] == {"email": True}


# ── live updates ─────────────────────────────────────────────────────


class TestLiveUpdates:

    @staticmethod
    def _wait_for_subscriber(context, room):
        for _ in range(100):
            if context.live_feed.subscriber_count(room):
                return
            time.sleep(0.01)

    def test_user_room_events_reach_socket(self, client, context):
        with client.websocket_connect("/live/ws?lat=37.77&lng=-122.42", headers=_as("u1")) as ws:
            self._wait_for_subscriber(context, user_room("u1"))
            context.live_feed.publish(user_room("u1"), "new_alert", {"id": "a1"})

            message = ws.receive_json()

        assert message == {"event": "new_alert", "room": "user_u1", "data": {"id": "a1"}}

    def test_user_room_needs_matching_identity(self, client, context):
        with client.websocket_connect("/live/ws?user_id=u1"):
            self._wait_for_subscriber(context, BROADCAST_ROOM)

            assert context.live_feed.subscriber_count(BROADCAST_ROOM) == 1
            assert context.live_feed.subscriber_count(user_room("u1")) == 0
