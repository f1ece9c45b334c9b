"""Tests for channel eligibility, delivery state and engagement tracking."""

import asyncio
from datetime import timedelta

import pytest

from alerthub.core.exceptions import AlertNotFoundError
from alerthub.models.alert import Alert
from alerthub.services.alert_dispatcher import AlertDispatcher
from alerthub.services.alert_factory import AlertFactory
from alerthub.services.channel_router import ChannelRouter

from conftest import FakeSender

ALL_CHANNELS = {"push": True, "email": True, "sms": True}


def _stored_alert(db, alert_id) -> Alert:
    return Alert.model_validate(db.collection("alerts").document(alert_id).get().to_dict())


@pytest.fixture
def recipient(make_user):
    return make_user(
        "u1",
        phone="+15550001111",
        preferences={"notifications": ALL_CHANNELS},
    )


@pytest.fixture
def build(db, make_report):
    def _build(recipient, priority="medium", alert_type="proximity"):
        report = make_report(priority=priority)
        alert, _ = AlertFactory(db).build_alert(recipient, report, alert_type, {"distance_km": 1.0})
        return alert

    return _build


# ── eligibility ──────────────────────────────────────────────────────


class TestEligibleChannels:

    def test_all_enabled_channels_with_destinations(self, db, senders, recipient, build):
        router = ChannelRouter(senders, db)
        assert router.eligible_channels(build(recipient), recipient) == {"push", "email", "sms"}

    def test_sms_never_for_low_severity(self, db, senders, recipient, build):
        router = ChannelRouter(senders, db)
        alert = build(recipient, priority="low")
        assert alert.severity == "low"
        assert router.eligible_channels(alert, recipient) == {"push", "email"}

    def test_respects_preferences(self, db, senders, make_user, build):
        user = make_user("u2", phone="+15550002222")  # defaults: push + email, no sms
        router = ChannelRouter(senders, db)
        assert router.eligible_channels(build(user, priority="critical"), user) == {"push", "email"}

    def test_needs_a_destination(self, db, senders, make_user, build):
        user = make_user("u3", phone=None, email=None, device={}, preferences={"notifications": ALL_CHANNELS})
        router = ChannelRouter(senders, db)
        assert router.eligible_channels(build(user), user) == set()

    def test_sent_channels_not_eligible(self, db, senders, recipient, build):
        alert = build(recipient)
        alert.channels.push.sent = True
        router = ChannelRouter(senders, db)
        assert router.eligible_channels(alert, recipient) == {"email", "sms"}

    def test_expired_or_inactive_alert_has_no_channels(self, db, senders, recipient, build):
        router = ChannelRouter(senders, db)
        expired = build(recipient)
        expired.expires_at = expired.created_at - timedelta(seconds=1)
        inactive = build(recipient)
        inactive.is_active = False

        assert router.eligible_channels(expired, recipient) == set()
        assert router.eligible_channels(inactive, recipient) == set()


# ── send ─────────────────────────────────────────────────────────────


class TestSend:

    def test_success_marks_each_channel_sent(self, db, senders, recipient, build):
        alert = build(recipient, priority="high")
        router = ChannelRouter(senders, db)

        outcome = asyncio.run(router.send(alert, recipient))

        assert outcome == {"push": True, "email": True, "sms": True}
        stored = _stored_alert(db, alert.id)
        for channel in ("push", "email", "sms"):
            state = getattr(stored.channels, channel)
            assert state.sent and state.sent_at is not None
        assert senders["push"].calls[0]["destination"] == "token-u1"
        assert senders["sms"].calls[0]["destination"] == "+15550001111"
        assert senders["sms"].calls[0]["body"].startswith("Scam Alert Hub: ")
        assert "html" in senders["email"].calls[0]["metadata"]

    def test_resend_is_a_no_op(self, db, senders, recipient, build):
        alert = build(recipient)
        router = ChannelRouter(senders, db)

        asyncio.run(router.send(alert, recipient))
        second = asyncio.run(router.send(_stored_alert(db, alert.id), recipient))

        assert second == {}
        assert len(senders["push"].calls) == 1

    def test_failure_leaves_channel_unsent_and_retryable(self, db, senders, recipient, build):
        senders["email"].result = False
        alert = build(recipient)
        router = ChannelRouter(senders, db)

        outcome = asyncio.run(router.send(alert, recipient))

        assert outcome == {"push": True, "email": False, "sms": True}
        stored = _stored_alert(db, alert.id)
        assert not stored.channels.email.sent
        assert stored.channels.push.sent

        senders["email"].result = True
        retry = asyncio.run(router.send(stored, recipient))
        assert retry == {"email": True}
        assert _stored_alert(db, alert.id).channels.email.sent

    def test_timeout_is_a_failure(self, db, recipient, build):
        slow = {"push": FakeSender("push", delay=0.5), "email": FakeSender("email")}
        recipient.preferences.notifications.sms = False
        alert = build(recipient)
        router = ChannelRouter(slow, db, send_timeout=0.05)

        outcome = asyncio.run(router.send(alert, recipient))

        assert outcome == {"push": False, "email": True}
        assert not _stored_alert(db, alert.id).channels.push.sent

    def test_raising_sender_is_isolated(self, db, senders, recipient, build):
        senders["sms"].error = RuntimeError("bug in sender")
        alert = build(recipient)
        router = ChannelRouter(senders, db)

        outcome = asyncio.run(router.send(alert, recipient))

        assert outcome == {"push": True, "email": True, "sms": False}

    def test_missing_sender_is_a_failure(self, db, recipient, build):
        router = ChannelRouter({"push": FakeSender("push")}, db)
        outcome = asyncio.run(router.send(build(recipient), recipient))
        assert outcome == {"push": True, "email": False, "sms": False}

    def test_stale_copy_does_not_resend(self, db, senders, recipient, build):
        alert = build(recipient)
        stale = alert.model_copy(deep=True)
        router = ChannelRouter(senders, db)

        asyncio.run(router.send(alert, recipient))
        second = asyncio.run(router.send(stale, recipient))

        assert second == {}
        assert len(senders["email"].calls) == 1

    def test_overlapping_retry_sends_once(self, db, make_user, build):
        user = make_user("u5", preferences={"notifications": {"push": False, "email": True, "sms": False}})
        email = FakeSender("email", delay=0.2)
        router = ChannelRouter({"email": email}, db)
        dispatcher = AlertDispatcher(router, db=db)
        alert = build(user)

        async def run():
            return await asyncio.gather(router.send(alert, user), dispatcher.retry_alert(alert.id))

        outcomes = asyncio.run(run())

        assert sorted(outcomes, key=len) == [{}, {"email": True}]
        assert len(email.calls) == 1
        assert _stored_alert(db, alert.id).channels.email.sent


# ── engagement ───────────────────────────────────────────────────────


class TestEngagement:

    def test_not_recorded_before_send(self, db, senders, recipient, build):
        alert = build(recipient)
        router = ChannelRouter(senders, db)

        assert router.record_engagement(alert.id, "push") is False
        assert not _stored_alert(db, alert.id).channels.push.clicked

    def test_recorded_after_send_and_stays_set(self, db, senders, recipient, build):
        alert = build(recipient)
        router = ChannelRouter(senders, db)
        asyncio.run(router.send(alert, recipient))

        assert router.record_engagement(alert.id, "email") is True
        assert router.record_engagement(alert.id, "email") is True
        stored = _stored_alert(db, alert.id)
        assert stored.channels.email.opened
        assert stored.channels.email.opened_at is not None

    def test_unknown_alert(self, db, senders):
        with pytest.raises(AlertNotFoundError):
            ChannelRouter(senders, db).record_engagement("missing", "push")

    def test_unknown_channel(self, db, senders, recipient, build):
        alert = build(recipient)
        with pytest.raises(ValueError):
            ChannelRouter(senders, db).record_engagement(alert.id, "fax")
