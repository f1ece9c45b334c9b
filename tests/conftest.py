"""Shared pytest fixtures for the Scam Alert Hub test suite.

Every test gets a fresh in-memory Firestore and fake channel senders; no
network or Firebase credentials are needed.
"""

import os
import sys
import threading
import time
from pathlib import Path

import pytest

PROJECT_ROOT = str(Path(__file__).resolve().parent.parent)
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

os.environ.setdefault("USE_MOCK_DB", "true")
os.environ.setdefault("PUSH_ENABLED", "false")

from alerthub.config.firebase import set_db
from alerthub.config.mock_firestore import MockFirestore
from alerthub.core.context import AppContext, set_context
from alerthub.models.report import FraudReport
from alerthub.models.user import UserProfile
from alerthub.services.channels.base import ChannelSender
from alerthub.services.classifier import ClassifierRegistry, KeywordClassifier
from alerthub.services.geocoding import GeocodingResolver


class FakeSender(ChannelSender):
    """Records every send; outcome, delay and errors are configurable per test."""

    def __init__(self, channel: str, result: bool = True, delay: float = 0.0, error: Exception = None):
        self.channel = channel
        self.result = result
        self.delay = delay
        self.error = error
        self.calls = []
        self.closed = False
        self._lock = threading.Lock()

    def is_configured(self) -> bool:
        return True

    def send(self, destination, title, body, metadata=None) -> bool:
        with self._lock:
            self.calls.append({"destination": destination, "title": title, "body": body, "metadata": metadata})
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def db():
    store = MockFirestore()
    set_db(store)
    yield store
    set_db(None)


@pytest.fixture
def senders():
    return {
        "push": FakeSender("push"),
        "email": FakeSender("email"),
        "sms": FakeSender("sms"),
    }


@pytest.fixture
def context(db, senders):
    ctx = AppContext(
        db=db,
        senders=senders,
        classifier=ClassifierRegistry([KeywordClassifier()]),
        geocoder=GeocodingResolver(providers=[]),
        send_timeout=0.5,
    ).initialize()
    set_context(ctx)
    yield ctx
    ctx.shutdown()
    set_context(None)


@pytest.fixture
def make_user(db):
    """Store a user; keyword overrides are merged into the profile."""

    def _make(user_id: str, **overrides) -> UserProfile:
        data = {
            "id": user_id,
            "name": f"User {user_id}",
            "email": f"{user_id}@example.com",
            "location": {"lat": 37.7749, "lng": -122.4194},
            "device": {"fcm_token": f"token-{user_id}"},
        }
        data.update(overrides)
        user = UserProfile.model_validate(data)
        db.collection("users").document(user_id).set(user.model_dump())
        return user

    return _make


@pytest.fixture
def make_report(db):
    """Store a report; keyword overrides are merged into the report."""

    def _make(report_id: str = "r1", **overrides) -> FraudReport:
        data = {
            "id": report_id,
            "reported_by": "reporter",
            "fraud_type": "otp_fraud",
            "title": "Caller asked for OTP",
            "description": "Caller claimed to be from the bank and asked for the OTP.",
            "location": {"lat": 37.7750, "lng": -122.4195},
            "priority": "medium",
            "ai_analysis": {"risk_score": 30, "provider": "test"},
        }
        data.update(overrides)
        report = FraudReport.model_validate(data)
        db.collection("fraud_reports").document(report_id).set(report.model_dump())
        return report

    return _make
