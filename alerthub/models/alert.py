"""
Alert models.

An Alert is immutable once built except for:
- per-channel delivery state (unset → sent → opened/clicked/delivered, never reversed)
- is_read / is_active flags
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Dict
from enum import Enum

from alerthub.models.report import utcnow


class AlertType(str, Enum):
    PROXIMITY = "proximity"
    PHONE_MATCH = "phone_match"
    EMAIL_MATCH = "email_match"
    PATTERN_MATCH = "pattern_match"
    HIGH_RISK = "high_risk"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Channel(str, Enum):
    PUSH = "push"
    EMAIL = "email"
    SMS = "sms"


# Engagement flag tracked after a successful send, per channel
ENGAGEMENT_FIELDS = {
    Channel.PUSH.value: "clicked",
    Channel.EMAIL.value: "opened",
    Channel.SMS.value: "delivered",
}


class PushState(BaseModel):
    sent: bool = False
    sent_at: Optional[datetime] = None
    clicked: bool = False
    clicked_at: Optional[datetime] = None


class EmailState(BaseModel):
    sent: bool = False
    sent_at: Optional[datetime] = None
    opened: bool = False
    opened_at: Optional[datetime] = None


class SmsState(BaseModel):
    sent: bool = False
    sent_at: Optional[datetime] = None
    delivered: bool = False
    delivered_at: Optional[datetime] = None


class AlertChannels(BaseModel):
    push: PushState = Field(default_factory=PushState)
    email: EmailState = Field(default_factory=EmailState)
    sms: SmsState = Field(default_factory=SmsState)

    def is_sent(self, channel: str) -> bool:
        return getattr(self, channel).sent


class LocationMatch(BaseModel):
    distance_km: float
    lat: float
    lng: float


class MatchCriteria(BaseModel):
    location: Optional[LocationMatch] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    risk_score: Optional[int] = None


# Match criteria fields a recipient gets to see, per alert type
_PUBLIC_CRITERIA = {
    AlertType.PROXIMITY.value: {"location"},
    AlertType.PHONE_MATCH.value: {"phone_number"},
    AlertType.EMAIL_MATCH.value: {"email"},
    AlertType.PATTERN_MATCH.value: {"website", "keywords"},
    AlertType.HIGH_RISK.value: {"location", "risk_score"},
}


class Alert(BaseModel):
    """Stored alert (alerts collection)."""
    id: str
    recipient_id: str
    source_report_id: str
    alert_type: AlertType
    severity: Severity
    title: str
    message: str
    match_criteria: MatchCriteria = Field(default_factory=MatchCriteria)
    channels: AlertChannels = Field(default_factory=AlertChannels)
    is_read: bool = False
    read_at: Optional[datetime] = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime

    class Config:
        use_enum_values = True
        validate_default = True

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.expires_at

    def is_live(self, now: Optional[datetime] = None) -> bool:
        """Active and not yet expired; anything else is inert."""
        return self.is_active and not self.is_expired(now)

    def live_event(self) -> Dict:
        """Payload of the new_alert live update."""
        return {
            "id": self.id,
            "title": self.title,
            "message": self.message,
            "severity": self.severity,
            "alert_type": self.alert_type,
            "created_at": self.created_at,
        }

    def to_public(self) -> Dict:
        data = self.model_dump()
        visible = _PUBLIC_CRITERIA.get(self.alert_type, set())
        data["match_criteria"] = {
            key: value for key, value in data["match_criteria"].items()
            if key in visible and value not in (None, [])
        }
        return data
