"""
Pydantic models for fraud reports and crowd verification.
These models handle validation for report submission and storage.
"""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime, timezone
from typing import Optional, List, Dict
from enum import Enum

from alerthub.utils.identifiers import normalize_email, normalize_phone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FraudType(str, Enum):
    PONZI = "ponzi"
    PHISHING = "phishing"
    TAX_SCAM = "tax_scam"
    OTP_FRAUD = "otp_fraud"
    FAKE_JOB = "fake_job"
    LOTTERY = "lottery"
    ROMANCE = "romance"
    INVESTMENT = "investment"
    FAKE_BANK = "fake_bank"
    COURIER_SCAM = "courier_scam"
    OTHER = "other"


class SubCategory(str, Enum):
    """Medium through which the scam reached the reporter."""
    SMS = "sms"
    CALL = "call"
    EMAIL = "email"
    WEBSITE = "website"
    APP = "app"
    SOCIAL_MEDIA = "social_media"
    WHATSAPP = "whatsapp"
    TELEGRAM = "telegram"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ReportStatus(str, Enum):
    ACTIVE = "active"
    INVESTIGATING = "investigating"
    RESOLVED = "resolved"
    FALSE_ALARM = "false_alarm"


class Vote(str, Enum):
    CONFIRM = "confirm"
    DENY = "deny"
    UNCERTAIN = "uncertain"


class VerificationStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    DISPUTED = "disputed"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class ReportLocation(BaseModel):
    """Report geo-point plus the (best-effort) reverse-geocoded address."""
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None


class Evidence(BaseModel):
    """Identifiers the scammer used. All optional."""
    phone_number: Optional[str] = Field(None, max_length=32)
    email: Optional[str] = Field(None, max_length=254)
    website: Optional[str] = Field(None, max_length=2048)
    message_content: Optional[str] = Field(None, max_length=5000)

    @field_validator("phone_number")
    @classmethod
    def _canonical_phone(cls, v):
        return normalize_phone(v)

    @field_validator("email")
    @classmethod
    def _canonical_email(cls, v):
        return normalize_email(v)

    @field_validator("website")
    @classmethod
    def _strip_website(cls, v):
        return v.strip() or None if v else None


class Impact(BaseModel):
    financial_loss: float = Field(default=0, ge=0)
    affected_users: int = Field(default=1, ge=0)


class ReportCreate(BaseModel):
    """
    Model for creating a new fraud report (incoming POST request).
    The reporter is taken from the request context, not the body.
    """
    fraud_type: FraudType
    sub_category: Optional[SubCategory] = None
    title: str = Field(..., min_length=5, max_length=200)
    description: str = Field(..., min_length=10, max_length=2000)
    location: ReportLocation
    evidence: Evidence = Field(default_factory=Evidence)
    impact: Impact = Field(default_factory=Impact)
    tags: List[str] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "fraud_type": "otp_fraud",
                "sub_category": "call",
                "title": "Caller pretending to be bank asked for OTP",
                "description": "Got a call saying my card is blocked, asked to share the OTP to unblock it.",
                "location": {"lat": 37.7750, "lng": -122.4195},
                "evidence": {"phone_number": "+15551234567"},
                "impact": {"financial_loss": 0, "affected_users": 1},
                "tags": ["bank", "otp"],
            }
        }
        extra = "ignore"


class VerificationEntry(BaseModel):
    voter_id: str
    vote: Vote
    comment: Optional[str] = None
    voted_at: datetime = Field(default_factory=utcnow)

    class Config:
        use_enum_values = True
        validate_default = True


class Verification(BaseModel):
    """Crowd verification state. trust_score is always recomputable from entries."""
    trust_score: int = Field(default=30, ge=0, le=100)
    verification_count: int = Field(default=0, ge=0)
    entries: List[VerificationEntry] = Field(default_factory=list)
    status: VerificationStatus = VerificationStatus.PENDING

    class Config:
        use_enum_values = True
        validate_default = True


class AIAnalysis(BaseModel):
    """Classifier output attached to a report (advisory only)."""
    category: Optional[FraudType] = None
    confidence: float = Field(default=0, ge=0, le=100)
    risk_score: int = Field(default=30, ge=0, le=100)
    keywords: List[str] = Field(default_factory=list)
    sentiment: Sentiment = Sentiment.NEUTRAL
    url_analysis: Dict = Field(default_factory=dict)
    provider: Optional[str] = None
    error: Optional[str] = None
    processed_at: datetime = Field(default_factory=utcnow)

    class Config:
        use_enum_values = True
        validate_default = True


class FraudReport(BaseModel):
    """Stored fraud report (fraud_reports collection)."""
    id: str
    reported_by: str
    fraud_type: FraudType
    sub_category: Optional[SubCategory] = None
    title: str
    description: str
    location: ReportLocation
    evidence: Evidence = Field(default_factory=Evidence)
    impact: Impact = Field(default_factory=Impact)
    tags: List[str] = Field(default_factory=list)
    priority: Priority = Priority.MEDIUM
    status: ReportStatus = ReportStatus.ACTIVE
    ai_analysis: AIAnalysis = Field(default_factory=AIAnalysis)
    verification: Verification = Field(default_factory=Verification)
    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Config:
        use_enum_values = True
        validate_default = True

    def to_map_data(self) -> Dict:
        """Public shape used on the map and in the live feed."""
        return {
            "id": self.id,
            "fraud_type": self.fraud_type,
            "sub_category": self.sub_category,
            "title": self.title,
            "location": {"lat": self.location.lat, "lng": self.location.lng, "city": self.location.city},
            "trust_score": self.verification.trust_score,
            "verification_count": self.verification.verification_count,
            "priority": self.priority,
            "risk_score": self.ai_analysis.risk_score,
            "status": self.status,
            "created_at": self.created_at,
        }

    def to_public(self, include_evidence: bool = False) -> Dict:
        data = self.model_dump(exclude={"evidence", "version"})
        # Voter identities stay private; only the tallies are public.
        data["verification"].pop("entries", None)
        if include_evidence:
            data["evidence"] = self.evidence.model_dump()
        return data


class VoteRequest(BaseModel):
    vote: Vote
    comment: Optional[str] = Field(None, max_length=500)


class VoteResponse(BaseModel):
    report_id: str
    trust_score: int
    verification_count: int
    status: str


class IdentifierKind(str, Enum):
    PHONE = "phone"
    EMAIL = "email"
    WEBSITE = "website"


class IdentifierCheckRequest(BaseModel):
    type: IdentifierKind
    value: str = Field(..., min_length=1, max_length=2048)
