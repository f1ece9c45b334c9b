"""
User models: profile, reputation and notification preferences.
"""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, List, Dict
from enum import Enum

from alerthub.core.settings import settings
from alerthub.models.report import FraudType, utcnow
from alerthub.utils.identifiers import normalize_email, normalize_phone


class ReputationTier(str, Enum):
    NEW = "new"
    TRUSTED = "trusted"
    VERIFIED = "verified"
    EXPERT = "expert"


class Platform(str, Enum):
    WEB = "web"
    ANDROID = "android"
    IOS = "ios"


class GeoPoint(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class NotificationPreferences(BaseModel):
    email: bool = True
    sms: bool = False
    push: bool = True


class UserPreferences(BaseModel):
    notifications: NotificationPreferences = Field(default_factory=NotificationPreferences)
    alert_radius_km: float = Field(default_factory=lambda: settings.DEFAULT_ALERT_RADIUS_KM, gt=0, le=500)
    # Empty means "all fraud types"
    fraud_types: List[FraudType] = Field(default_factory=list)

    class Config:
        use_enum_values = True
        validate_default = True


class DeviceInfo(BaseModel):
    fcm_token: Optional[str] = None
    platform: Optional[Platform] = None
    last_seen: Optional[datetime] = None

    class Config:
        use_enum_values = True


class UserProfile(BaseModel):
    """Stored user (users collection)."""
    id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[GeoPoint] = None
    is_active: bool = True
    trust_score: int = Field(default=50, ge=0, le=100)
    report_count: int = Field(default=0, ge=0)
    verification_count: int = Field(default=0, ge=0)
    reputation_tier: ReputationTier = ReputationTier.NEW
    preferences: UserPreferences = Field(default_factory=UserPreferences)
    device: DeviceInfo = Field(default_factory=DeviceInfo)
    created_at: datetime = Field(default_factory=utcnow)

    class Config:
        use_enum_values = True
        validate_default = True

    def public_profile(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "trust_score": self.trust_score,
            "reputation_tier": self.reputation_tier,
            "report_count": self.report_count,
            "verification_count": self.verification_count,
            "joined_at": self.created_at,
        }


class UserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=254)
    phone: Optional[str] = Field(None, max_length=32)
    location: Optional[GeoPoint] = None
    preferences: UserPreferences = Field(default_factory=UserPreferences)
    device: DeviceInfo = Field(default_factory=DeviceInfo)

    @field_validator("email")
    @classmethod
    def _canonical_email(cls, v):
        normalized = normalize_email(v)
        if not normalized or "@" not in normalized:
            raise ValueError("A valid email address is required")
        return normalized

    @field_validator("phone")
    @classmethod
    def _canonical_phone(cls, v):
        return normalize_phone(v)


class PreferencesUpdate(BaseModel):
    notifications: Optional[NotificationPreferences] = None
    alert_radius_km: Optional[float] = Field(None, gt=0, le=500)
    fraud_types: Optional[List[FraudType]] = None

    class Config:
        use_enum_values = True


class DeviceUpdate(BaseModel):
    fcm_token: Optional[str] = None
    platform: Optional[Platform] = None

    class Config:
        use_enum_values = True


class AccountDeactivation(BaseModel):
    confirm_delete: str
