"""
Core settings and environment variables for Scam Alert Hub.
Uses pydantic-settings for type-safe environment variable loading.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Create a .env file in the root directory to configure these.
    """

    # Application
    APP_NAME: str = "Scam Alert Hub"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # CORS - Frontend URLs allowed to access this API
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    # Used for links in alert emails
    CLIENT_URL: str = "http://localhost:3000"

    # Firebase/Firestore
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None  # Path to service account JSON

    # In-memory DB for local development and tests (no Firebase credentials needed)
    USE_MOCK_DB: bool = False

    # Classifier
    # - URL_REPUTATION_ENABLED: query VirusTotal / Safe Browsing when keys are present
    URL_REPUTATION_ENABLED: bool = False
    VIRUSTOTAL_API_KEY: Optional[str] = None
    SAFE_BROWSING_API_KEY: Optional[str] = None
    CLASSIFIER_TIMEOUT_SECONDS: float = 5.0

    # Geocoding
    # - GEOCODING_PROVIDER: "nominatim" (default, no API key) or "google"
    # - GOOGLE_MAPS_API_KEY: optional; only used when provider is "google"
    GEOCODING_PROVIDER: str = "nominatim"
    GOOGLE_MAPS_API_KEY: Optional[str] = None
    GEOCODING_TIMEOUT_SECONDS: float = 3.0

    # Email channel (SMTP)
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_SENDER_NAME: str = "Scam Alert Hub"

    # SMS channel (Twilio REST API)
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_FROM_NUMBER: Optional[str] = None

    # Push channel (Firebase Cloud Messaging, uses the Firebase app above)
    PUSH_ENABLED: bool = True

    # Alert dispatch
    CHANNEL_SEND_TIMEOUT_SECONDS: float = 10.0
    ALERT_RETENTION_DAYS: int = 7
    DEFAULT_ALERT_RADIUS_KM: float = 10.0
    HIGH_RISK_ALERT_THRESHOLD: int = 80

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"  # Allow extra env vars to prevent crashes


# Global settings instance
settings = Settings()
