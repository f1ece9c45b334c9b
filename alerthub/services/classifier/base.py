"""
Classifier Base Interface.

Defines the contract for fraud classifiers.
All classifiers must implement this interface.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)

DEFAULT_RISK_SCORE = 30


class ClassificationResult:
    """
    Standardized classifier response structure.

    All classifiers must return this structure.
    """

    def __init__(
        self,
        category: Optional[str],
        risk_score: int,
        keywords: List[str],
        sentiment: str,
        provider: str,
        confidence: float = 0.0,
        url_analysis: Optional[Dict] = None,
        error: Optional[str] = None,
        processed_at: Optional[datetime] = None,
    ):
        self.category = category
        self.risk_score = max(0, min(int(risk_score), 100))
        self.keywords = keywords
        self.sentiment = sentiment
        self.provider = provider
        self.confidence = confidence
        self.url_analysis = url_analysis or {}
        self.error = error  # If classification failed, error message stored here
        self.processed_at = processed_at or datetime.now(timezone.utc)

    def to_dict(self) -> Dict:
        """Convert to dictionary for storage in ai_analysis."""
        result = {
            "category": self.category,
            "confidence": self.confidence,
            "risk_score": self.risk_score,
            "keywords": self.keywords,
            "sentiment": self.sentiment,
            "url_analysis": self.url_analysis,
            "provider": self.provider,
            "processed_at": self.processed_at,
        }
        if self.error:
            result["error"] = self.error
        return result

    @classmethod
    def defaults(cls, provider: str, category: Optional[str] = None, error: Optional[str] = None) -> "ClassificationResult":
        """Safe defaults used when classification is unavailable."""
        return cls(
            category=category,
            risk_score=DEFAULT_RISK_SCORE,
            keywords=[],
            sentiment="neutral",
            provider=provider,
            error=error,
        )


class Classifier(ABC):
    """
    Abstract base class for fraud classifiers.

    classify() MUST:
    - Return a valid ClassificationResult even on failure
    - Never raise exceptions (catch and return error in response)
    - Respect timeout limits for any network calls
    """

    @abstractmethod
    def is_enabled(self) -> bool:
        pass

    @abstractmethod
    def get_name(self) -> str:
        pass

    @abstractmethod
    def classify(
        self,
        text: str,
        website: Optional[str] = None,
        phone_number: Optional[str] = None,
        priority: Optional[str] = None,
    ) -> ClassificationResult:
        """
        Classify report text (title + description + message content).

        Args:
            text: Combined report text
            website: Optional evidence URL
            phone_number: Optional evidence phone number
            priority: Report priority (raises risk for high/critical)
        """
        pass
