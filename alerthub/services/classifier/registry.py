"""
Classifier Registry.

Manages classifier selection and fallback logic.
"""

from alerthub.services.classifier.base import Classifier, ClassificationResult
from alerthub.services.classifier.keyword_classifier import KeywordClassifier
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)


class ClassifierRegistry:
    """
    Registry of classifiers tried in priority order.

    Always returns a valid ClassificationResult: if every classifier fails,
    safe defaults (risk score 30, no keywords) are used.
    """

    def __init__(self, classifiers: Optional[List[Classifier]] = None):
        self.classifiers: List[Classifier] = classifiers if classifiers is not None else [KeywordClassifier()]

    def classify_with_fallback(
        self,
        text: str,
        website: Optional[str] = None,
        phone_number: Optional[str] = None,
        priority: Optional[str] = None,
        fallback_category: Optional[str] = None,
    ) -> ClassificationResult:
        for classifier in self.classifiers:
            if not classifier.is_enabled():
                continue
            try:
                result = classifier.classify(text, website=website, phone_number=phone_number, priority=priority)
                if result.error:
                    logger.warning(f"Classifier {classifier.get_name()} returned error: {result.error}")
                    continue
                return result
            except Exception as e:
                logger.warning(f"Classifier {classifier.get_name()} failed: {e}")
                continue

        logger.error("All classifiers failed, using safe defaults")
        return ClassificationResult.defaults(
            provider="defaults",
            category=fallback_category,
            error="classification unavailable",
        )
