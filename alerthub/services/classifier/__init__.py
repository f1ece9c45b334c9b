"""
Fraud classifier plug-ins.

Provides a coarse fraud category, risk score and keyword set for a report.
Fails gracefully and never blocks report ingestion.
"""

from alerthub.services.classifier.base import Classifier, ClassificationResult
from alerthub.services.classifier.keyword_classifier import KeywordClassifier
from alerthub.services.classifier.registry import ClassifierRegistry

__all__ = [
    "Classifier",
    "ClassificationResult",
    "KeywordClassifier",
    "ClassifierRegistry",
]
