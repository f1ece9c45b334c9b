"""
Keyword Classifier - rule-based fraud type detection and risk scoring.

Deterministic, fast, always available. No network calls except the
optional URL reputation lookups (VirusTotal / Safe Browsing), which are
only attempted when URL_REPUTATION_ENABLED and an API key are set.
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

import requests

from alerthub.core.settings import settings
from alerthub.services.classifier.base import Classifier, ClassificationResult

logger = logging.getLogger(__name__)


FRAUD_KEYWORDS: Dict[str, List[str]] = {
    "ponzi": [
        "investment", "returns", "guaranteed", "profit", "scheme", "referral",
        "pyramid", "mlm", "recruit", "downline", "passive income", "compound",
        "roi", "dividend", "portfolio", "fund", "trading", "forex",
    ],
    "phishing": [
        "verify", "account", "suspended", "click", "link", "urgent", "expire",
        "confirm", "identity", "security", "update", "login", "password",
        "credential", "authentication", "validate", "secure",
    ],
    "tax_scam": [
        "tax", "refund", "irs", "government", "audit", "penalty", "fine",
        "return", "filing", "assessment", "dues", "department", "revenue",
        "compliance", "notice", "enforcement",
    ],
    "otp_fraud": [
        "otp", "code", "verification", "pin", "sms", "authenticate", "confirm",
        "security code", "access code", "temporary", "expire", "valid",
        "authorization", "token",
    ],
    "fake_job": [
        "job", "hiring", "work from home", "part time", "salary", "income",
        "employment", "position", "vacancy", "opportunity", "earn", "money",
        "payment", "advance", "registration fee", "training",
    ],
    "lottery": [
        "lottery", "winner", "prize", "jackpot", "congratulations", "selected",
        "award", "million", "draw", "ticket", "claim", "lucky", "winning",
        "sweepstake", "raffle",
    ],
    "romance": [
        "love", "relationship", "lonely", "widow", "military", "overseas",
        "emergency", "help", "money", "transfer", "western union", "gift",
        "travel", "visa", "hospital", "accident",
    ],
    "investment": [
        "crypto", "bitcoin", "trading", "stocks", "shares", "market", "profit",
        "investment", "broker", "platform", "deposit", "withdraw", "trading bot",
        "signal", "expert", "guaranteed returns",
    ],
    "fake_bank": [
        "bank", "account", "balance", "transaction", "transfer", "credit",
        "debit", "loan", "approved", "officer", "manager", "branch",
        "atm", "card", "blocked", "frozen",
    ],
    "courier_scam": [
        "courier", "package", "delivery", "parcel", "shipping", "customs",
        "clearance", "fee", "detention", "held", "release", "agent",
        "office", "collect", "pay",
    ],
}

RISK_INDICATORS = [
    "urgent", "immediate", "limited time", "act now", "hurry", "expire",
    "guaranteed", "100%", "risk free", "no risk", "free money",
    "click here", "call now", "contact immediately", "dont delay",
    "exclusive", "selected", "chosen", "winner", "congratulations",
    "verify account", "suspend", "block", "freeze", "penalty",
    "legal action", "arrest", "warrant", "court", "fine",
]

URGENCY_WORDS = ["urgent", "immediate", "asap", "hurry", "quick", "fast"]

POSITIVE_WORDS = {
    "congratulations", "win", "winner", "lucky", "free", "bonus", "great",
    "happy", "love", "guaranteed", "reward", "gift", "opportunity", "best",
}
NEGATIVE_WORDS = {
    "blocked", "suspended", "penalty", "arrest", "warrant", "fraud", "scam",
    "lost", "stolen", "threat", "illegal", "frozen", "fine", "legal",
    "cheated", "fake", "danger", "court", "problem", "urgent",
}

SUSPICIOUS_URL_PATTERNS = [
    re.compile(r"bit\.ly|tinyurl|goo\.gl|t\.co"),
    re.compile(r"[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}\.[0-9]{1,3}"),
    re.compile(r"-|_|\.tk|\.ml|\.ga|\.cf"),
    re.compile(r"[0-9]{5,}"),
    re.compile(r"paypal|amazon|google|microsoft|apple", re.IGNORECASE),
]

SCAM_PHONE_PREFIXES = ("+1900", "+1976", "+234", "+233", "+225", "0000", "1111", "9999")

_TOKEN_RE = re.compile(r"[a-z0-9']+")


class KeywordClassifier(Classifier):
    """Rule-based classifier using keyword tables and risk indicators."""

    NAME = "keyword-rules-v1"
    URL_TIMEOUT_SECONDS = 3.0

    def is_enabled(self) -> bool:
        return True

    def get_name(self) -> str:
        return self.NAME

    def classify(
        self,
        text: str,
        website: Optional[str] = None,
        phone_number: Optional[str] = None,
        priority: Optional[str] = None,
    ) -> ClassificationResult:
        lower_text = (text or "").lower()
        tokens = _TOKEN_RE.findall(lower_text)

        category, confidence, keywords = self._detect_fraud_type(lower_text)
        sentiment = self._sentiment(tokens)
        risk_score = self._text_risk(lower_text, sentiment)

        url_analysis: Dict = {}
        if website:
            url_analysis = self.analyze_url(website)
            if url_analysis.get("is_phishing"):
                risk_score += 30

        if phone_number and self.is_suspicious_phone(phone_number):
            risk_score += 15

        if priority == "critical":
            risk_score += 20
        elif priority == "high":
            risk_score += 10

        return ClassificationResult(
            category=category,
            risk_score=min(risk_score, 100),
            keywords=keywords,
            sentiment=sentiment,
            provider=self.NAME,
            confidence=confidence,
            url_analysis=url_analysis,
        )

    def _detect_fraud_type(self, lower_text: str) -> Tuple[Optional[str], float, List[str]]:
        best_type = None
        best_score = 0
        keywords: List[str] = []

        for fraud_type, words in FRAUD_KEYWORDS.items():
            matched = [w for w in words if w in lower_text]
            for word in matched:
                if word not in keywords:
                    keywords.append(word)
            if len(matched) > best_score:
                best_type, best_score = fraud_type, len(matched)

        confidence = min(best_score / 3 * 100, 100.0)
        return best_type, confidence, keywords

    def _sentiment(self, tokens: List[str]) -> str:
        if not tokens:
            return "neutral"
        score = sum(1 for t in tokens if t in POSITIVE_WORDS) - sum(1 for t in tokens if t in NEGATIVE_WORDS)
        normalized = score / len(tokens)
        if normalized > 0.1:
            return "positive"
        if normalized < -0.1:
            return "negative"
        return "neutral"

    def _text_risk(self, lower_text: str, sentiment: str) -> int:
        risk = 10 * sum(1 for indicator in RISK_INDICATORS if indicator in lower_text)

        # Negative tone is common in threat scams; overly positive in prize scams
        if sentiment == "negative":
            risk += 15
        elif sentiment == "positive":
            risk += 5

        risk += 8 * sum(1 for word in URGENCY_WORDS if word in lower_text)
        return risk

    @staticmethod
    def is_suspicious_phone(phone_number: str) -> bool:
        clean = re.sub(r"[^\d+]", "", phone_number)
        if clean.startswith(SCAM_PHONE_PREFIXES):
            return True
        return len(clean) < 7 or len(clean) > 15

    def analyze_url(self, url: str) -> Dict:
        suspicious_score = 20 * sum(1 for pattern in SUSPICIOUS_URL_PATTERNS if pattern.search(url))
        analysis = {
            "is_phishing": suspicious_score >= 40,
            "virustotal_positives": 0,
            "safe_browsing_result": "unchecked",
        }

        if not settings.URL_REPUTATION_ENABLED:
            return analysis

        if settings.VIRUSTOTAL_API_KEY:
            positives = self._virustotal_positives(url)
            analysis["virustotal_positives"] = positives
            if positives > 3:
                analysis["is_phishing"] = True

        if settings.SAFE_BROWSING_API_KEY:
            threat = self._safe_browsing_threat(url)
            analysis["safe_browsing_result"] = threat
            if threat not in ("safe", "unknown"):
                analysis["is_phishing"] = True

        return analysis

    def _virustotal_positives(self, url: str) -> int:
        try:
            resp = requests.post(
                "https://www.virustotal.com/vtapi/v2/url/report",
                data={"apikey": settings.VIRUSTOTAL_API_KEY, "resource": url},
                timeout=self.URL_TIMEOUT_SECONDS,
            )
            if resp.status_code != 200:
                logger.warning(f"VirusTotal lookup failed with status {resp.status_code}")
                return 0
            return int(resp.json().get("positives") or 0)
        except Exception as e:
            logger.warning(f"VirusTotal lookup error: {e}")
            return 0

    def _safe_browsing_threat(self, url: str) -> str:
        try:
            resp = requests.post(
                "https://safebrowsing.googleapis.com/v4/threatMatches:find",
                params={"key": settings.SAFE_BROWSING_API_KEY},
                json={
                    "client": {"clientId": "scam-alert-hub", "clientVersion": settings.APP_VERSION},
                    "threatInfo": {
                        "threatTypes": ["MALWARE", "SOCIAL_ENGINEERING", "UNWANTED_SOFTWARE"],
                        "platformTypes": ["ANY_PLATFORM"],
                        "threatEntryTypes": ["URL"],
                        "threatEntries": [{"url": url}],
                    },
                },
                timeout=self.URL_TIMEOUT_SECONDS,
            )
            if resp.status_code != 200:
                logger.warning(f"Safe Browsing lookup failed with status {resp.status_code}")
                return "unknown"
            matches = resp.json().get("matches") or []
            return matches[0].get("threatType", "unknown").lower() if matches else "safe"
        except Exception as e:
            logger.warning(f"Safe Browsing lookup error: {e}")
            return "unknown"
