"""
Concierge Guardrails

Keyword and pattern checks shared by the pre-flight SafetyGate and the
post-hoc ResponseValidator. All checks are plain substring / regex tests
on lower-cased text; they are heuristics, not language understanding.
"""

from __future__ import annotations

import re
from datetime import date, datetime

from pydantic import BaseModel, Field

from concierge.core.models import RiskFlag, Sentiment

CONFIDENCE_THRESHOLD = 0.75

ESCALATION_KEYWORDS = (
    "locked out",
    "gas",
    "fire",
    "water leak",
    "medical",
    "emergency",
    "refund",
    "discount",
    "angry",
    "lawsuit",
    "compensation",
    "police",
    "lawyer",
    "injured",
    "hospital",
)

SECURE_INFO_TYPES = (
    "access_instructions_secure",
    "lockbox_code",
    "door_code",
    "alarm_code",
    "wifi_password",
    "gate_code",
)

_NEGATIVE_WORDS = ("angry", "upset", "disappointed", "terrible", "awful", "horrible", "unacceptable")
_POSITIVE_WORDS = ("thank", "great", "wonderful", "excellent", "amazing", "lovely", "perfect")

# Tokens in a reply that look like leaked secrets.
SECURE_PATTERNS = (
    re.compile(r"\b\d{4,6}\b"),
    re.compile(r"password:\s*\w+", re.IGNORECASE),
    re.compile(r"code:\s*\d+", re.IGNORECASE),
    re.compile(r"key:\s*\w+", re.IGNORECASE),
)

_REDACT_PATTERNS = (
    re.compile(r"\b\d{4,}\b"),
    re.compile(r"\baccess code:?\s*\d+", re.IGNORECASE),
    re.compile(r"\blockbox:?\s*\d+", re.IGNORECASE),
    re.compile(r"\bpin:?\s*\d+", re.IGNORECASE),
    re.compile(r"\bpassword:?\s*\w+", re.IGNORECASE),
)

IDENTITY_REQUIRED_FIELDS = ("guest_name", "arrival_date")


class GuardrailCheck(BaseModel):
    passed: bool
    reason: str = ""
    risk_flags: list[RiskFlag] = Field(default_factory=list)
    confidence: float


def check_for_escalation_keywords(text: str) -> list[str]:
    lowered = text.lower()
    return [k for k in ESCALATION_KEYWORDS if k in lowered]


def check_for_secure_info_request(text: str) -> list[str]:
    """Secure info types mentioned in ``text`` (``door_code`` matches "door code")."""
    lowered = text.lower()
    return [t for t in SECURE_INFO_TYPES if t.replace("_", " ") in lowered]


def analyze_sentiment(text: str) -> Sentiment:
    lowered = text.lower()
    negative = sum(1 for w in _NEGATIVE_WORDS if w in lowered)
    positive = sum(1 for w in _POSITIVE_WORDS if w in lowered)
    if negative > positive:
        return Sentiment.NEGATIVE
    if positive > negative:
        return Sentiment.POSITIVE
    return Sentiment.NEUTRAL


def perform_guardrail_checks(request_text: str, response_text: str, confidence: float) -> GuardrailCheck:
    """Derive risk flags for a request/response pair.

    Every check runs; ``reason`` holds the last escalating condition.
    Negative sentiment is flagged but does not escalate.
    """
    risk_flags: list[RiskFlag] = []
    escalate = False
    reason = ""

    keywords = check_for_escalation_keywords(request_text)
    if keywords:
        risk_flags.append(RiskFlag.EMERGENCY_KEYWORDS)
        escalate = True
        reason = f"Emergency keywords detected: {', '.join(keywords)}"

    secure = check_for_secure_info_request(response_text)
    if secure:
        risk_flags.append(RiskFlag.SENSITIVE_INFO_REQUESTED)
        escalate = True
        reason = f"Attempting to share secure information: {', '.join(secure)}"

    if analyze_sentiment(request_text) == Sentiment.NEGATIVE:
        risk_flags.append(RiskFlag.NEGATIVE_SENTIMENT)

    if confidence < CONFIDENCE_THRESHOLD:
        risk_flags.append(RiskFlag.LOW_CONFIDENCE)
        escalate = True
        reason = f"Low confidence score: {confidence:.2f}"

    lowered = request_text.lower()
    if "refund" in lowered or "discount" in lowered:
        risk_flags.append(RiskFlag.REFUND_REQUEST)
        escalate = True
        reason = "Refund or discount request detected"

    return GuardrailCheck(
        passed=not escalate,
        reason=reason,
        risk_flags=risk_flags,
        confidence=confidence,
    )


def contains_secure_pattern(text: str) -> bool:
    return any(p.search(text) for p in SECURE_PATTERNS)


def sanitize_response(text: str) -> str:
    """Redact anything that looks like a code, PIN or password."""
    for pattern in _REDACT_PATTERNS:
        text = pattern.sub("[REDACTED]", text)
    return text


def parse_date(value: str) -> date | None:
    value = value.strip()
    for fmt in ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%d.%m.%Y"):
        try:
            return datetime.strptime(value[:10], fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        return None


def validate_identity_answers(provided: dict[str, str], expected: dict[str, str]) -> bool:
    """True when every required field is present and matches.

    Names compare case-insensitively; arrival dates compare as calendar days.
    """
    for key in IDENTITY_REQUIRED_FIELDS:
        given, wanted = provided.get(key), expected.get(key)
        if not given or not wanted:
            return False

        if key == "arrival_date":
            given_date, wanted_date = parse_date(given), parse_date(wanted)
            if given_date is None or given_date != wanted_date:
                return False
        elif given.strip().lower() != wanted.strip().lower():
            return False

    return True
