"""
Concierge Safety Gate

Pre-flight screening of an inbound guest message, run before any model
call:

1. screen():  escalation keywords from policy config, red-line phrases
               and financial requests -> SafetyCheckResult
2. analyze(): keyword intent, extracted email and date, verification
               need, emergency words and sentiment -> RequestAnalysis

A HIGH risk screen is the signal for the processor to skip the model
entirely and escalate. Both operations are pure functions of the message
and the current configuration.
"""

from __future__ import annotations

import re

from concierge.config.provider import ConfigProvider
from concierge.core.models import (
    ExtractedEntities,
    Intent,
    RequestAnalysis,
    RiskLevel,
    SafetyCheckResult,
    Sentiment,
)
from concierge.logging import get_logger

logger = get_logger("concierge.safety")

FINANCIAL_KEYWORDS = ("refund", "discount", "compensation", "money back")
EMERGENCY_KEYWORDS = ("emergency", "fire", "gas", "medical", "locked out", "urgent")
VERIFICATION_KEYWORDS = ("secure", "lockbox", "door code")
NEGATIVE_WORDS = ("angry", "frustrated", "terrible", "awful", "complaint")
POSITIVE_WORDS = ("thank", "great", "wonderful", "lovely", "perfect")

_EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Z|a-z]{2,}\b")
_DATE_RE = re.compile(
    r"\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}|\d{4}[/\-.]\d{1,2}[/\-.]\d{1,2}"
)


def _raise_to(current: RiskLevel, floor: RiskLevel) -> RiskLevel:
    order = [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH]
    return max(current, floor, key=order.index)


class SafetyGate:
    """Screens and analyzes inbound messages."""

    def __init__(self, config: ConfigProvider):
        self._config = config

    async def screen(self, message: str) -> SafetyCheckResult:
        violations: list[str] = []
        risk = RiskLevel.LOW
        lowered = message.lower()

        if await self._config.is_escalation_keyword(message):
            violations.append("Emergency keywords detected")
            risk = RiskLevel.HIGH

        policies = await self._config.policies()
        for red_line in policies.red_lines:
            # A red line matches on its leading word.
            words = red_line.lower().split()
            if words and words[0] in lowered:
                violations.append(f"Policy violation: {red_line}")
                risk = _raise_to(risk, RiskLevel.MEDIUM)

        if any(k in lowered for k in FINANCIAL_KEYWORDS):
            violations.append("Financial request detected")
            risk = _raise_to(risk, RiskLevel.MEDIUM)

        passed = not violations
        result = SafetyCheckResult(
            passed=passed,
            violations=tuple(violations),
            risk_level=risk,
            confidence=0.9 if passed else 0.3,
        )
        if not passed:
            logger.info(
                "Screening raised %d violation(s)", len(violations),
                extra={"risk_level": risk.value},
            )
        return result

    def analyze(self, message: str) -> RequestAnalysis:
        lowered = message.lower()

        if "wifi" in lowered or "password" in lowered:
            intent = Intent.WIFI_REQUEST
        elif "check" in lowered and ("in" in lowered or "out" in lowered):
            intent = Intent.CHECKIN_CHECKOUT_INFO
        elif any(w in lowered for w in ("direction", "address", "location")):
            intent = Intent.DIRECTIONS_REQUEST
        elif any(w in lowered for w in ("access", "code", "key")):
            intent = Intent.ACCESS_REQUEST
        else:
            intent = Intent.GENERAL_INQUIRY

        email = _EMAIL_RE.search(message)
        arrival = _DATE_RE.search(message)

        requires_verification = intent == Intent.ACCESS_REQUEST or any(
            w in lowered for w in VERIFICATION_KEYWORDS
        )

        negative = sum(1 for w in NEGATIVE_WORDS if w in lowered)
        positive = sum(1 for w in POSITIVE_WORDS if w in lowered)
        if negative > positive:
            sentiment = Sentiment.NEGATIVE
        elif positive > negative:
            sentiment = Sentiment.POSITIVE
        else:
            sentiment = Sentiment.NEUTRAL

        return RequestAnalysis(
            original_message=message,
            detected_intent=intent,
            extracted_entities=ExtractedEntities(
                email=email.group(0) if email else None,
                arrival_date=arrival.group(0) if arrival else None,
            ),
            requires_identity_verification=requires_verification,
            emergency_detected=any(k in lowered for k in EMERGENCY_KEYWORDS),
            sentiment=sentiment,
        )
