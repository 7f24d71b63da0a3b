"""
Concierge Response Validator

Re-screens a generated reply before anyone sees it. Two independent
passes:

1. Guardrail pass over the request/response pair (emergency keywords,
   secure-info mentions, sentiment, confidence floor, refund requests).
2. Leak scan of the reply for tokens resembling codes or passwords.
   Any hit makes the reply unsafe regardless of the first pass.
"""

from __future__ import annotations

from concierge.core.models import RiskFlag, ValidationResult
from concierge.safety.guardrails import contains_secure_pattern, perform_guardrail_checks


class ResponseValidator:

    def validate(self, request_text: str, response_text: str, confidence: float) -> ValidationResult:
        check = perform_guardrail_checks(request_text, response_text, confidence)
        leaked = contains_secure_pattern(response_text)

        if not check.passed:
            flags = list(check.risk_flags)
            if leaked and RiskFlag.SENSITIVE_INFO_REQUESTED not in flags:
                flags.append(RiskFlag.SENSITIVE_INFO_REQUESTED)
            return ValidationResult(safe=False, risk_flags=flags, reason=check.reason)

        if leaked:
            return ValidationResult(
                safe=False,
                risk_flags=[RiskFlag.SENSITIVE_INFO_REQUESTED],
                reason="Response contains potentially sensitive information",
            )

        return ValidationResult(safe=True, risk_flags=check.risk_flags)
