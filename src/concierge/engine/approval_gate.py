"""
Concierge Approval Gate

Decides whether a reply needs human sign-off. Rules are evaluated in a
fixed order and the first match wins:

  1. first contact + policy requires first-contact approval -> required
  2. confidence below ``approval_required``                 -> required
  3. any high-risk flag present                             -> required
  4. confidence >= ``auto_reply`` and draft mode is off     -> not required
  5. otherwise (draft mode)                                 -> required

Because rule 1 is checked first, a low-confidence first contact is
reported as a first-contact approval.
"""

from __future__ import annotations

from collections.abc import Sequence

from concierge.config.provider import ConfigProvider
from concierge.core.models import ApprovalDecision, RiskFlag

HIGH_RISK_FLAGS = frozenset({
    RiskFlag.EMERGENCY_KEYWORDS,
    RiskFlag.POLICY_VIOLATION,
    RiskFlag.SENSITIVE_INFO_REQUESTED,
})


class ApprovalGate:

    def __init__(self, config: ConfigProvider):
        self._config = config

    async def should_require_approval(
        self,
        confidence: float,
        risk_flags: Sequence[RiskFlag],
        is_first_contact: bool = False,
    ) -> ApprovalDecision:
        thresholds = await self._config.confidence_thresholds()
        settings = await self._config.approval_settings()

        if is_first_contact and settings.require_approval_first_contact:
            return ApprovalDecision(required=True, reason="First contact with guest requires approval")

        if confidence < thresholds.approval_required:
            return ApprovalDecision(required=True, reason=f"Low confidence score: {confidence:.2f}")

        if any(flag in HIGH_RISK_FLAGS for flag in risk_flags):
            flags = ", ".join(f.value for f in risk_flags)
            return ApprovalDecision(required=True, reason=f"High-risk flags detected: {flags}")

        if confidence >= thresholds.auto_reply and not settings.draft_mode_default:
            return ApprovalDecision(required=False, reason="High confidence and auto-send enabled")

        return ApprovalDecision(
            required=True,
            reason="Draft mode enabled - all responses require approval",
        )
