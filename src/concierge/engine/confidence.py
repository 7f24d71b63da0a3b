"""
Concierge Confidence Scoring

Deterministic confidence for a generated reply. Starts from a 0.8
baseline, applies every adjustment below unconditionally, then clamps the
sum to [0, 1]:

    -0.20  per failed tool call
    -0.30  emergency detected in the request
    -0.10  negative request sentiment
    -0.20  pre-flight screening did not pass
    -0.10  reply shorter than 50 characters
    +0.05  per successful tool call
"""

from collections.abc import Sequence

from concierge.core.models import RequestAnalysis, SafetyCheckResult, Sentiment, ToolCall

BASELINE = 0.8
FAILED_TOOL_PENALTY = 0.2
EMERGENCY_PENALTY = 0.3
NEGATIVE_SENTIMENT_PENALTY = 0.1
SAFETY_FAILURE_PENALTY = 0.2
SHORT_REPLY_PENALTY = 0.1
SHORT_REPLY_LENGTH = 50
SUCCESSFUL_TOOL_BONUS = 0.05


class ConfidenceScorer:
    """Pure scorer; holds no state."""

    def score(
        self,
        final_text: str,
        tool_calls: Sequence[ToolCall],
        analysis: RequestAnalysis,
        safety_check: SafetyCheckResult,
    ) -> float:
        failed = sum(1 for t in tool_calls if not t.success)
        succeeded = len(tool_calls) - failed

        confidence = BASELINE
        confidence -= failed * FAILED_TOOL_PENALTY
        if analysis.emergency_detected:
            confidence -= EMERGENCY_PENALTY
        if analysis.sentiment == Sentiment.NEGATIVE:
            confidence -= NEGATIVE_SENTIMENT_PENALTY
        if not safety_check.passed:
            confidence -= SAFETY_FAILURE_PENALTY
        if len(final_text) < SHORT_REPLY_LENGTH:
            confidence -= SHORT_REPLY_PENALTY
        confidence += succeeded * SUCCESSFUL_TOOL_BONUS

        return round(max(0.0, min(1.0, confidence)), 4)
