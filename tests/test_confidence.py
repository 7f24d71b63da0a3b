"""Tests for ConfidenceScorer."""

import pytest

from concierge.core.models import (
    RequestAnalysis,
    RiskLevel,
    SafetyCheckResult,
    Sentiment,
    ToolCall,
)
from concierge.engine.confidence import ConfidenceScorer

LONG_REPLY = "Check-in is from 3:00 PM on your arrival day. We look forward to hosting you!"


def _analysis(**overrides) -> RequestAnalysis:
    return RequestAnalysis(original_message="What time is check-in?", **overrides)


def _passed() -> SafetyCheckResult:
    return SafetyCheckResult(passed=True)


def _call(success: bool) -> ToolCall:
    return ToolCall(name="get_property_faq", success=success)


@pytest.fixture
def scorer():
    return ConfidenceScorer()


class TestConfidenceScorer:
    def test_baseline(self, scorer):
        assert scorer.score(LONG_REPLY, [], _analysis(), _passed()) == 0.8

    def test_short_reply_penalty(self, scorer):
        assert scorer.score("Sure.", [], _analysis(), _passed()) == 0.7

    def test_successful_tools_raise_confidence(self, scorer):
        calls = [_call(True), _call(True)]
        assert scorer.score(LONG_REPLY, calls, _analysis(), _passed()) == 0.9

    def test_failed_tool_penalty(self, scorer):
        assert scorer.score(LONG_REPLY, [_call(False)], _analysis(), _passed()) == 0.6

    def test_safety_failure_penalty(self, scorer):
        check = SafetyCheckResult(
            passed=False,
            violations=("Financial request detected",),
            risk_level=RiskLevel.MEDIUM,
            confidence=0.3,
        )
        assert scorer.score(LONG_REPLY, [], _analysis(), check) == 0.6

    def test_penalties_stack(self, scorer):
        analysis = _analysis(emergency_detected=True, sentiment=Sentiment.NEGATIVE)
        assert scorer.score(LONG_REPLY, [], analysis, _passed()) == 0.4

    def test_clamped_at_zero(self, scorer):
        calls = [_call(False) for _ in range(5)]
        assert scorer.score(LONG_REPLY, calls, _analysis(), _passed()) == 0.0

    def test_clamped_at_one(self, scorer):
        calls = [_call(True) for _ in range(10)]
        assert scorer.score(LONG_REPLY, calls, _analysis(), _passed()) == 1.0

    def test_deterministic(self, scorer):
        calls = [_call(True), _call(False)]
        first = scorer.score("Short", calls, _analysis(), _passed())
        assert first == scorer.score("Short", calls, _analysis(), _passed())
        assert first == 0.55
