"""
Concierge Request Processor

Orchestrates one inbound message end to end:

    SafetyGate.screen ──high risk──> fixed escalation reply (no model call)
          │
          ▼
    build exchange ─> provider (tools, tool_choice="auto")
          │
          ▼ tool calls, one at a time, in the order returned
    ToolExecutor.execute ─> assistant tool turn + tool result turn
          │
          ▼ only if any tool ran
    provider (tool_choice="none") ─> final text
          │
          ▼
    ConfidenceScorer ─> ResponseValidator ─> ApprovalGate ─> AIResponse

Provider failures never reach the caller; they become a fixed fallback
reply with confidence 0 that always needs approval. Configuration errors
are fatal and propagate.
"""

from __future__ import annotations

import time
from collections.abc import Sequence

from concierge.config.provider import ConfigProvider
from concierge.core.models import (
    AIResponse,
    HistoryTurn,
    RequestContext,
    RiskFlag,
    RiskLevel,
    ToolCall,
)
from concierge.engine.approval_gate import ApprovalGate
from concierge.engine.confidence import ConfidenceScorer
from concierge.engine.exchange import build_exchange
from concierge.exceptions import ConfigurationError, ProviderError, ResponseValidationError
from concierge.logging import get_logger
from concierge.providers.base import CompletionProvider
from concierge.safety.gate import SafetyGate
from concierge.safety.validator import ResponseValidator
from concierge.tools.definitions import get_schemas
from concierge.tools.executor import ToolExecutor

logger = get_logger("concierge.processor")

TEMPERATURE = 0.3
MAX_TOKENS = 1000

ESCALATION_REPLY = (
    "I'm escalating your request to our team for immediate assistance. "
    "Someone will contact you shortly."
)
VALIDATION_FALLBACK_REPLY = (
    "I need to have a human team member review your request to ensure I provide "
    "accurate information. Someone will get back to you shortly."
)
PROVIDER_FALLBACK_REPLY = (
    "I'm having trouble processing your request right now. "
    "Let me have a team member assist you directly."
)


class RequestProcessor:
    """Turns one guest message into an AIResponse."""

    def __init__(
        self,
        provider: CompletionProvider,
        safety_gate: SafetyGate,
        tool_executor: ToolExecutor,
        config: ConfigProvider,
        *,
        scorer: ConfidenceScorer | None = None,
        validator: ResponseValidator | None = None,
        approval_gate: ApprovalGate | None = None,
    ):
        self._provider = provider
        self._gate = safety_gate
        self._tools = tool_executor
        self._config = config
        self._scorer = scorer or ConfidenceScorer()
        self._validator = validator or ResponseValidator()
        self._approval_gate = approval_gate or ApprovalGate(config)

    async def process(
        self,
        message: str,
        context: RequestContext,
        history: Sequence[HistoryTurn] | None = None,
    ) -> AIResponse:
        """Process one message.

        Args:
            message: The guest's text.
            context: Booking/property snapshot and verification state.
            history: Prior turns, oldest first. Defaults to the context's
                conversation history. Empty history means first contact.
        """
        turns = tuple(history) if history is not None else context.conversation_history
        start = time.monotonic()

        analysis = self._gate.analyze(message)
        safety_check = await self._gate.screen(message)

        if not safety_check.passed and safety_check.risk_level == RiskLevel.HIGH:
            logger.warning(
                "Escalating without model call: %s", ", ".join(safety_check.violations),
                extra={"risk_level": safety_check.risk_level.value},
            )
            return AIResponse(
                message=ESCALATION_REPLY,
                confidence=1.0,
                risk_flags=[RiskFlag.EMERGENCY_KEYWORDS],
                requires_approval=True,
                reasoning=f"High-risk request detected: {', '.join(safety_check.violations)}",
            )

        try:
            prompts = await self._config.prompts()
            exchange = build_exchange(prompts, message, context, turns)

            first = await self._provider.complete(
                exchange.turns,
                tools=get_schemas(),
                tool_choice="auto",
                temperature=TEMPERATURE,
                max_tokens=MAX_TOKENS,
            )
            final_text = first.text
            tool_calls: list[ToolCall] = []

            if first.has_tool_use:
                for block in first.tool_calls:
                    call = await self._tools.execute(
                        ToolCall(id=block.tool_use_id, name=block.tool_name, arguments=block.tool_input)
                    )
                    tool_calls.append(call)
                    exchange = exchange.with_tool_round(block, call)

                # Turns with tool blocks must be sent with the catalog;
                # "none" keeps the final reply to plain text.
                second = await self._provider.complete(
                    exchange.turns,
                    tools=get_schemas(),
                    tool_choice="none",
                    temperature=TEMPERATURE,
                    max_tokens=MAX_TOKENS,
                )
                final_text = second.text
        except ConfigurationError:
            raise
        except ProviderError as e:
            logger.error("Completion provider failed: %s", e, extra={"provider": e.provider_name})
            return self._provider_fallback(e.reason)
        except Exception as e:
            logger.exception("Unexpected error while generating a reply")
            return self._provider_fallback(f"Completion provider error: {e}")

        confidence = self._scorer.score(final_text, tool_calls, analysis, safety_check)
        validation = self._validator.validate(message, final_text, confidence)

        if not validation.safe:
            error = ResponseValidationError(
                validation.reason or "Response failed safety validation",
                [f.value for f in validation.risk_flags],
            )
            logger.warning("Reply discarded: %s", error, extra={"confidence": confidence})
            return AIResponse(
                message=VALIDATION_FALLBACK_REPLY,
                confidence=0.0,
                tool_calls=tool_calls,
                risk_flags=validation.risk_flags,
                requires_approval=True,
                reasoning=error.reason,
            )

        decision = await self._approval_gate.should_require_approval(
            confidence, validation.risk_flags, is_first_contact=len(turns) == 0
        )
        logger.info(
            "Reply generated (%s)", decision.reason,
            extra={
                "confidence": confidence,
                "duration_ms": round((time.monotonic() - start) * 1000, 1),
            },
        )
        return AIResponse(
            message=final_text,
            confidence=confidence,
            tool_calls=tool_calls,
            risk_flags=validation.risk_flags,
            requires_approval=decision.required,
            reasoning=decision.reason,
        )

    @staticmethod
    def _provider_fallback(reason: str) -> AIResponse:
        return AIResponse(
            message=PROVIDER_FALLBACK_REPLY,
            confidence=0.0,
            risk_flags=[RiskFlag.LOW_CONFIDENCE],
            requires_approval=True,
            reasoning=reason,
        )
