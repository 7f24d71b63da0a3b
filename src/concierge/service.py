"""
Concierge Receptionist Service

Entry point used by the CLI and by hosts that receive guest messages.
Wires the processor to storage and the approval workflow:

    inbound message
      -> booking context from the sender address + thread history
      -> inbound communication logged
      -> RequestProcessor.process
      -> pending approval + draft reply when approval is required

Guests only ever see a natural-language reply. Unexpected failures turn
into a fixed apology that needs approval; the reason is logged.
"""

from __future__ import annotations

import asyncio
import os
from email.utils import parseaddr
from typing import Any

from concierge.config.provider import ConfigProvider
from concierge.core.models import (
    AIResponse,
    ApprovalType,
    BookingContext,
    CommChannel,
    CommDirection,
    Communication,
    HistoryTurn,
    InboundMessage,
    RequestContext,
    RiskFlag,
    ToolName,
)
from concierge.engine.processor import RequestProcessor
from concierge.exceptions import ConfigurationError, RateLimitExceededError
from concierge.logging import get_logger
from concierge.providers import CompletionProvider, create_provider
from concierge.ratelimit import RateLimiter
from concierge.safety.gate import SafetyGate
from concierge.storage.repository import Repository
from concierge.tools.executor import ToolExecutor
from concierge.workflow.approvals import ApprovalWorkflow

logger = get_logger("concierge.service")

EMAIL_FALLBACK_REPLY = (
    "I'm having trouble processing your email right now. "
    "A team member will review your message and respond shortly."
)
TEXT_FALLBACK_REPLY = (
    "I'm having trouble processing your message right now. "
    "Let me have a team member assist you."
)


def sender_address(raw: str) -> str:
    """Bare lowercase address from a From header such as ``Ann <ann@x.com>``."""
    _, address = parseaddr(raw)
    return (address or raw).strip().lower()


def _is_verified(ctx: BookingContext) -> bool:
    return any(c.approved_by and "verified" in c.body.lower() for c in ctx.previous_comms)


def _drafted_approval_id(response: AIResponse) -> str | None:
    """Approval already queued by a successful create_draft_reply call."""
    for call in response.tool_calls:
        if call.tool == ToolName.CREATE_DRAFT_REPLY and call.success and isinstance(call.result, dict):
            approval_id = call.result.get("approval_id")
            if approval_id:
                return approval_id
    return None


def _service_fallback(message: str, error: Exception) -> AIResponse:
    return AIResponse(
        message=message,
        confidence=0.0,
        risk_flags=[RiskFlag.LOW_CONFIDENCE],
        requires_approval=True,
        reasoning=f"Service error: {error}",
    )


class ReceptionistService:
    """Handles guest messages end to end."""

    def __init__(
        self,
        repository: Repository,
        config: ConfigProvider,
        provider: CompletionProvider,
        *,
        rate_limiter: RateLimiter | None = None,
    ):
        self.repository = repository
        self.config = config
        self.provider = provider
        self.workflow = ApprovalWorkflow(repository)
        self.rate_limiter = rate_limiter or RateLimiter()
        self.processor = RequestProcessor(
            provider,
            SafetyGate(config),
            ToolExecutor(repository, self.workflow, config),
            config,
        )

    @classmethod
    def from_env(cls, provider: CompletionProvider | None = None) -> ReceptionistService:
        """Build a service from CONCIERGE_CONFIG_DIR, DATABASE_URL and CONCIERGE_PROVIDER."""
        config = ConfigProvider(config_dir=os.environ.get("CONCIERGE_CONFIG_DIR"))
        repository = Repository(os.environ.get("DATABASE_URL", "concierge.db"))
        provider = provider or create_provider(os.environ.get("CONCIERGE_PROVIDER", "openai"))
        return cls(repository, config, provider)

    # ─── Inbound messages ────────────────────────────────────

    async def handle_inbound_message(self, message: InboundMessage) -> AIResponse:
        """Process an inbound email and queue the reply for review if needed."""
        try:
            context = await self._build_context(message)
            await self._log_inbound(message, context)

            response = await self.processor.process(message.body, context)

            if response.requires_approval:
                response = await self._queue_reply(
                    response,
                    context,
                    to_address=sender_address(message.sender),
                    subject=f"Re: {message.subject}" if message.subject else None,
                    thread_id=message.thread_id,
                    in_reply_to=message.message_id,
                )
            return response
        except ConfigurationError:
            raise
        except Exception as e:
            logger.exception(
                "Error handling inbound message",
                extra={"message_id": message.message_id, "thread_id": message.thread_id},
            )
            return _service_fallback(EMAIL_FALLBACK_REPLY, e)

    async def handle_text_query(
        self,
        message: str,
        guest_email: str | None = None,
        history: list[HistoryTurn] | None = None,
    ) -> AIResponse:
        """Process a free-text question, rate limited per guest.

        Raises:
            RateLimitExceededError: when the guest is over the request limit.
        """
        client_id = sender_address(guest_email) if guest_email else "anonymous"
        self.rate_limiter.hit(client_id)

        try:
            booking = prop = None
            if guest_email:
                contexts = await asyncio.to_thread(
                    self.repository.get_booking_context, sender_address(guest_email)
                )
                if contexts:
                    booking, prop = contexts[0].booking, contexts[0].property

            context = RequestContext(
                booking=booking,
                property=prop,
                conversation_history=tuple(history or ()),
            )
            response = await self.processor.process(message, context)

            if response.requires_approval:
                response = await self._queue_reply(
                    response,
                    context,
                    to_address=sender_address(guest_email) if guest_email else None,
                )
            return response
        except (ConfigurationError, RateLimitExceededError):
            raise
        except Exception as e:
            logger.exception("Error handling text query")
            return _service_fallback(TEXT_FALLBACK_REPLY, e)

    async def _build_context(self, message: InboundMessage) -> RequestContext:
        booking = prop = None
        verified = False

        contexts = await asyncio.to_thread(
            self.repository.get_booking_context, sender_address(message.sender)
        )
        if contexts:
            booking, prop = contexts[0].booking, contexts[0].property
            verified = _is_verified(contexts[0])

        history: tuple[HistoryTurn, ...] = ()
        if message.thread_id:
            comms = await asyncio.to_thread(self.repository.communications_by_thread, message.thread_id)
            history = tuple(
                HistoryTurn(
                    role="user" if c.direction == CommDirection.INBOUND else "assistant",
                    content=c.body,
                    timestamp=c.sent_at,
                )
                for c in comms
            )

        return RequestContext(
            booking=booking,
            property=prop,
            conversation_history=history,
            user_verified=verified,
        )

    async def _log_inbound(self, message: InboundMessage, context: RequestContext) -> None:
        await asyncio.to_thread(
            self.repository.save_communication,
            Communication(
                booking_id=context.booking.booking_id if context.booking else None,
                direction=CommDirection.INBOUND,
                channel=CommChannel.EMAIL,
                subject=message.subject,
                body=message.body,
                draft=False,
                from_address=message.sender,
                to_address=message.recipient,
                thread_id=message.thread_id,
                sent_at=message.received_at,
            ),
        )

    async def _queue_reply(
        self,
        response: AIResponse,
        context: RequestContext,
        *,
        to_address: str | None,
        subject: str | None = None,
        thread_id: str | None = None,
        in_reply_to: str | None = None,
    ) -> AIResponse:
        drafted = _drafted_approval_id(response)
        if drafted:
            logger.info("Reply already queued by the model's draft", extra={"approval_id": drafted})
            return response.model_copy(update={"approval_id": drafted})

        payload: dict[str, Any] = {
            "detected_topics": ["booking_related" if context.booking else "general"],
            "reason": response.reasoning,
        }
        if context.booking:
            payload["booking_context"] = {
                "booking_id": context.booking.booking_id,
                "guest_name": context.booking.guest_name,
                "property_name": context.property.name if context.property else None,
            }

        approval_type = (
            ApprovalType.ESCALATION
            if RiskFlag.EMERGENCY_KEYWORDS in response.risk_flags
            else ApprovalType.REPLY
        )
        _, approval = await self.workflow.create_draft_with_approval(
            response.message,
            booking_id=context.booking.booking_id if context.booking else None,
            subject=subject,
            to_address=to_address,
            thread_id=thread_id,
            in_reply_to=in_reply_to,
            approval_type=approval_type,
            risk_flags=response.risk_flags,
            confidence_score=response.confidence,
            payload=payload,
        )
        return response.model_copy(update={"approval_id": approval.approval_id})

    # ─── Health ──────────────────────────────────────────────

    async def health_check(self) -> dict[str, bool]:
        ai_ok = await self.provider.health_check()
        try:
            db_ok = await asyncio.to_thread(self.repository.ping)
        except Exception:
            logger.exception("Database health check failed")
            db_ok = False
        return {"ai_service": ai_ok, "database": db_ok, "overall": ai_ok and db_ok}
