"""
Concierge Tool Executor

Runs one tool call requested by the model and returns a finalized copy
of the record. Arguments are validated into the typed record for the
tool, then dispatched with an exhaustive match.

A failing tool never aborts the exchange: unknown tools, invalid
arguments and handler exceptions all come back as ``success=False`` with
an error string, which is fed back to the model and lowers confidence.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, assert_never

from pydantic import ValidationError

from concierge.config.provider import ConfigProvider
from concierge.core.models import ApprovalType, ToolCall
from concierge.exceptions import ToolExecutionError
from concierge.logging import get_logger
from concierge.storage.repository import Repository
from concierge.tools.models import (
    BookingLookupArgs,
    DraftReplyArgs,
    EnqueueApprovalArgs,
    FaqLookupArgs,
    SendEmailArgs,
    VerifyIdentityArgs,
    parse_arguments,
)
from concierge.workflow.approvals import ApprovalWorkflow

logger = get_logger("concierge.tools")

AUTO_SEND_DISABLED = "Auto-send mode is disabled. All responses must go through approval queue."


def _describe_validation_error(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
        for err in error.errors()
    )


class ToolExecutor:
    """Dispatches tool calls to their handlers."""

    def __init__(self, repository: Repository, workflow: ApprovalWorkflow, config: ConfigProvider):
        self._repo = repository
        self._workflow = workflow
        self._config = config

    async def execute(self, call: ToolCall) -> ToolCall:
        start = time.monotonic()
        try:
            result = await self._dispatch(call)
        except Exception as e:
            logger.warning(
                "Tool failed: %s", e,
                extra={"tool_name": call.name, "duration_ms": round((time.monotonic() - start) * 1000, 1)},
            )
            return call.model_copy(update={"result": None, "success": False, "error": str(e)})

        logger.info(
            "Tool succeeded",
            extra={"tool_name": call.name, "duration_ms": round((time.monotonic() - start) * 1000, 1)},
        )
        return call.model_copy(update={"result": result, "success": True, "error": None})

    async def _dispatch(self, call: ToolCall) -> dict[str, Any]:
        tool = call.tool
        if tool is None:
            raise ToolExecutionError(call.name, f"Unknown tool: {call.name}")

        try:
            args = parse_arguments(tool, call.arguments)
        except ValidationError as e:
            raise ToolExecutionError(
                call.name, f"Invalid arguments for '{call.name}': {_describe_validation_error(e)}"
            ) from e

        match args:
            case BookingLookupArgs():
                return await self._get_booking_context(args)
            case FaqLookupArgs():
                return await self._get_property_faq(args)
            case VerifyIdentityArgs():
                return await self._verify_identity(args)
            case DraftReplyArgs():
                return await self._create_draft_reply(args)
            case EnqueueApprovalArgs():
                return await self._enqueue_for_approval(args)
            case SendEmailArgs():
                return self._send_email(args)
            case _:
                assert_never(args)

    # ─── Handlers ────────────────────────────────────────────

    async def _get_booking_context(self, args: BookingLookupArgs) -> dict[str, Any]:
        contexts = await asyncio.to_thread(
            self._repo.get_booking_context, args.email, args.name, args.phone, args.arrival_date
        )
        if not contexts:
            return {"found": False, "message": "No booking found matching the provided information"}

        bookings = []
        for ctx in contexts:
            prop = ctx.property
            bookings.append({
                "booking_id": ctx.booking.booking_id,
                "guest_name": ctx.booking.guest_name,
                "property_name": prop.name if prop else None,
                "arrival_date": ctx.booking.arrival_date.date().isoformat(),
                "departure_date": ctx.booking.departure_date.date().isoformat(),
                "num_guests": ctx.booking.num_guests,
                "status": ctx.booking.status.value,
                # secure access details and wifi password are never included
                "property_public_info": {
                    "name": prop.name,
                    "checkin_time": prop.checkin_time,
                    "checkout_time": prop.checkout_time,
                    "parking_instructions": prop.parking_instructions,
                    "access_instructions_public": prop.access_instructions_public,
                    "house_rules": prop.house_rules,
                } if prop else None,
                "previous_communications": len(ctx.previous_comms),
            })
        return {"found": True, "bookings": bookings}

    async def _get_property_faq(self, args: FaqLookupArgs) -> dict[str, Any]:
        faq = await self._config.get_property_faq(args.property_id, args.topic)
        if faq is None:
            return {"found": False, "message": f"No FAQ found for topic '{args.topic}'"}
        return {
            "found": True,
            "topic": faq.topic,
            "answer": faq.answer,
            "source": faq.source,
            "property_specific": faq.source == "property_override",
        }

    async def _verify_identity(self, args: VerifyIdentityArgs) -> dict[str, Any]:
        verification = await asyncio.to_thread(
            self._repo.verify_identity, args.booking_id, args.provided_answers
        )
        return verification.model_dump(exclude_none=True)

    async def _create_draft_reply(self, args: DraftReplyArgs) -> dict[str, Any]:
        draft, approval = await self._workflow.create_draft_with_approval(
            args.text,
            booking_id=args.booking_id,
            subject=args.subject,
            to_address=args.to_address,
            thread_id=args.thread_id,
            approval_type=ApprovalType.REPLY,
            risk_flags=args.risk_flags,
            confidence_score=args.confidence_score,
        )
        return {
            "draft_created": True,
            "comm_id": draft.comm_id,
            "approval_id": approval.approval_id,
            "message": "Draft reply created and queued for approval",
        }

    async def _enqueue_for_approval(self, args: EnqueueApprovalArgs) -> dict[str, Any]:
        approval = await self._workflow.create_approval(
            args.type,
            args.payload,
            reason=args.reason,
            risk_flags=args.risk_flags,
            confidence_score=args.confidence_score,
        )
        logger.info("Escalation created: %s", args.reason, extra={"approval_id": approval.approval_id})
        return {
            "queued": True,
            "approval_id": approval.approval_id,
            "reason": args.reason,
            "message": "Request queued for human approval",
        }

    def _send_email(self, args: SendEmailArgs) -> dict[str, Any]:
        raise ToolExecutionError(
            "send_email", AUTO_SEND_DISABLED, details={"to": args.to, "subject": args.subject}
        )
