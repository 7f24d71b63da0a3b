"""
Concierge Approval Workflow

The persisted state machine for human review:

    pending -> approved   (terminal)
    pending -> rejected   (terminal)

Creation always starts at pending with a fresh timestamp. Resolution is
delegated to a conditional update in the repository, so two concurrent
resolutions of the same approval cannot both succeed; the loser gets
ApprovalStateConflictError.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any

from concierge.core.models import (
    Approval,
    ApprovalStatus,
    ApprovalType,
    CommChannel,
    CommDirection,
    Communication,
    RiskFlag,
)
from concierge.exceptions import ApprovalStateConflictError
from concierge.logging import get_logger
from concierge.storage.repository import Repository

logger = get_logger("concierge.workflow")


class ApprovalWorkflow:
    """Creates and resolves approvals on top of the repository."""

    def __init__(self, repository: Repository):
        self._repo = repository

    async def create_approval(
        self,
        approval_type: ApprovalType,
        payload: dict[str, Any],
        *,
        reason: str | None = None,
        risk_flags: Sequence[RiskFlag] = (),
        confidence_score: float | None = None,
        comm_id: str | None = None,
        assignee: str | None = None,
    ) -> Approval:
        """Persist a new pending approval.

        ``reason`` is stored in the payload so reviewers can see why the
        item was raised.
        """
        if reason and "reason" not in payload:
            payload = {**payload, "reason": reason}

        approval = Approval(
            type=approval_type,
            payload=payload,
            risk_flags=list(risk_flags),
            confidence_score=confidence_score,
            comm_id=comm_id,
            assignee=assignee,
        )
        await asyncio.to_thread(self._repo.save_approval, approval)
        logger.info(
            "Approval created (%s)", approval_type.value,
            extra={"approval_id": approval.approval_id},
        )
        return approval

    async def create_draft_with_approval(
        self,
        body: str,
        *,
        booking_id: str | None = None,
        subject: str | None = None,
        to_address: str | None = None,
        thread_id: str | None = None,
        in_reply_to: str | None = None,
        approval_type: ApprovalType = ApprovalType.REPLY,
        risk_flags: Sequence[RiskFlag] = (),
        confidence_score: float | None = None,
        assignee: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> tuple[Communication, Approval]:
        """Create an outbound draft and the pending approval that guards it.

        The approval payload always carries ``draft_reply``; extra keys in
        ``payload`` are merged in. ``booking_context`` defaults to the
        booking id when one is known.
        """
        draft = Communication(
            booking_id=booking_id,
            direction=CommDirection.OUTBOUND,
            channel=CommChannel.EMAIL,
            subject=subject,
            body=body,
            draft=True,
            to_address=to_address,
            thread_id=thread_id,
            in_reply_to=in_reply_to,
        )
        await asyncio.to_thread(self._repo.save_communication, draft)

        approval_payload: dict[str, Any] = {"draft_reply": body}
        if booking_id:
            approval_payload["booking_context"] = {"booking_id": booking_id}
        approval_payload.update(payload or {})

        approval = await self.create_approval(
            approval_type,
            approval_payload,
            risk_flags=risk_flags,
            confidence_score=confidence_score,
            comm_id=draft.comm_id,
            assignee=assignee,
        )
        return draft, approval

    async def approve(self, approval_id: str, reviewer: str | None = None) -> Approval:
        """Approve a pending item. The linked draft is marked approved by
        ``reviewer`` but stays a draft until it is sent."""
        approval = await self._resolve(approval_id, ApprovalStatus.APPROVED)
        if reviewer and approval.comm_id:
            await asyncio.to_thread(self._repo.mark_communication_approved, approval.comm_id, reviewer)
        return approval

    async def reject(self, approval_id: str) -> Approval:
        return await self._resolve(approval_id, ApprovalStatus.REJECTED)

    async def _resolve(self, approval_id: str, status: ApprovalStatus) -> Approval:
        changed = await asyncio.to_thread(self._repo.resolve_approval, approval_id, status)
        if not changed:
            logger.warning(
                "Resolution to %s refused; approval missing or not pending", status.value,
                extra={"approval_id": approval_id},
            )
            raise ApprovalStateConflictError(approval_id)

        approval = await asyncio.to_thread(self._repo.get_approval, approval_id)
        if approval is None:
            raise ApprovalStateConflictError(approval_id)
        logger.info("Approval %s", status.value, extra={"approval_id": approval_id})
        return approval

    async def assign(self, approval_id: str, assignee: str) -> Approval:
        if not await asyncio.to_thread(self._repo.assign_approval, approval_id, assignee):
            raise ApprovalStateConflictError(approval_id, f"Approval not found: {approval_id}")
        approval = await asyncio.to_thread(self._repo.get_approval, approval_id)
        if approval is None:
            raise ApprovalStateConflictError(approval_id, f"Approval not found: {approval_id}")
        return approval

    # ─── Queries ─────────────────────────────────────────────

    async def get(self, approval_id: str) -> Approval | None:
        return await asyncio.to_thread(self._repo.get_approval, approval_id)

    async def list_pending(self) -> list[Approval]:
        return await asyncio.to_thread(self._repo.list_pending_approvals)

    async def list_by_type(self, approval_type: ApprovalType) -> list[Approval]:
        return await asyncio.to_thread(self._repo.list_approvals_by_type, approval_type)

    async def list_by_assignee(self, assignee: str) -> list[Approval]:
        return await asyncio.to_thread(self._repo.list_approvals_by_assignee, assignee)

    async def list_by_risk_flag(self, flag: RiskFlag) -> list[Approval]:
        return await asyncio.to_thread(self._repo.list_approvals_by_risk_flag, flag)

    async def list_overdue(self, hours_old: float = 24) -> list[Approval]:
        """Pending approvals older than ``hours_old``."""
        return await asyncio.to_thread(self._repo.list_old_pending_approvals, hours_old)
