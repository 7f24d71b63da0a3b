"""Tests for the approval state machine."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from concierge.core.models import Approval, ApprovalStatus, ApprovalType, RiskFlag
from concierge.exceptions import ApprovalStateConflictError, ErrorKind


class TestCreate:
    @pytest.mark.asyncio
    async def test_starts_pending(self, workflow):
        approval = await workflow.create_approval(ApprovalType.POLICY, {"question": "pets?"})
        assert approval.status == ApprovalStatus.PENDING
        assert approval.resolved_at is None
        stored = await workflow.get(approval.approval_id)
        assert stored.status == ApprovalStatus.PENDING
        assert stored.payload == {"question": "pets?"}

    @pytest.mark.asyncio
    async def test_reason_added_to_payload(self, workflow):
        approval = await workflow.create_approval(
            ApprovalType.ESCALATION, {}, reason="Guest locked out"
        )
        assert approval.payload == {"reason": "Guest locked out"}

    @pytest.mark.asyncio
    async def test_existing_reason_kept(self, workflow):
        approval = await workflow.create_approval(
            ApprovalType.ESCALATION, {"reason": "original"}, reason="other"
        )
        assert approval.payload["reason"] == "original"

    @pytest.mark.asyncio
    async def test_draft_linked_to_approval(self, workflow, repository):
        draft, approval = await workflow.create_draft_with_approval(
            "Hi Ann, see you on the 20th.",
            booking_id="bk-1001",
            subject="Re: Arrival",
            to_address="ann@example.com",
            thread_id="thread-1",
            risk_flags=[RiskFlag.NEGATIVE_SENTIMENT],
            confidence_score=0.8,
            payload={"reason": "Draft mode enabled - all responses require approval"},
        )
        assert approval.comm_id == draft.comm_id
        assert approval.type == ApprovalType.REPLY
        assert approval.payload == {
            "draft_reply": "Hi Ann, see you on the 20th.",
            "booking_context": {"booking_id": "bk-1001"},
            "reason": "Draft mode enabled - all responses require approval",
        }
        stored = repository.get_communication(draft.comm_id)
        assert stored.draft is True
        assert stored.thread_id == "thread-1"
        assert stored.subject == "Re: Arrival"


# ─── Resolution ─────────────────────────────────────────────


class TestResolve:
    @pytest.mark.asyncio
    async def test_approve(self, workflow):
        created = await workflow.create_approval(ApprovalType.REPLY, {})
        approved = await workflow.approve(created.approval_id)
        assert approved.status == ApprovalStatus.APPROVED
        assert approved.resolved_at is not None
        assert approved.is_resolved

    @pytest.mark.asyncio
    async def test_reject_then_approve_conflicts(self, workflow):
        created = await workflow.create_approval(ApprovalType.REPLY, {})
        await workflow.reject(created.approval_id)

        with pytest.raises(ApprovalStateConflictError) as exc_info:
            await workflow.approve(created.approval_id)
        assert exc_info.value.kind == ErrorKind.APPROVAL_STATE_CONFLICT

        stored = await workflow.get(created.approval_id)
        assert stored.status == ApprovalStatus.REJECTED

    @pytest.mark.asyncio
    async def test_missing_approval_conflicts(self, workflow):
        with pytest.raises(ApprovalStateConflictError, match="apr-missing"):
            await workflow.reject("apr-missing")

    @pytest.mark.asyncio
    async def test_concurrent_resolution_has_one_winner(self, workflow):
        created = await workflow.create_approval(ApprovalType.REPLY, {})
        results = await asyncio.gather(
            workflow.approve(created.approval_id),
            workflow.reject(created.approval_id),
            return_exceptions=True,
        )
        winners = [r for r in results if isinstance(r, Approval)]
        losers = [r for r in results if isinstance(r, ApprovalStateConflictError)]
        assert len(winners) == 1
        assert len(losers) == 1

        stored = await workflow.get(created.approval_id)
        assert stored.status == winners[0].status

    @pytest.mark.asyncio
    async def test_approve_marks_draft_with_reviewer(self, workflow, repository):
        draft, approval = await workflow.create_draft_with_approval("Hello Ann, welcome!")
        await workflow.approve(approval.approval_id, reviewer="maria")
        stored = repository.get_communication(draft.comm_id)
        assert stored.approved_by == "maria"
        assert stored.approved_at is not None
        assert stored.draft is True

    @pytest.mark.asyncio
    async def test_assign(self, workflow):
        created = await workflow.create_approval(ApprovalType.VERIFICATION, {})
        assigned = await workflow.assign(created.approval_id, "maria")
        assert assigned.assignee == "maria"
        assert [a.approval_id for a in await workflow.list_by_assignee("maria")] == [
            created.approval_id
        ]

    @pytest.mark.asyncio
    async def test_assign_missing(self, workflow):
        with pytest.raises(ApprovalStateConflictError, match="Approval not found: apr-x"):
            await workflow.assign("apr-x", "maria")

    @pytest.mark.asyncio
    async def test_assign_row_gone_before_reload(self, workflow, repository, monkeypatch):
        created = await workflow.create_approval(ApprovalType.VERIFICATION, {})
        monkeypatch.setattr(repository, "get_approval", lambda approval_id: None)
        with pytest.raises(ApprovalStateConflictError, match="Approval not found"):
            await workflow.assign(created.approval_id, "maria")


# ─── Queries ────────────────────────────────────────────────


class TestQueries:
    @pytest.mark.asyncio
    async def test_pending_oldest_first_and_excludes_resolved(self, workflow, repository):
        now = datetime.now(UTC)
        old = Approval(type=ApprovalType.REPLY, created_at=now - timedelta(hours=3))
        new = Approval(type=ApprovalType.REPLY, created_at=now - timedelta(hours=1))
        done = Approval(type=ApprovalType.REPLY, created_at=now - timedelta(hours=2))
        for a in (new, old, done):
            repository.save_approval(a)
        await workflow.reject(done.approval_id)

        pending = await workflow.list_pending()
        assert [a.approval_id for a in pending] == [old.approval_id, new.approval_id]

    @pytest.mark.asyncio
    async def test_by_type_newest_first(self, workflow, repository):
        now = datetime.now(UTC)
        first = Approval(type=ApprovalType.ESCALATION, created_at=now - timedelta(minutes=10))
        second = Approval(type=ApprovalType.ESCALATION, created_at=now)
        repository.save_approval(first)
        repository.save_approval(second)
        await workflow.create_approval(ApprovalType.REPLY, {})

        escalations = await workflow.list_by_type(ApprovalType.ESCALATION)
        assert [a.approval_id for a in escalations] == [second.approval_id, first.approval_id]

    @pytest.mark.asyncio
    async def test_by_risk_flag(self, workflow):
        flagged = await workflow.create_approval(
            ApprovalType.REPLY, {}, risk_flags=[RiskFlag.REFUND_REQUEST, RiskFlag.LOW_CONFIDENCE]
        )
        await workflow.create_approval(ApprovalType.REPLY, {}, risk_flags=[RiskFlag.LOW_CONFIDENCE])

        refunds = await workflow.list_by_risk_flag(RiskFlag.REFUND_REQUEST)
        assert [a.approval_id for a in refunds] == [flagged.approval_id]
        assert refunds[0].risk_flags == [RiskFlag.REFUND_REQUEST, RiskFlag.LOW_CONFIDENCE]

    @pytest.mark.asyncio
    async def test_overdue(self, workflow, repository):
        stale = Approval(type=ApprovalType.REPLY, created_at=datetime.now(UTC) - timedelta(hours=30))
        repository.save_approval(stale)
        await workflow.create_approval(ApprovalType.REPLY, {})

        overdue = await workflow.list_overdue(24)
        assert [a.approval_id for a in overdue] == [stale.approval_id]

    @pytest.mark.asyncio
    async def test_count_by_status(self, workflow, repository):
        a = await workflow.create_approval(ApprovalType.REPLY, {})
        await workflow.create_approval(ApprovalType.REPLY, {})
        await workflow.approve(a.approval_id)
        assert repository.count_approvals() == {"pending": 1, "approved": 1}
