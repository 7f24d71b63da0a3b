"""Tests for tool dispatch and the tool handlers."""

import pytest

from concierge.core.models import ApprovalStatus, ApprovalType, RiskFlag, ToolCall, ToolName
from concierge.tools import TOOL_DEFINITIONS, get_schemas, parse_arguments
from concierge.tools.executor import AUTO_SEND_DISABLED
from concierge.tools.models import FaqLookupArgs


def _call(tool: str, /, **arguments) -> ToolCall:
    return ToolCall(name=tool, arguments=arguments)


# ─── Dispatch ───────────────────────────────────────────────


class TestDispatch:
    @pytest.mark.asyncio
    async def test_unknown_tool_is_recorded_as_failure(self, executor):
        call = _call("book_spa_treatment", when="tomorrow")
        result = await executor.execute(call)
        assert result.success is False
        assert result.error == "Unknown tool: book_spa_treatment"
        assert result.id == call.id
        assert result.arguments == {"when": "tomorrow"}

    @pytest.mark.asyncio
    async def test_invalid_arguments(self, executor):
        result = await executor.execute(_call("get_property_faq", property_id="prop-harbour-view"))
        assert result.success is False
        assert result.error.startswith("Invalid arguments for 'get_property_faq': topic:")

    @pytest.mark.asyncio
    async def test_unknown_faq_topic_is_invalid(self, executor):
        result = await executor.execute(_call("get_property_faq", topic="sauna"))
        assert result.success is False
        assert "Invalid arguments" in result.error

    @pytest.mark.asyncio
    async def test_input_record_is_not_mutated(self, executor):
        call = _call("get_property_faq", topic="checkin")
        result = await executor.execute(call)
        assert result.success is True
        assert call.success is False
        assert call.result is None

    def test_parse_arguments_picks_variant(self):
        args = parse_arguments(ToolName.GET_PROPERTY_FAQ, {"topic": "wifi"})
        assert isinstance(args, FaqLookupArgs)
        assert args.property_id is None

    def test_every_tool_declared(self):
        names = {d.name for d in TOOL_DEFINITIONS.values()}
        assert names == {t.value for t in ToolName}
        assert len(get_schemas()) == len(TOOL_DEFINITIONS)


# ─── get_booking_context ────────────────────────────────────


class TestBookingLookup:
    @pytest.mark.asyncio
    async def test_found_by_email(self, executor):
        result = await executor.execute(_call("get_booking_context", email="ANN@example.com"))
        assert result.success is True
        assert result.result["found"] is True
        booking = result.result["bookings"][0]
        assert booking["booking_id"] == "bk-1001"
        assert booking["property_name"] == "Harbour View Cottage"
        assert booking["arrival_date"] == "2026-12-20"
        assert booking["num_guests"] == 2
        assert booking["previous_communications"] == 0

    @pytest.mark.asyncio
    async def test_secure_fields_never_returned(self, executor):
        result = await executor.execute(_call("get_booking_context", email="ann@example.com"))
        public = result.result["bookings"][0]["property_public_info"]
        assert "wifi_password" not in public
        assert "access_instructions_secure" not in public
        assert "4821" not in str(result.result)

    @pytest.mark.asyncio
    async def test_not_found(self, executor):
        result = await executor.execute(_call("get_booking_context", email="nobody@example.com"))
        assert result.success is True
        assert result.result == {
            "found": False,
            "message": "No booking found matching the provided information",
        }

    @pytest.mark.asyncio
    async def test_arrival_date_filter(self, executor):
        result = await executor.execute(
            _call("get_booking_context", name="taylor", arrival_date="2026-12-21")
        )
        assert result.result["found"] is False

        result = await executor.execute(
            _call("get_booking_context", name="taylor", arrival_date="2026-12-20")
        )
        assert result.success is True
        assert [b["booking_id"] for b in result.result["bookings"]] == ["bk-1001"]


# ─── get_property_faq ───────────────────────────────────────


class TestFaqLookup:
    @pytest.mark.asyncio
    async def test_property_override(self, executor):
        result = await executor.execute(
            _call("get_property_faq", property_id="prop-harbour-view", topic="parking")
        )
        assert result.result == {
            "found": True,
            "topic": "parking",
            "answer": "Harbour View has two car parks at the top of the driveway.",
            "source": "property_override",
            "property_specific": True,
        }

    @pytest.mark.asyncio
    async def test_default_answer(self, executor):
        result = await executor.execute(
            _call("get_property_faq", property_id="prop-harbour-view", topic="checkout")
        )
        assert result.result["source"] == "default"
        assert result.result["property_specific"] is False
        assert result.result["answer"].startswith("Check-out is by 10:00 AM.")


# ─── verify_identity ────────────────────────────────────────


class TestVerifyIdentity:
    @pytest.mark.asyncio
    async def test_verified(self, executor):
        result = await executor.execute(_call(
            "verify_identity",
            booking_id="bk-1001",
            provided_answers={"guest_name": "ann taylor", "arrival_date": "20/12/2026"},
        ))
        assert result.success is True
        assert result.result == {"verified": True}

    @pytest.mark.asyncio
    async def test_name_mismatch(self, executor):
        result = await executor.execute(_call(
            "verify_identity",
            booking_id="bk-1001",
            provided_answers={"guest_name": "Bob Smith"},
        ))
        assert result.result == {"verified": False, "reason": "Name does not match booking record"}


# ─── Approval tools ─────────────────────────────────────────


class TestApprovalTools:
    @pytest.mark.asyncio
    async def test_create_draft_reply(self, executor, workflow, repository):
        result = await executor.execute(_call(
            "create_draft_reply",
            text="Hi Ann, check-in is from 3pm.",
            booking_id="bk-1001",
            to_address="ann@example.com",
            confidence_score=0.8,
        ))
        assert result.success is True
        assert result.result["draft_created"] is True
        assert result.result["message"] == "Draft reply created and queued for approval"

        approval = await workflow.get(result.result["approval_id"])
        assert approval.type == ApprovalType.REPLY
        assert approval.status == ApprovalStatus.PENDING
        assert approval.comm_id == result.result["comm_id"]
        assert approval.payload["draft_reply"] == "Hi Ann, check-in is from 3pm."

        draft = repository.get_communication(result.result["comm_id"])
        assert draft.draft is True
        assert draft.to_address == "ann@example.com"

    @pytest.mark.asyncio
    async def test_enqueue_for_approval(self, executor, workflow):
        result = await executor.execute(_call(
            "enqueue_for_approval",
            type="escalation",
            payload={"guest": "ann@example.com"},
            reason="Guest reports a broken window",
            risk_flags=["emergency_keywords"],
        ))
        assert result.success is True
        assert result.result["queued"] is True
        assert result.result["reason"] == "Guest reports a broken window"

        approval = await workflow.get(result.result["approval_id"])
        assert approval.type == ApprovalType.ESCALATION
        assert approval.risk_flags == [RiskFlag.EMERGENCY_KEYWORDS]
        assert approval.payload == {
            "guest": "ann@example.com",
            "reason": "Guest reports a broken window",
        }

    @pytest.mark.asyncio
    async def test_send_email_always_refused(self, executor):
        result = await executor.execute(_call(
            "send_email", to="ann@example.com", subject="Hi", html_body="<p>Hi</p>",
        ))
        assert result.success is False
        assert result.error == AUTO_SEND_DISABLED
