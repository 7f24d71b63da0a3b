"""
Concierge Tool Argument Models

Each declared tool has its own strongly-typed argument record. The raw
JSON blob sent by the completion provider is parsed into exactly one of
these variants, keyed by tool name, before dispatch.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from concierge.core.models import ApprovalType, RiskFlag, ToolName

FaqTopic = Literal[
    "wifi", "checkin", "checkout", "parking", "rubbish", "heating",
    "tv", "directions", "amenities", "emergency", "pets", "smoking",
    "noise", "cleaning", "laundry",
]


class _ToolArgs(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class BookingLookupArgs(_ToolArgs):
    email: str | None = None
    name: str | None = None
    phone: str | None = None
    arrival_date: date | None = None


class FaqLookupArgs(_ToolArgs):
    property_id: str | None = None
    topic: FaqTopic


class VerifyIdentityArgs(_ToolArgs):
    booking_id: str
    provided_answers: dict[str, str]


class DraftReplyArgs(_ToolArgs):
    text: str
    thread_id: str | None = None
    booking_id: str | None = None
    to_address: str | None = None
    subject: str | None = None
    confidence_score: float = Field(0.75, ge=0.0, le=1.0)
    risk_flags: list[RiskFlag] = Field(default_factory=list)


class EnqueueApprovalArgs(_ToolArgs):
    type: ApprovalType
    payload: dict[str, Any]
    reason: str
    risk_flags: list[RiskFlag] = Field(default_factory=list)
    confidence_score: float | None = Field(None, ge=0.0, le=1.0)


class SendEmailArgs(_ToolArgs):
    to: str
    subject: str
    html_body: str
    in_reply_to: str | None = None
    thread_id: str | None = None


ToolArguments = Union[
    BookingLookupArgs,
    FaqLookupArgs,
    VerifyIdentityArgs,
    DraftReplyArgs,
    EnqueueApprovalArgs,
    SendEmailArgs,
]

ARGUMENT_MODELS: dict[ToolName, type[_ToolArgs]] = {
    ToolName.GET_BOOKING_CONTEXT: BookingLookupArgs,
    ToolName.GET_PROPERTY_FAQ: FaqLookupArgs,
    ToolName.VERIFY_IDENTITY: VerifyIdentityArgs,
    ToolName.CREATE_DRAFT_REPLY: DraftReplyArgs,
    ToolName.ENQUEUE_FOR_APPROVAL: EnqueueApprovalArgs,
    ToolName.SEND_EMAIL: SendEmailArgs,
}


def parse_arguments(name: ToolName, raw: dict[str, Any]) -> ToolArguments:
    """Validate a raw argument blob against the record for ``name``.

    Raises pydantic.ValidationError when required fields are missing
    or have the wrong shape.
    """
    return ARGUMENT_MODELS[name].model_validate(raw)  # type: ignore[return-value]
