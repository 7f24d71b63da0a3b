"""
Concierge Core Data Models

All shared types used across the engine. This module is the foundation
that every other component imports from. It must have no internal
dependencies beyond pydantic.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ─── Enums ───────────────────────────────────────────────────

class RiskLevel(str, Enum):
    """Risk classification produced by pre-flight screening."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RiskFlag(str, Enum):
    """Closed set of flags attached to responses and approvals."""
    POLICY_VIOLATION = "policy_violation"
    IDENTITY_UNVERIFIED = "identity_unverified"
    SENSITIVE_INFO_REQUESTED = "sensitive_info_requested"
    NEGATIVE_SENTIMENT = "negative_sentiment"
    EMERGENCY_KEYWORDS = "emergency_keywords"
    REFUND_REQUEST = "refund_request"
    LOW_CONFIDENCE = "low_confidence"


class Intent(str, Enum):
    """Keyword-derived intent of a guest message."""
    WIFI_REQUEST = "wifi_request"
    CHECKIN_CHECKOUT_INFO = "checkin_checkout_info"
    DIRECTIONS_REQUEST = "directions_request"
    ACCESS_REQUEST = "access_request"
    GENERAL_INQUIRY = "general_inquiry"


class Sentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class ApprovalType(str, Enum):
    REPLY = "reply"
    VERIFICATION = "verification"
    POLICY = "policy"
    ESCALATION = "escalation"


class ApprovalStatus(str, Enum):
    """Lifecycle state of a human review unit. Only PENDING is non-terminal."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class CommDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


class CommChannel(str, Enum):
    EMAIL = "email"
    SMS = "sms"


class BookingChannel(str, Enum):
    AIRBNB = "Airbnb"
    DIRECT = "Direct"
    BOOKING_COM = "Booking.com"


class BookingStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    PENDING = "pending"


class ToolName(str, Enum):
    """Tools declared to the completion provider."""
    GET_BOOKING_CONTEXT = "get_booking_context"
    GET_PROPERTY_FAQ = "get_property_faq"
    VERIFY_IDENTITY = "verify_identity"
    CREATE_DRAFT_REPLY = "create_draft_reply"
    ENQUEUE_FOR_APPROVAL = "enqueue_for_approval"
    SEND_EMAIL = "send_email"


# ─── Records ─────────────────────────────────────────────────

class Property(BaseModel):
    property_id: str
    name: str
    address: str = ""
    wifi_ssid: str | None = None
    wifi_password: str | None = None
    checkin_time: str = "3:00 PM"
    checkout_time: str = "10:00 AM"
    parking_instructions: str | None = None
    access_instructions_public: str | None = None
    access_instructions_secure: str | None = None
    house_rules: str | None = None

    def public_view(self) -> dict[str, Any]:
        """Property fields that are safe to show before identity verification."""
        return self.model_dump(
            mode="json",
            exclude={"wifi_password", "access_instructions_secure"},
        )


class Booking(BaseModel):
    booking_id: str
    channel: BookingChannel = BookingChannel.DIRECT
    guest_name: str
    guest_email: str
    guest_phone: str | None = None
    property_id: str
    arrival_date: datetime
    departure_date: datetime
    num_guests: int = 1
    pets: bool = False
    status: BookingStatus = BookingStatus.CONFIRMED
    notes: str | None = None


class Communication(BaseModel):
    """A message in or out. Outbound replies awaiting review have draft=True."""
    comm_id: str = Field(default_factory=lambda: f"comm-{uuid.uuid4().hex[:12]}")
    booking_id: str | None = None
    direction: CommDirection = CommDirection.OUTBOUND
    channel: CommChannel = CommChannel.EMAIL
    subject: str | None = None
    body: str
    draft: bool = False
    sent_at: datetime | None = None
    approved_by: str | None = None
    approved_at: datetime | None = None
    thread_id: str | None = None
    from_address: str | None = None
    to_address: str | None = None
    in_reply_to: str | None = None
    created_at: datetime = Field(default_factory=_now)


class BookingContext(BaseModel):
    """A booking joined with its property and prior communications."""
    booking: Booking
    property: Property | None = None
    previous_comms: list[Communication] = Field(default_factory=list)


class IdentityVerification(BaseModel):
    verified: bool
    reason: str | None = None


class Approval(BaseModel):
    """A persisted unit of human review."""
    approval_id: str = Field(default_factory=lambda: f"apr-{uuid.uuid4().hex[:12]}")
    type: ApprovalType
    payload: dict[str, Any] = Field(default_factory=dict)
    status: ApprovalStatus = ApprovalStatus.PENDING
    created_at: datetime = Field(default_factory=_now)
    resolved_at: datetime | None = None
    assignee: str | None = None
    comm_id: str | None = None
    risk_flags: list[RiskFlag] = Field(default_factory=list)
    confidence_score: float | None = Field(default=None, ge=0.0, le=1.0)

    @property
    def is_resolved(self) -> bool:
        return self.status != ApprovalStatus.PENDING


# ─── Inbound ─────────────────────────────────────────────────

class InboundMessage(BaseModel):
    """Raw guest message plus channel metadata. Consumed once per cycle."""
    model_config = ConfigDict(frozen=True)

    sender: str
    recipient: str = ""
    subject: str = ""
    body: str
    thread_id: str | None = None
    message_id: str = Field(default_factory=lambda: f"msg-{uuid.uuid4().hex[:12]}")
    received_at: datetime = Field(default_factory=_now)


class HistoryTurn(BaseModel):
    """One prior turn of the conversation, as shown to the model."""
    model_config = ConfigDict(frozen=True)

    role: str
    content: str
    timestamp: datetime | None = None


class RequestContext(BaseModel):
    """Situational data gathered once per inbound message."""
    model_config = ConfigDict(frozen=True)

    booking: Booking | None = None
    property: Property | None = None
    conversation_history: tuple[HistoryTurn, ...] = ()
    user_verified: bool = False


# ─── Screening & Analysis ────────────────────────────────────

class SafetyCheckResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    passed: bool
    violations: tuple[str, ...] = ()
    risk_level: RiskLevel = RiskLevel.LOW
    confidence: float = Field(0.9, ge=0.0, le=1.0)


class ExtractedEntities(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: str | None = None
    arrival_date: str | None = None


class RequestAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    original_message: str
    detected_intent: Intent = Intent.GENERAL_INQUIRY
    extracted_entities: ExtractedEntities = Field(default_factory=ExtractedEntities)
    requires_identity_verification: bool = False
    emergency_detected: bool = False
    sentiment: Sentiment = Sentiment.NEUTRAL


class ValidationResult(BaseModel):
    """Outcome of re-screening a generated reply."""
    safe: bool
    risk_flags: list[RiskFlag] = Field(default_factory=list)
    reason: str | None = None


class ApprovalDecision(BaseModel):
    required: bool
    reason: str


# ─── Tool Calls ──────────────────────────────────────────────

class ToolCall(BaseModel):
    """A single tool invocation requested by the model.

    ``name`` is kept as the model sent it so that requests for undeclared
    tools can still be recorded as failed calls. Typed arguments are
    derived on demand by the executor.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"call-{uuid.uuid4().hex[:8]}")
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    result: Any = None
    success: bool = False
    error: str | None = None

    @property
    def tool(self) -> ToolName | None:
        try:
            return ToolName(self.name)
        except ValueError:
            return None


# ─── Outcome ─────────────────────────────────────────────────

class AIResponse(BaseModel):
    """The result of processing one inbound message."""
    message: str
    confidence: float = Field(ge=0.0, le=1.0)
    tool_calls: list[ToolCall] = Field(default_factory=list)
    risk_flags: list[RiskFlag] = Field(default_factory=list)
    requires_approval: bool = True
    reasoning: str = ""
    approval_id: str | None = None
