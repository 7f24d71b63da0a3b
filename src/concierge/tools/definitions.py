"""
Concierge Tool Catalog

JSON-schema declarations for the six tools exposed to the completion
provider. Schemas are provider-neutral; each provider converts them to
its own wire format.
"""

from dataclasses import dataclass, field
from typing import get_args

from concierge.core.models import ApprovalType, ToolName
from concierge.tools.models import FaqTopic

FAQ_TOPICS = list(get_args(FaqTopic))


@dataclass
class ToolDefinition:
    """A tool declared to the model."""
    name: str
    description: str
    parameters: dict = field(default_factory=dict)


GET_BOOKING_CONTEXT_TOOL = ToolDefinition(
    name=ToolName.GET_BOOKING_CONTEXT.value,
    description=(
        "Retrieve booking information and context for a guest using their "
        "email, name, phone, or arrival date"
    ),
    parameters={
        "type": "object",
        "properties": {
            "email": {"type": "string", "description": "Guest email address"},
            "name": {"type": "string", "description": "Guest full name"},
            "phone": {"type": "string", "description": "Guest phone number"},
            "arrival_date": {
                "type": "string",
                "description": "Expected arrival date in YYYY-MM-DD format",
            },
        },
        "required": [],
    },
)

GET_PROPERTY_FAQ_TOOL = ToolDefinition(
    name=ToolName.GET_PROPERTY_FAQ.value,
    description=(
        "Get FAQ answer for a specific topic, with property-specific "
        "overrides if available"
    ),
    parameters={
        "type": "object",
        "properties": {
            "property_id": {
                "type": "string",
                "description": "Property ID to get specific FAQ answers for",
            },
            "topic": {
                "type": "string",
                "description": "FAQ topic to look up",
                "enum": FAQ_TOPICS,
            },
        },
        "required": ["topic"],
    },
)

VERIFY_IDENTITY_TOOL = ToolDefinition(
    name=ToolName.VERIFY_IDENTITY.value,
    description="Verify guest identity against booking record before sharing secure information",
    parameters={
        "type": "object",
        "properties": {
            "booking_id": {"type": "string", "description": "Booking ID to verify against"},
            "provided_answers": {
                "type": "object",
                "description": "Guest-provided answers for verification",
            },
        },
        "required": ["booking_id", "provided_answers"],
    },
)

CREATE_DRAFT_REPLY_TOOL = ToolDefinition(
    name=ToolName.CREATE_DRAFT_REPLY.value,
    description="Create a draft reply for human approval before sending",
    parameters={
        "type": "object",
        "properties": {
            "thread_id": {
                "type": "string",
                "description": "Email thread ID for conversation continuity",
            },
            "text": {"type": "string", "description": "Draft reply text"},
            "booking_id": {"type": "string", "description": "Related booking ID if applicable"},
            "to_address": {"type": "string", "description": "Recipient email address"},
            "subject": {"type": "string", "description": "Email subject line"},
        },
        "required": ["text"],
    },
)

ENQUEUE_FOR_APPROVAL_TOOL = ToolDefinition(
    name=ToolName.ENQUEUE_FOR_APPROVAL.value,
    description=(
        "Add request to approval queue for human review when uncertain or "
        "policy violations detected"
    ),
    parameters={
        "type": "object",
        "properties": {
            "type": {
                "type": "string",
                "description": "Type of approval needed",
                "enum": [t.value for t in ApprovalType],
            },
            "payload": {"type": "object", "description": "Approval request details"},
            "reason": {"type": "string", "description": "Reason for requiring approval"},
            "risk_flags": {
                "type": "array",
                "description": "Detected risk flags",
                "items": {"type": "string"},
            },
            "confidence_score": {"type": "number", "description": "AI confidence score (0-1)"},
        },
        "required": ["type", "payload", "reason"],
    },
)

SEND_EMAIL_TOOL = ToolDefinition(
    name=ToolName.SEND_EMAIL.value,
    description=(
        "Send email response (only when auto-send mode is enabled, "
        "otherwise use create_draft_reply)"
    ),
    parameters={
        "type": "object",
        "properties": {
            "to": {"type": "string", "description": "Recipient email address"},
            "subject": {"type": "string", "description": "Email subject"},
            "html_body": {"type": "string", "description": "Email body in HTML format"},
            "in_reply_to": {
                "type": "string",
                "description": "Message ID of email being replied to",
            },
            "thread_id": {
                "type": "string",
                "description": "Email thread ID for conversation continuity",
            },
        },
        "required": ["to", "subject", "html_body"],
    },
)

TOOL_DEFINITIONS: dict[ToolName, ToolDefinition] = {
    ToolName.GET_BOOKING_CONTEXT: GET_BOOKING_CONTEXT_TOOL,
    ToolName.GET_PROPERTY_FAQ: GET_PROPERTY_FAQ_TOOL,
    ToolName.VERIFY_IDENTITY: VERIFY_IDENTITY_TOOL,
    ToolName.CREATE_DRAFT_REPLY: CREATE_DRAFT_REPLY_TOOL,
    ToolName.ENQUEUE_FOR_APPROVAL: ENQUEUE_FOR_APPROVAL_TOOL,
    ToolName.SEND_EMAIL: SEND_EMAIL_TOOL,
}


def get_schemas() -> list[dict]:
    """Tool schemas in declaration order, for the provider ``tools`` parameter."""
    return [
        {
            "name": t.name,
            "description": t.description,
            "parameters": t.parameters,
        }
        for t in TOOL_DEFINITIONS.values()
    ]
