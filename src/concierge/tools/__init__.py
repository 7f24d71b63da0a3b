"""
Concierge Tool Calling

The six tools the model may call while drafting a reply:

    get_booking_context   booking lookup by email / name / phone / arrival date
    get_property_faq      FAQ answer with per-property overrides
    verify_identity       check guest answers against the booking record
    create_draft_reply    draft + pending reply approval
    enqueue_for_approval  raise an item for human review
    send_email            declared for completeness; always refused

Components:
- TOOL_DEFINITIONS / get_schemas(): schema catalog sent to the provider
- parse_arguments(): raw JSON blob -> typed argument record
- ToolExecutor: exhaustive dispatch, failures recorded on the ToolCall
"""

from concierge.tools.definitions import TOOL_DEFINITIONS, ToolDefinition, get_schemas
from concierge.tools.executor import ToolExecutor
from concierge.tools.models import ToolArguments, parse_arguments

__all__ = [
    "TOOL_DEFINITIONS",
    "ToolArguments",
    "ToolDefinition",
    "ToolExecutor",
    "get_schemas",
    "parse_arguments",
]
