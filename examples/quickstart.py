"""Concierge quickstart: draft a reply to one guest email.

Needs OPENAI_API_KEY (or CONCIERGE_PROVIDER=claude and ANTHROPIC_API_KEY)
and is run from the repository root so ./config is found.
"""

import asyncio

from concierge import ReceptionistService
from concierge.core.models import InboundMessage

service = ReceptionistService.from_env()
response = asyncio.run(service.handle_inbound_message(
    InboundMessage(
        sender="Ann Taylor <ann@example.com>",
        subject="Arrival",
        body="Hi! What time can we check in on Saturday?",
    )
))

print(f"Reply: {response.message}")
print(f"Confidence: {response.confidence:.2f}")
print(f"Requires approval: {response.requires_approval} ({response.reasoning})")
if response.approval_id:
    print(f"Queued as {response.approval_id}. Approve with: concierge approve {response.approval_id}")
