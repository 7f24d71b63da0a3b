"""
Concierge: Moderated Guest Reply Engine for Holiday Homes

Usage:
    from concierge import ReceptionistService
    from concierge.core.models import InboundMessage

    service = ReceptionistService.from_env()
    response = await service.handle_inbound_message(
        InboundMessage(sender="ann@example.com", subject="Parking", body="Where can I park?")
    )
    # response.requires_approval -> a pending approval holds the draft
"""

from concierge.config.provider import ConfigProvider
from concierge.core.models import AIResponse, Approval, InboundMessage, RequestContext
from concierge.engine.processor import RequestProcessor
from concierge.ratelimit import RateLimiter
from concierge.service import ReceptionistService
from concierge.storage.repository import Repository
from concierge.workflow.approvals import ApprovalWorkflow

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "AIResponse",
    "Approval",
    "ApprovalWorkflow",
    "ConfigProvider",
    "InboundMessage",
    "RateLimiter",
    "ReceptionistService",
    "Repository",
    "RequestContext",
    "RequestProcessor",
]
