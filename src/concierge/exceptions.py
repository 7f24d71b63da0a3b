"""
Concierge Custom Exceptions

Structured exception hierarchy for the reply engine.
All Concierge-specific exceptions inherit from ConciergeError and carry
an ErrorKind plus structured details. ``reason`` renders the
operator-facing text stored on approvals and in logs.

Exception hierarchy:
    ConciergeError
    +-- ProviderError                 (completion provider failure)
    |   +-- ProviderTimeoutError      (request exceeded its deadline)
    +-- ToolExecutionError            (tool handler failure)
    +-- ResponseValidationError       (generated reply failed re-screening)
    +-- ApprovalStateConflictError    (resolve on a missing / non-pending approval)
    +-- ConfigurationError            (config files or sections missing / invalid)
    +-- RateLimitExceededError        (client exceeded its request window)
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of error kinds surfaced by the engine."""
    PROVIDER_INVOCATION_FAILURE = "provider_invocation_failure"
    TOOL_EXECUTION_FAILURE = "tool_execution_failure"
    RESPONSE_VALIDATION_FAILURE = "response_validation_failure"
    APPROVAL_STATE_CONFLICT = "approval_state_conflict"
    CONFIGURATION_MISSING = "configuration_missing"
    RATE_LIMITED = "rate_limited"


class ConciergeError(Exception):
    """Base exception for all Concierge errors."""

    kind: ErrorKind = ErrorKind.PROVIDER_INVOCATION_FAILURE

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    @property
    def reason(self) -> str:
        """Human-readable reason for operator-facing records."""
        return f"{self.kind.value}: {self}"


class ProviderError(ConciergeError):
    """Base exception for completion provider errors."""

    kind = ErrorKind.PROVIDER_INVOCATION_FAILURE

    def __init__(self, provider_name: str, message: str, details: dict | None = None):
        super().__init__(
            f"Provider '{provider_name}' error: {message}",
            details={"provider_name": provider_name, **(details or {})},
        )
        self.provider_name = provider_name


class ProviderTimeoutError(ProviderError):
    """Raised when a provider request exceeds its timeout."""

    pass


class ToolExecutionError(ConciergeError):
    """Raised inside a tool handler; converted to a failed ToolCall at dispatch."""

    kind = ErrorKind.TOOL_EXECUTION_FAILURE

    def __init__(self, tool_name: str, message: str, details: dict | None = None):
        super().__init__(message, details={"tool_name": tool_name, **(details or {})})
        self.tool_name = tool_name


class ResponseValidationError(ConciergeError):
    """Raised when a generated reply fails safety or leak checks."""

    kind = ErrorKind.RESPONSE_VALIDATION_FAILURE

    def __init__(self, message: str, risk_flags: list[str] | None = None):
        super().__init__(message, details={"risk_flags": risk_flags or []})
        self.risk_flags = risk_flags or []


class ApprovalStateConflictError(ConciergeError):
    """Raised when an approval is missing or no longer pending.

    The first resolution wins; later attempts never overwrite it.
    """

    kind = ErrorKind.APPROVAL_STATE_CONFLICT

    def __init__(self, approval_id: str, message: str = "", details: dict | None = None):
        super().__init__(
            message or f"Approval not found or not pending: {approval_id}",
            details={"approval_id": approval_id, **(details or {})},
        )
        self.approval_id = approval_id


class ConfigurationError(ConciergeError):
    """Raised when required configuration is absent or invalid. Fatal at startup."""

    kind = ErrorKind.CONFIGURATION_MISSING

    def __init__(self, message: str, config_type: str, file_path: str):
        super().__init__(
            f"Configuration error in {config_type} ({file_path}): {message}",
            details={"config_type": config_type, "file_path": file_path},
        )
        self.config_type = config_type
        self.file_path = file_path


class RateLimitExceededError(ConciergeError):
    """Raised when a client exceeds its request allowance."""

    kind = ErrorKind.RATE_LIMITED

    def __init__(self, client_id: str, limit: int, window_seconds: float, reset_at: float):
        super().__init__(
            f"Too many requests. Limit: {limit} per {window_seconds:g} seconds",
            details={"client_id": client_id, "limit": limit, "reset_at": reset_at},
        )
        self.client_id = client_id
        self.reset_at = reset_at
