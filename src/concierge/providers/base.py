"""
Concierge Completion Provider Base

Abstract interface for completion providers. All providers implement
this interface, so the processor can swap models without changing
business logic.

Key design decisions:
- Async-first (all providers are async)
- Every attempt is bounded by ``timeout_seconds``; a timed-out attempt is
  cancelled and counts as a failure
- Retry with exponential backoff built into the base class
- Exchange turns and tool calls use a provider-neutral format (Turn,
  CompletionResult); each provider converts to and from its own wire format
"""

from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from concierge.exceptions import ProviderError, ProviderTimeoutError
from concierge.logging import get_logger

logger = get_logger("concierge.providers")

DEFAULT_TEMPERATURE = 0.3
DEFAULT_MAX_TOKENS = 1000


class ToolInvocation(BaseModel):
    """A tool call requested by the model inside an assistant turn."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class Turn(BaseModel):
    """One entry of the ordered exchange sent to the provider."""
    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user", "assistant", "tool"]
    content: str | None = None
    tool_calls: tuple[ToolInvocation, ...] = ()
    tool_call_id: str | None = None


class ContentBlock(BaseModel):
    """A single content block in a provider response."""
    type: str = "text"  # "text" or "tool_use"
    text: str = ""
    tool_name: str = ""
    tool_input: dict[str, Any] = Field(default_factory=dict)
    tool_use_id: str = ""


class CompletionResult(BaseModel):
    """Unified response from any completion provider."""
    content: list[ContentBlock] = Field(default_factory=list)
    stop_reason: str = "end_turn"
    model: str = ""
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def text(self) -> str:
        """Concatenated text from all text blocks."""
        return "".join(b.text for b in self.content if b.type == "text")

    @property
    def tool_calls(self) -> list[ContentBlock]:
        return [b for b in self.content if b.type == "tool_use"]

    @property
    def has_tool_use(self) -> bool:
        return any(b.type == "tool_use" for b in self.content)


class ProviderConfig(BaseModel):
    """Configuration for a completion provider."""
    api_key: str | None = None
    model: str = ""
    base_url: str | None = None
    max_retries: int = 3
    timeout_seconds: float = 30.0
    retry_base_delay: float = 1.0  # exponential backoff base (1s, 2s, 4s)


class CompletionProvider(ABC):
    """Abstract base class for completion providers.

    Subclasses implement _create_completion_impl(). The base class adds
    the per-attempt timeout and retry policy.
    """

    def __init__(self, config: ProviderConfig | None = None):
        self._config = config or ProviderConfig()

    @property
    def name(self) -> str:
        return self.__class__.__name__

    @property
    def model(self) -> str:
        return self._config.model

    @abstractmethod
    async def _create_completion_impl(
        self,
        turns: Sequence[Turn],
        *,
        tools: list[dict] | None = None,
        tool_choice: str | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> CompletionResult:
        ...

    async def complete(
        self,
        turns: Sequence[Turn],
        *,
        tools: list[dict] | None = None,
        tool_choice: str | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> CompletionResult:
        """Request a completion with timeout, retry and exponential backoff.

        Args:
            turns: Ordered exchange turns.
            tools: Optional tool schemas ({name, description, parameters}).
            tool_choice: "auto" to let the model pick tools.
            temperature: Sampling temperature.
            max_tokens: Maximum output length.

        Raises:
            ProviderTimeoutError: if the last attempt timed out.
            ProviderError: if every attempt failed.
        """
        last_error: Exception | None = None
        for attempt in range(self._config.max_retries):
            start = time.monotonic()
            try:
                response = await asyncio.wait_for(
                    self._create_completion_impl(
                        turns,
                        tools=tools,
                        tool_choice=tool_choice,
                        temperature=temperature,
                        max_tokens=max_tokens,
                    ),
                    timeout=self._config.timeout_seconds,
                )
                logger.debug(
                    "Completion received",
                    extra={
                        "provider": self.name,
                        "duration_ms": round((time.monotonic() - start) * 1000, 1),
                    },
                )
                return response
            except Exception as e:
                last_error = e
                logger.warning(
                    "Completion attempt %d/%d failed: %s",
                    attempt + 1, self._config.max_retries, e,
                    extra={"provider": self.name},
                )
                if attempt < self._config.max_retries - 1:
                    delay = self._config.retry_base_delay * (2 ** attempt)
                    await asyncio.sleep(delay)

        if isinstance(last_error, TimeoutError):
            raise ProviderTimeoutError(
                self.name, f"timed out after {self._config.timeout_seconds:g}s"
            ) from last_error
        raise ProviderError(
            self.name, f"failed after {self._config.max_retries} attempts: {last_error}"
        ) from last_error

    async def health_check(self) -> bool:
        """Ping the provider with a trivial prompt."""
        try:
            response = await self.complete(
                [Turn(role="user", content='Hello, this is a health check. Please respond with "OK".')],
                max_tokens=10,
            )
        except ProviderError:
            return False
        return "OK" in response.text
