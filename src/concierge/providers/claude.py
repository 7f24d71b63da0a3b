"""
Concierge Claude Provider

Wraps the Anthropic SDK (anthropic.AsyncAnthropic) behind the unified
CompletionProvider interface. Falls back to the ANTHROPIC_API_KEY env var if no
key is provided.

System turns are folded, in order, into the ``system`` parameter. Tool
calls and tool results become tool_use / tool_result content blocks.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import anthropic

from concierge.providers.base import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    ContentBlock,
    CompletionProvider,
    CompletionResult,
    ProviderConfig,
    Turn,
)


class ClaudeProvider(CompletionProvider):
    """Anthropic Claude provider via the official SDK."""

    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    def __init__(
        self,
        config: ProviderConfig | None = None,
        client: anthropic.AsyncAnthropic | None = None,
    ):
        super().__init__(config or ProviderConfig(model=self.DEFAULT_MODEL))
        self._client = client or anthropic.AsyncAnthropic(
            api_key=self._config.api_key or None,
            timeout=self._config.timeout_seconds,
            max_retries=0,
        )

    async def _create_completion_impl(
        self,
        turns: Sequence[Turn],
        *,
        tools: list[dict] | None = None,
        tool_choice: str | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> CompletionResult:
        system, messages = self._convert_turns(turns)
        kwargs: dict[str, Any] = {
            "model": self._config.model,
            "max_tokens": max_tokens,
            "messages": messages,
            "temperature": temperature,
        }
        if system:
            kwargs["system"] = system
        if tools:
            kwargs["tools"] = [
                {
                    "name": t["name"],
                    "description": t.get("description", ""),
                    "input_schema": t.get("parameters", {}),
                }
                for t in tools
            ]
            if tool_choice:
                kwargs["tool_choice"] = {"type": tool_choice}

        response = await self._client.messages.create(**kwargs)
        return self._to_response(response)

    @staticmethod
    def _convert_turns(turns: Sequence[Turn]) -> tuple[str, list[dict[str, Any]]]:
        system_parts: list[str] = []
        messages: list[dict[str, Any]] = []

        def append(role: str, blocks: list[dict[str, Any]]) -> None:
            # Anthropic expects alternating roles; merge runs of the same role.
            if messages and messages[-1]["role"] == role:
                messages[-1]["content"].extend(blocks)
            else:
                messages.append({"role": role, "content": blocks})

        for turn in turns:
            if turn.role == "system":
                if turn.content:
                    system_parts.append(turn.content)
            elif turn.role == "tool":
                append("user", [{
                    "type": "tool_result",
                    "tool_use_id": turn.tool_call_id or "",
                    "content": turn.content or "",
                }])
            elif turn.role == "assistant":
                blocks: list[dict[str, Any]] = []
                if turn.content:
                    blocks.append({"type": "text", "text": turn.content})
                for call in turn.tool_calls:
                    blocks.append({
                        "type": "tool_use",
                        "id": call.id,
                        "name": call.name,
                        "input": call.arguments,
                    })
                append("assistant", blocks)
            else:
                append("user", [{"type": "text", "text": turn.content or ""}])

        return "\n\n".join(system_parts), messages

    @staticmethod
    def _to_response(response: Any) -> CompletionResult:
        blocks: list[ContentBlock] = []
        for block in response.content:
            if block.type == "text":
                blocks.append(ContentBlock(type="text", text=block.text))
            elif block.type == "tool_use":
                blocks.append(ContentBlock(
                    type="tool_use",
                    tool_name=block.name,
                    tool_input=block.input,
                    tool_use_id=block.id,
                ))

        return CompletionResult(
            content=blocks,
            stop_reason=response.stop_reason or "end_turn",
            model=response.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
