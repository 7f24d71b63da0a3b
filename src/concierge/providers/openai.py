"""
Concierge OpenAI Provider

Wraps the OpenAI chat completions API behind the unified CompletionProvider
interface. Set OPENAI_API_KEY in the environment or pass api_key.

Also compatible with OpenAI-compatible APIs via base_url override.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any

from openai import AsyncOpenAI

from concierge.providers.base import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    ContentBlock,
    CompletionProvider,
    CompletionResult,
    ProviderConfig,
    Turn,
)


class OpenAIProvider(CompletionProvider):
    """OpenAI and OpenAI-compatible provider."""

    DEFAULT_MODEL = "gpt-4-turbo-preview"

    def __init__(self, config: ProviderConfig | None = None, client: AsyncOpenAI | None = None):
        super().__init__(config or ProviderConfig(model=self.DEFAULT_MODEL))
        self._client = client or self._create_client()

    def _create_client(self) -> AsyncOpenAI:
        kwargs: dict[str, Any] = {"timeout": self._config.timeout_seconds, "max_retries": 0}
        if self._config.api_key:
            kwargs["api_key"] = self._config.api_key
        if self._config.base_url:
            kwargs["base_url"] = self._config.base_url
        return AsyncOpenAI(**kwargs)

    async def _create_completion_impl(
        self,
        turns: Sequence[Turn],
        *,
        tools: list[dict] | None = None,
        tool_choice: str | None = None,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> CompletionResult:
        kwargs: dict[str, Any] = {
            "model": self._config.model,
            "messages": [self._convert_turn(t) for t in turns],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if tools:
            kwargs["tools"] = self._convert_tools(tools)
            if tool_choice:
                kwargs["tool_choice"] = tool_choice

        response = await self._client.chat.completions.create(**kwargs)
        return self._to_response(response)

    @staticmethod
    def _convert_turn(turn: Turn) -> dict[str, Any]:
        if turn.role == "tool":
            return {
                "role": "tool",
                "tool_call_id": turn.tool_call_id or "",
                "content": turn.content or "",
            }

        if turn.role == "assistant" and turn.tool_calls:
            return {
                "role": "assistant",
                "content": turn.content,
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {
                            "name": call.name,
                            "arguments": json.dumps(call.arguments),
                        },
                    }
                    for call in turn.tool_calls
                ],
            }

        return {"role": turn.role, "content": turn.content or ""}

    @staticmethod
    def _convert_tools(tools: list[dict]) -> list[dict]:
        return [
            {
                "type": "function",
                "function": {
                    "name": tool["name"],
                    "description": tool.get("description", ""),
                    "parameters": tool.get("parameters", {}),
                },
            }
            for tool in tools
        ]

    @staticmethod
    def _to_response(response: Any) -> CompletionResult:
        """Convert a chat completion into CompletionResult.

        Raises ValueError when the response has no choices or tool
        arguments are not valid JSON.
        """
        if not response.choices:
            raise ValueError("Completion returned no choices")

        choice = response.choices[0]
        msg = choice.message
        blocks: list[ContentBlock] = []

        if msg.content:
            blocks.append(ContentBlock(type="text", text=msg.content))

        for tc in msg.tool_calls or []:
            try:
                arguments = json.loads(tc.function.arguments or "{}")
            except json.JSONDecodeError as e:
                raise ValueError(f"Malformed arguments for tool '{tc.function.name}': {e}") from e
            blocks.append(
                ContentBlock(
                    type="tool_use",
                    tool_name=tc.function.name,
                    tool_input=arguments,
                    tool_use_id=tc.id,
                )
            )

        stop_reason_map = {
            "stop": "end_turn",
            "tool_calls": "tool_use",
            "length": "max_tokens",
            "content_filter": "end_turn",
        }
        usage = response.usage
        return CompletionResult(
            content=blocks,
            stop_reason=stop_reason_map.get(choice.finish_reason or "stop", "end_turn"),
            model=response.model or "",
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )
