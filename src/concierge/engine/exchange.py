"""
Concierge Exchange Builder

An immutable, ordered list of turns sent to the completion provider.
Every phase of processing produces a new Exchange; nothing is spliced
in place.

Initial order:

    system prompt
    tool-usage prompt
    prior history (oldest first)
    booking-context note      (optional)
    property-context note     (optional)
    user message
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from concierge.config.schema import PromptConfig
from concierge.core.models import HistoryTurn, RequestContext, ToolCall
from concierge.providers.base import ContentBlock, ToolInvocation, Turn

_HISTORY_ROLES = {"user", "assistant"}


@dataclass(frozen=True)
class Exchange:
    turns: tuple[Turn, ...] = ()

    def __len__(self) -> int:
        return len(self.turns)

    def extend(self, turns: Iterable[Turn]) -> Exchange:
        return Exchange(self.turns + tuple(turns))

    def with_tool_round(self, block: ContentBlock, call: ToolCall) -> Exchange:
        """Append the assistant's tool request and the tool's result."""
        request = Turn(
            role="assistant",
            tool_calls=(
                ToolInvocation(id=block.tool_use_id, name=block.tool_name, arguments=block.tool_input),
            ),
        )
        result = Turn(
            role="tool",
            tool_call_id=block.tool_use_id,
            content=tool_result_content(call),
        )
        return self.extend((request, result))


def tool_result_content(call: ToolCall) -> str:
    if call.success:
        return json.dumps(call.result, default=str)
    return json.dumps({"error": call.error}, default=str)


def _history_turn(turn: HistoryTurn) -> Turn:
    role = turn.role if turn.role in _HISTORY_ROLES else "user"
    return Turn(role=role, content=turn.content)


def build_exchange(
    prompts: PromptConfig,
    message: str,
    context: RequestContext,
    history: Sequence[HistoryTurn] = (),
) -> Exchange:
    turns: list[Turn] = [
        Turn(role="system", content=prompts.system),
        Turn(role="system", content=prompts.tools),
    ]
    turns.extend(_history_turn(t) for t in history)

    if context.booking is not None:
        note = json.dumps(context.booking.model_dump(mode="json"), indent=2)
        turns.append(Turn(role="system", content=f"Booking context: {note}"))

    if context.property is not None:
        note = json.dumps(context.property.public_view(), indent=2)
        turns.append(Turn(role="system", content=f"Property context: {note}"))

    turns.append(Turn(role="user", content=message))
    return Exchange(tuple(turns))
