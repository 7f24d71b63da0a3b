"""
Concierge Completion Provider Abstraction

Providers wrap different completion APIs (OpenAI, Anthropic) behind a
common interface with tool calling.

Usage:
    from concierge.providers import create_provider

    provider = create_provider("openai")
    result = await provider.complete(turns, tools=get_schemas(), tool_choice="auto")
"""

from concierge.providers.base import (
    CompletionProvider,
    CompletionResult,
    ContentBlock,
    ProviderConfig,
    ToolInvocation,
    Turn,
)

__all__ = [
    "CompletionProvider",
    "CompletionResult",
    "ContentBlock",
    "ProviderConfig",
    "ToolInvocation",
    "Turn",
    "create_provider",
]


def create_provider(
    name: str = "openai",
    *,
    api_key: str | None = None,
    model: str | None = None,
    timeout_seconds: float = 30.0,
) -> CompletionProvider:
    """Factory function to create a completion provider by name.

    Args:
        name: Provider name ("openai", "claude").
        api_key: Optional API key override.
        model: Optional model name override.
        timeout_seconds: Per-attempt timeout.

    Returns:
        Configured CompletionProvider instance.
    """
    name_lower = name.lower()

    if name_lower == "openai":
        from concierge.providers.openai import OpenAIProvider
        config = ProviderConfig(
            api_key=api_key,
            model=model or OpenAIProvider.DEFAULT_MODEL,
            timeout_seconds=timeout_seconds,
        )
        return OpenAIProvider(config)
    elif name_lower in ("claude", "anthropic"):
        from concierge.providers.claude import ClaudeProvider
        config = ProviderConfig(
            api_key=api_key,
            model=model or ClaudeProvider.DEFAULT_MODEL,
            timeout_seconds=timeout_seconds,
        )
        return ClaudeProvider(config)
    else:
        raise ValueError(f"Unknown provider: {name}. Supported: openai, claude")
