"""
Concierge Config Provider

An explicitly constructed, TTL-cached view over the YAML configuration.
Injected into the safety gate, approval gate and tool executor instead of
a process-wide singleton.

Reload policy:
- The cached AppConfig is served until it is older than ``ttl_seconds``.
- A stale read triggers a reload. Concurrent reloads are idempotent:
  each builds a complete AppConfig off to the side and publishes it with
  a single assignment, so readers never see a partially-built config
  (last writer wins).
- The clock is injectable for tests.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from typing import Generic, TypeVar

from concierge.config.loader import load_app_config
from concierge.config.schema import (
    AppConfig,
    ApprovalSettings,
    ConfidenceThresholds,
    FAQConfig,
    PolicyConfig,
    PromptConfig,
    PropertyFAQResult,
)
from concierge.logging import get_logger

logger = get_logger("concierge.config")

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 300.0


class TTLCache(Generic[T]):
    """Single-value cache that expires ``ttl_seconds`` after it was stored."""

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self._ttl = ttl_seconds
        self._clock = clock
        self._entry: tuple[T, float] | None = None

    def get(self) -> T | None:
        entry = self._entry
        if entry is None:
            return None
        value, stored_at = entry
        if self._clock() - stored_at >= self._ttl:
            return None
        return value

    def set(self, value: T) -> None:
        self._entry = (value, self._clock())

    def clear(self) -> None:
        self._entry = None

    @property
    def stored_at(self) -> float | None:
        return self._entry[1] if self._entry else None


class ConfigProvider:
    """Async accessor for policies, FAQs and prompts."""

    def __init__(
        self,
        loader: Callable[[], AppConfig] | None = None,
        *,
        config_dir: Path | str | None = None,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._loader = loader or (lambda: load_app_config(config_dir))
        self._cache: TTLCache[AppConfig] = TTLCache(ttl_seconds, clock)
        self._last_load_time: datetime | None = None

    @classmethod
    def from_config(cls, config: AppConfig) -> ConfigProvider:
        """Provider that always serves ``config``. Useful for tests and embedding."""
        return cls(loader=lambda: config, ttl_seconds=float("inf"))

    async def load(self) -> AppConfig:
        cached = self._cache.get()
        if cached is not None:
            return cached

        config = await asyncio.to_thread(self._loader)
        self._cache.set(config)
        self._last_load_time = datetime.now(timezone.utc)
        logger.info("Configuration loaded")
        return config

    def clear_cache(self) -> None:
        self._cache.clear()
        self._last_load_time = None

    @property
    def last_load_time(self) -> datetime | None:
        return self._last_load_time

    # ─── Sections ────────────────────────────────────────────

    async def policies(self) -> PolicyConfig:
        return (await self.load()).policies

    async def faqs(self) -> FAQConfig:
        return (await self.load()).faqs

    async def prompts(self) -> PromptConfig:
        return (await self.load()).prompts

    async def confidence_thresholds(self) -> ConfidenceThresholds:
        return (await self.policies()).confidence_thresholds

    async def approval_settings(self) -> ApprovalSettings:
        return (await self.policies()).approval_settings

    # ─── Lookups ─────────────────────────────────────────────

    async def get_property_faq(self, property_id: str | None, topic: str) -> PropertyFAQResult | None:
        """Property override first, then the default answer, else None."""
        faqs = await self.faqs()

        overrides = faqs.per_property_overrides.get(property_id or "", {})
        if topic in overrides:
            return PropertyFAQResult(
                topic=topic,
                answer=overrides[topic],
                source="property_override",
                property_id=property_id,
            )

        default_answer = faqs.defaults.get(topic)
        if default_answer:
            return PropertyFAQResult(topic=topic, answer=default_answer, source="default")

        return None

    async def faq_topics(self) -> list[str]:
        return list((await self.faqs()).defaults.keys())

    async def property_override_topics(self, property_id: str) -> list[str]:
        return list((await self.faqs()).per_property_overrides.get(property_id, {}).keys())

    async def is_escalation_keyword(self, text: str) -> bool:
        keywords = (await self.policies()).escalation.emergency_keywords
        lowered = text.lower()
        return any(k.lower() in lowered for k in keywords)

    async def requires_identity_verification(self, info_type: str) -> bool:
        return info_type in (await self.policies()).identity_verification.required_for
